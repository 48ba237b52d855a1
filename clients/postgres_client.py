from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import psycopg2
from psycopg2.extensions import connection

from conn import open_pg_connection
from custom_logging import BackupLogger
from decorators.connection_required import requires_connection
from factory import BackupDriver
from mixins.conection_config_mixin import ConnectionConfigMixin
from services.backup.core import BackupPipeline
from services.backup.exporters import TableExporter
from services.backup.pagination import FETCH_BATCH_SIZE
from services.backup.statements import INSERT_BATCH_SIZE
from services.errors import BackupError
from services.interfaces import IConnectionProvider, IDumpExporter, IObjectStore
from services.models import DatabaseConfiguration


class DriverState(Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    ENUMERATING = "enumerating"
    EXPORTING_TABLE = "exporting_table"
    DISCONNECTED = "disconnected"
    DONE = "done"
    FAILED = "failed"


class PostgresClient(ConnectionConfigMixin, IConnectionProvider, IDumpExporter):
    """A single export run against one PostgreSQL database.

    A new client is created for every job so that the connection and the
    state below are never shared between concurrent jobs.
    """

    def __init__(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None,
                 fetch_size: int = FETCH_BATCH_SIZE, insert_batch_size: int = INSERT_BATCH_SIZE,
                 connector=open_pg_connection) -> None:
        super().__init__(database, logger, database_type="postgresql")
        self._connection: Optional[connection] = None
        self._connector = connector
        self._fetch_size = fetch_size
        self._insert_batch_size = insert_batch_size
        self.state = DriverState.IDLE
        self.current_table_index: Optional[int] = None

    @property
    def connection(self) -> Optional[connection]:
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def get_connection(self) -> Optional[connection]:
        return self._connection

    def connect(self) -> connection:
        self._connection, self._database_version = self._connector(
            dbname=self._database, user=self._user, host=self._host,
            password=self._password, port=self._port,
        )
        self.state = DriverState.CONNECTED
        self._logger.info(f"Connected to {self.describe_target()} ({self.database_version})")
        return self._connection

    def disconnect(self) -> None:
        try:
            if self.is_connected:
                self._connection.close()
                self._logger.info("Database connection closed")
        except psycopg2.Error as e:
            self._logger.warning(f"Disconnect failed: {e}")
        finally:
            self._connection = None
            if self.state != DriverState.FAILED:
                self.state = DriverState.DISCONNECTED

    def _table_exporter(self) -> TableExporter:
        return TableExporter(
            self,
            self._logger,
            skip_tables=self._config.skip_tables,
            fetch_size=self._fetch_size,
            insert_batch_size=self._insert_batch_size,
        )

    @requires_connection
    def get_tables(self) -> list[str]:
        try:
            return self._table_exporter().get_tables()
        except psycopg2.Error as e:
            raise BackupError(f"Listing tables of {self._database} failed: {str(e).strip()}") from e

    def export(self, dump_path: Path, metadata: Optional[Dict[str, Any]] = None) -> int:
        """Write every table of the database into ``dump_path``; returns the row total."""
        total_rows = 0
        try:
            self.connect()

            self.state = DriverState.ENUMERATING
            tables = self.get_tables()
            self._logger.info(f"Found {len(tables)} tables in {self._database}")

            exporter = self._table_exporter()
            with dump_path.open("w", encoding="utf-8") as output:
                for index, table_name in enumerate(tables):
                    self.state = DriverState.EXPORTING_TABLE
                    self.current_table_index = index
                    total_rows += exporter.export_table(table_name, output, metadata)
        except Exception:
            self.state = DriverState.FAILED
            raise
        finally:
            self.disconnect()

        self.state = DriverState.DONE
        return total_rows


class PostgresBackupDriver(BackupDriver):
    database_type = "postgresql"

    def __init__(self, object_store: IObjectStore, work_dir: Optional[Path] = None,
                 client_factory=PostgresClient):
        self._pipeline = BackupPipeline(self.database_type, object_store, work_dir)
        self._client_factory = client_factory

    def prepare_backup(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None) -> bool:
        logger = self._logger_for(database, logger)

        def export(dump_path: Path, metadata: Dict[str, Any]) -> None:
            client = self._client_factory(database, logger)
            client.export(dump_path, metadata)

        return self._pipeline.run(database, export, logger)
