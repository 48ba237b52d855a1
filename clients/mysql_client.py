import os
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

from pymysql import err
from pymysql.connections import Connection

from conn import open_mysql_connection
from custom_logging import BackupLogger
from decorators.connection_required import requires_connection
from decorators.utility_available import check_utility_available
from factory import BackupDriver
from mixins.conection_config_mixin import ConnectionConfigMixin
from services.backup.core import BackupPipeline
from services.errors import BackupError, DumpToolError
from services.interfaces import IConnectionProvider, IDumpExporter, IObjectStore
from services.models import DatabaseConfiguration

MAX_STDERR_CHARS = 2000


class MysqlClient(ConnectionConfigMixin, IConnectionProvider, IDumpExporter):
    """Dumps one MySQL database with mysqldump.

    PyMySQL is only used to check the credentials and the skip list before
    the dump utility is started, so that a bad login fails fast with a
    clear connection error.
    """

    def __init__(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None,
                 connector=open_mysql_connection, runner=subprocess.run):
        super().__init__(database, logger, database_type="mysql")
        self._connection: Optional[Connection] = None
        self._connector = connector
        self._runner = runner

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    def get_connection(self) -> Optional[Connection]:
        return self._connection

    def connect(self) -> Connection:
        self._connection, self._database_version = self._connector(
            database=self._database, user=self._user, host=self._host,
            password=self._password, port=self._port,
        )
        self._logger.info(f"Connected to {self.describe_target()} (MySQL {self.database_version})")
        return self._connection

    def disconnect(self) -> None:
        try:
            if self._connection is not None and self._connection.open:
                self._connection.close()
                self._logger.info("Database connection closed")
        except err.Error as e:
            self._logger.warning(f"Disconnect failed: {e}")
        finally:
            self._connection = None

    @requires_connection
    def get_tables(self) -> list[str]:
        try:
            with self._connection.cursor() as cursor:
                cursor.execute(
                    "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
                    "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE'",
                    (self._database,),
                )
                return [row["TABLE_NAME"] for row in cursor.fetchall()]
        except err.Error as e:
            raise BackupError(f"Listing tables of {self._database} failed: {e}") from e

    def build_dump_command(self) -> list[str]:
        command = [
            "mysqldump",
            "--host", self._host,
            "--port", str(self._port),
            "--user", self._user,
            "--single-transaction",
            "--quick",
            "--no-tablespaces",
            "--skip-dump-date",
        ]
        for table_name in sorted(self._config.skip_tables):
            command.append(f"--ignore-table={self._database}.{table_name}")
        command.append(self._database)
        return command

    @check_utility_available("mysqldump")
    def dump(self, dump_path: Path) -> None:
        env = os.environ.copy()
        env["MYSQL_PWD"] = self._password

        self._logger.info("Running mysqldump... (this may take a while)")
        with dump_path.open("wb") as output:
            process = self._runner(
                self.build_dump_command(),
                stdout=output,
                stderr=subprocess.PIPE,
                env=env,
                check=False,
            )

        if process.returncode != 0:
            stderr = process.stderr.decode(errors="replace") if process.stderr else ""
            raise DumpToolError(
                f"mysqldump exited with code {process.returncode}: {stderr.strip()[:MAX_STDERR_CHARS] or 'Unknown error'}"
            )

    def export(self, dump_path: Path, metadata: Optional[Dict[str, Any]] = None) -> None:
        try:
            self.connect()
            tables = self.get_tables()
        finally:
            self.disconnect()

        missing = sorted(self._config.skip_tables - set(tables))
        if missing:
            self._logger.warning(f"Skip list names tables that do not exist: {', '.join(missing)}")

        exported = [table for table in tables if table not in self._config.skip_tables]
        if metadata is not None:
            metadata["statistics"]["total_tables"] = len(exported)
            metadata["statistics"]["skipped_tables"] = len(tables) - len(exported)
        self._logger.info(f"Dumping {len(exported)} of {len(tables)} tables from {self._database}")

        self.dump(dump_path)


class MySQLBackupDriver(BackupDriver):
    database_type = "mysql"

    def __init__(self, object_store: IObjectStore, work_dir: Optional[Path] = None,
                 client_factory=MysqlClient):
        self._pipeline = BackupPipeline(self.database_type, object_store, work_dir)
        self._client_factory = client_factory

    def prepare_backup(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None) -> bool:
        logger = self._logger_for(database, logger)

        def export(dump_path: Path, metadata: Dict[str, Any]) -> None:
            self._client_factory(database, logger).export(dump_path, metadata)

        return self._pipeline.run(database, export, logger)
