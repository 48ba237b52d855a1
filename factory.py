from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from custom_logging import BackupLogger
from services.errors import UnknownDatabaseTypeError
from services.models import DatabaseConfiguration, ObjectStoreConfiguration


class BackupDriver(ABC):
    """One implementation per database family, looked up by ``database_type``."""

    database_type: str = ""

    @abstractmethod
    def prepare_backup(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None) -> bool:
        """Back up ``database``. Never raises; returns True when the backup was stored."""
        pass

    def _logger_for(self, database: DatabaseConfiguration, logger: Optional[BackupLogger]) -> BackupLogger:
        if logger is not None:
            return logger
        return BackupLogger.for_database(self.database_type, database.name)


class DriverRegistry:
    def __init__(self):
        self._drivers: Dict[str, BackupDriver] = {}

    def register_driver(self, driver: BackupDriver) -> None:
        self._drivers[driver.database_type.lower()] = driver

    def supported_types(self) -> frozenset:
        return frozenset(self._drivers)

    def supports(self, database_type: str) -> bool:
        return database_type.lower() in self._drivers

    def get_driver(self, database_type: str) -> BackupDriver:
        try:
            return self._drivers[database_type.lower()]
        except KeyError:
            raise UnknownDatabaseTypeError(database_type, self._drivers) from None


def build_registry(s3_config: ObjectStoreConfiguration, work_dir: Optional[Path] = None,
                   uploader=None) -> DriverRegistry:
    """Build the driver map once at startup. All drivers share the same read-only S3 settings."""
    from clients.clickhouse_client import ClickhouseBackupDriver
    from clients.mysql_client import MySQLBackupDriver
    from clients.postgres_client import PostgresBackupDriver
    from services.storage.s3_adapter import S3Uploader

    uploader = uploader if uploader is not None else S3Uploader(s3_config)

    registry = DriverRegistry()
    registry.register_driver(MySQLBackupDriver(uploader, work_dir=work_dir))
    registry.register_driver(PostgresBackupDriver(uploader, work_dir=work_dir))
    registry.register_driver(ClickhouseBackupDriver(s3_config))
    return registry
