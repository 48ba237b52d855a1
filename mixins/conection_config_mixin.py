from typing import Optional

from custom_logging import BackupLogger
from services.models import DatabaseConfiguration


class ConnectionConfigMixin:
    def __init__(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None,
                 database_type: str = "database"):
        self._config = database
        self._host = database.host
        self._database = database.name
        self._user = database.user
        self._password = database.password
        self._port = database.port
        self._database_type = database_type
        self._database_version = None
        self._logger = logger if logger is not None else BackupLogger.for_database(database_type, database.name)

    @property
    def database_version(self):
        return self._database_version

    def describe_target(self) -> str:
        return f"{self._database_type}://{self._user}@{self._host}:{self._port}/{self._database}"
