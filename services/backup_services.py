from datetime import datetime
from typing import Optional

from custom_logging import BackupLogger
from factory import DriverRegistry
from services.models import ScheduledDatabase


class BackupJob:
    """Runs the backup of one configured database each time its trigger fires.

    ``run()`` is the scheduler callback: it never raises, so a failing
    database can neither stop the worker nor affect the other jobs.
    """

    def __init__(self, entry: ScheduledDatabase, registry: DriverRegistry, logger: Optional[BackupLogger] = None):
        self.entry = entry
        self._registry = registry
        self._logger = logger if logger is not None else BackupLogger.for_database(
            entry.database_type, entry.database.name
        )
        self.last_run_at: Optional[datetime] = None
        self.last_result: Optional[bool] = None

    @property
    def name(self) -> str:
        return f"{self.entry.database_type}:{self.entry.database.name}"

    def run(self) -> bool:
        self.last_run_at = datetime.now()
        try:
            driver = self._registry.get_driver(self.entry.database_type)
            result = bool(driver.prepare_backup(self.entry.database, logger=self._logger))
        except Exception as e:
            self._logger.exception(f"Error while preparing backup for {self.name}: {e}")
            result = False
        self.last_result = result
        return result
