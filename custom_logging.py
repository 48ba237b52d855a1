import logging
from pathlib import Path
from typing import Any, Dict, Optional
import uuid
from datetime import datetime

from services.interfaces import ILogger

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_backup_id(database_type: str, database: str, timestamp: datetime) -> str:
    timestamp_format = "%Y%m%d_%H%M%S"
    suffix = uuid.uuid4().hex[:4]
    return f"{database_type}_{database}_{timestamp.strftime(timestamp_format)}_{suffix}"


class BackupLogger(ILogger):
    """Logger owned by a single scheduled database.

    Writes to the console and, when ``log_dir`` is given, to
    ``<log_dir>/backup_<type>_<name>.log``. Also keeps the per-run metadata
    dict that ends up summarised in the final log line of each run.
    """

    def __init__(self, name: str = "backup", log_dir: Optional[str] = None, level: int = logging.INFO,
                 console: bool = True):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self.logger.propagate = False
        self.logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

        if log_dir:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            log_file = Path(log_dir) / f"{name.replace('.', '_')}.log"
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

        if console:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            self.logger.addHandler(console_handler)

    @classmethod
    def for_database(cls, database_type: str, database: str, log_dir: Optional[str] = None,
                     level: int = logging.INFO) -> "BackupLogger":
        return cls(name=f"backup.{database_type}_{database}", log_dir=log_dir, level=level)

    def start_backup(self, database_type: str, database: str) -> Dict[str, Any]:
        timestamp_start = datetime.now()
        metadata = {
            "id": generate_backup_id(database_type, database, timestamp_start),
            "database_type": database_type,
            "database_name": database,
            "timestamp_start": timestamp_start.isoformat(),
            "timestamp_end": None,
            "duration_seconds": None,
            "status": "in_progress",
            "object_key": None,
            "tables": {},
            "statistics": {
                "total_tables": 0,
                "skipped_tables": 0,
                "total_rows_processed": 0,
                "dump_size_bytes": 0,
                "compressed_size_bytes": 0,
            },
        }
        self.logger.info(f"Starting backup: {metadata['id']}")
        return metadata

    def finish_backup(self, metadata: Dict[str, Any], success: bool = True) -> None:
        timestamp_end = datetime.now()
        timestamp_start = datetime.fromisoformat(metadata["timestamp_start"])
        duration = (timestamp_end - timestamp_start).total_seconds()

        metadata["timestamp_end"] = timestamp_end.isoformat()
        metadata["duration_seconds"] = duration
        metadata["status"] = "completed" if success else "failed"

        statistics = metadata["statistics"]
        if success:
            self.logger.info(
                f"Backup completed: {metadata['id']} "
                f"({duration:.2f}s, {statistics['total_tables']} tables, "
                f"{statistics['total_rows_processed']} rows, "
                f"{statistics['compressed_size_bytes'] / 1024 / 1024:.2f} MB uploaded)"
            )
        else:
            self.logger.error(f"Backup failed: {metadata['id']} ({duration:.2f}s)")

    def log_table_backup(self, metadata: Optional[Dict[str, Any]], table_name: str, rows_count: int) -> None:
        if metadata is not None:
            metadata["tables"][table_name] = {"rows_count": rows_count}
            metadata["statistics"]["total_tables"] += 1
            metadata["statistics"]["total_rows_processed"] += rows_count
        self.logger.info(f"Table {table_name}: {rows_count} rows")

    def log_table_skipped(self, metadata: Optional[Dict[str, Any]], table_name: str) -> None:
        if metadata is not None:
            metadata["statistics"]["skipped_tables"] += 1
        self.logger.info(f"Table {table_name}: skipped")

    def debug(self, message: str) -> None:
        self.logger.debug(message)

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warning(self, message: str) -> None:
        self.logger.warning(message)

    def error(self, message: str) -> None:
        self.logger.error(message)

    def exception(self, message: str) -> None:
        self.logger.exception(message)
