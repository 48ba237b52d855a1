from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional


class IConnectionProvider(ABC):
    @abstractmethod
    def get_connection(self): pass


class ILogger(ABC):
    @abstractmethod
    def debug(self, message: str): pass
    @abstractmethod
    def info(self, message: str): pass
    @abstractmethod
    def error(self, message: str): pass
    @abstractmethod
    def warning(self, message: str): pass


class IMessenger(ABC):
    @abstractmethod
    def success(self, message: str): pass
    @abstractmethod
    def error(self, message: str): pass
    @abstractmethod
    def info(self, message: str): pass
    @abstractmethod
    def warning(self, message: str): pass


class IDumpExporter(ABC):
    """One export run of one database into a local dump file."""

    @abstractmethod
    def connect(self): pass

    @abstractmethod
    def disconnect(self) -> None: pass

    @abstractmethod
    def get_tables(self) -> list[str]: pass

    @abstractmethod
    def export(self, dump_path: Path, metadata: Optional[Dict[str, Any]] = None):
        """Write the whole database into ``dump_path``. Raises BackupError on failure."""


class IObjectStore(ABC):
    @abstractmethod
    def upload(self, local_path: Path, key: str, logger: Optional[ILogger] = None) -> None:
        """Store the file under ``key``. Raises UploadError on failure."""
