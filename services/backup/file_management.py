import tempfile
from pathlib import Path
from typing import Optional

import oschmod

from services.interfaces import ILogger


class BackupFileManager:
    """Creates and removes the local files of one backup job."""

    def __init__(self, logger: ILogger):
        self._logger = logger

    def prepare_directory(self, directory: Path) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        oschmod.set_mode(str(directory), "700")
        return directory

    def create_run_directory(self, parent: Path) -> Path:
        """Create a fresh private directory under ``parent`` for one backup run."""
        self.prepare_directory(parent)
        return self.prepare_directory(Path(tempfile.mkdtemp(prefix="run_", dir=parent)))

    def make_private(self, path: Path) -> Path:
        oschmod.set_mode(str(path), "600")
        return path

    def create_private_file(self, path: Path) -> Path:
        """Create an empty file readable by the owner only."""
        path.touch(exist_ok=False)
        return self.make_private(path)

    def remove(self, path: Optional[Path]) -> bool:
        """Delete a local artifact. Never raises; returns True if a file was removed."""
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            self._logger.warning(f"Local file already gone, nothing to remove: {path}")
            return False
        except OSError as e:
            self._logger.error(f"Failed to remove local file {path}: {e}")
            return False
        self._logger.info(f"Removed local backup file {path.name}")
        return True

    def remove_all(self, *paths: Optional[Path]) -> int:
        return sum(1 for path in paths if self.remove(path))

    def remove_directory(self, directory: Optional[Path]) -> bool:
        """Remove an emptied run directory. Never raises."""
        if directory is None:
            return False
        try:
            directory.rmdir()
        except FileNotFoundError:
            return False
        except OSError as e:
            self._logger.error(f"Failed to remove local directory {directory}: {e}")
            return False
        return True
