import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from custom_logging import BackupLogger
from services.backup.archive_utils import compress_file, compressed_path_for
from services.backup.file_management import BackupFileManager
from services.errors import BackupError
from services.interfaces import IObjectStore
from services.models import BackupArtifact, DatabaseConfiguration
from services.storage.s3_adapter import object_key

DEFAULT_WORK_DIR = Path(tempfile.gettempdir()) / "db-backups"

ExportFunction = Callable[[Path, Dict[str, Any]], None]


def dump_file_name(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now()
    return moment.strftime("dump_%Y_%m_%d_%H_%M_%S.sql")


class BackupPipeline:
    """
    Export -> compress -> upload -> cleanup for drivers that produce a local dump.

    Cleanup runs on every exit path. A failed export is never compressed or
    uploaded, so a partial dump cannot end up in the bucket. Every run works in
    its own directory under ``<work_dir>/<type>_<name>/``, so databases that
    share a type and a name never share local files.
    """

    def __init__(self, database_type: str, object_store: IObjectStore, work_dir: Optional[Path] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self._database_type = database_type
        self._object_store = object_store
        self._work_dir = Path(work_dir) if work_dir else DEFAULT_WORK_DIR
        self._clock = clock

    def job_directory(self, database: DatabaseConfiguration) -> Path:
        return self._work_dir / f"{self._database_type}_{database.name}"

    def artifact_for(self, database: DatabaseConfiguration, local_path: Path) -> BackupArtifact:
        return BackupArtifact(
            local_path=local_path,
            logical_key=object_key(self._database_type, database.name, local_path.name),
        )

    def run(self, database: DatabaseConfiguration, export: ExportFunction, logger: BackupLogger) -> bool:
        metadata = logger.start_backup(self._database_type, database.name)
        files = BackupFileManager(logger)
        created: list[Path] = []
        run_dir: Optional[Path] = None
        success = False

        try:
            run_dir = files.create_run_directory(self.job_directory(database))
            dump_path = files.create_private_file(run_dir / dump_file_name(self._clock()))
            created.append(dump_path)

            logger.info(f"Preparing database backup {dump_path.name}")
            export(dump_path, metadata)
            metadata["statistics"]["dump_size_bytes"] = dump_path.stat().st_size

            created.append(compressed_path_for(dump_path))
            compressed = files.make_private(compress_file(dump_path, logger))
            metadata["statistics"]["compressed_size_bytes"] = compressed.stat().st_size

            artifact = self.artifact_for(database, compressed)
            self._object_store.upload(artifact.local_path, artifact.logical_key, logger)
            metadata["object_key"] = artifact.logical_key
            logger.info(f"Uploaded database backup {artifact.logical_key}")
            success = True
        except BackupError as e:
            logger.error(str(e))
        except Exception as e:
            logger.exception(f"Unexpected error while backing up {database.name}: {e}")
        finally:
            files.remove_all(*created)
            files.remove_directory(run_dir)
            logger.finish_backup(metadata, success=success)

        return success
