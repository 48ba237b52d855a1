from datetime import datetime
from typing import Callable, Optional

import requests

from custom_logging import BackupLogger
from factory import BackupDriver
from services.models import DatabaseConfiguration, ObjectStoreConfiguration

CONNECT_TIMEOUT = 10
MAX_RESPONSE_CHARS = 2000


def _quote_string(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def _quote_identifier(name: str) -> str:
    return "`" + name.replace("\\", "\\\\").replace("`", "\\`") + "`"


class ClickhouseBackupDriver(BackupDriver):
    """Backs up a ClickHouse database with the server's own BACKUP ... TO S3.

    ClickHouse writes straight to the bucket, so there is no local dump and
    no compress/upload/cleanup step. The statement is sent to the HTTP
    interface and the call blocks until the server reports the result.
    """

    database_type = "clickhouse"

    def __init__(self, s3_config: ObjectStoreConfiguration, http_post: Callable = requests.post,
                 clock: Callable[[], datetime] = datetime.now):
        self._s3_config = s3_config
        self._http_post = http_post
        self._clock = clock

    def backup_destination(self, database: DatabaseConfiguration) -> str:
        timestamp = self._clock().strftime("%Y_%m_%d_%H_%M_%S")
        return (
            f"{self._s3_config.endpoint_url}/{self._s3_config.bucket}"
            f"/backup/{self.database_type}_{database.name}/{timestamp}"
        )

    def backup_query(self, database: DatabaseConfiguration, destination: str) -> str:
        return (
            f"BACKUP DATABASE {_quote_identifier(database.name)} TO S3("
            f"{_quote_string(destination)}, "
            f"{_quote_string(self._s3_config.access_key)}, "
            f"{_quote_string(self._s3_config.secret_key)})"
        )

    @staticmethod
    def server_url(database: DatabaseConfiguration) -> str:
        if "://" in database.host:
            return f"{database.host.rstrip('/')}:{database.port}/"
        return f"http://{database.host}:{database.port}/"

    def prepare_backup(self, database: DatabaseConfiguration, logger: Optional[BackupLogger] = None) -> bool:
        logger = self._logger_for(database, logger)
        metadata = logger.start_backup(self.database_type, database.name)
        destination = self.backup_destination(database)
        success = False

        try:
            logger.info(f"Starting ClickHouse backup of {database.name} to {destination}")
            response = self._http_post(
                self.server_url(database),
                params={"database": database.name},
                data=self.backup_query(database, destination).encode("utf-8"),
                auth=(database.user, database.password),
                timeout=(CONNECT_TIMEOUT, None),
            )
            response.raise_for_status()
            metadata["object_key"] = destination
            logger.info(f"Backup to S3 finished: {destination}")
            success = True
        except requests.HTTPError as e:
            body = e.response.text[:MAX_RESPONSE_CHARS] if e.response is not None else ""
            logger.error(f"Backup to S3 failed for {database.name}: {e} {body}".strip())
        except requests.RequestException as e:
            logger.error(f"Unable to reach ClickHouse at {database.host}:{database.port}: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error while backing up {database.name}: {e}")
        finally:
            logger.finish_backup(metadata, success=success)

        return success
