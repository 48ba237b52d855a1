"""
S3-compatible object storage upload using boto3.

One client is built per driver from the immutable ObjectStoreConfiguration;
boto3 clients are safe to share between threads.
"""
from pathlib import Path

import boto3
from boto3.s3.transfer import TransferConfig
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from services.errors import UploadError
from services.interfaces import ILogger, IObjectStore
from services.models import ObjectStoreConfiguration

MULTIPART_THRESHOLD = 64 * 1024 * 1024


def object_key(database_type: str, database_name: str, file_name: str) -> str:
    return f"backup/{database_type}_{database_name}/{file_name}"


def create_s3_client(config: ObjectStoreConfiguration):
    addressing_style = "path" if config.force_path_style else "auto"
    return boto3.client(
        "s3",
        endpoint_url=config.endpoint_url,
        aws_access_key_id=config.access_key,
        aws_secret_access_key=config.secret_key,
        use_ssl=config.secure,
        config=Config(s3={"addressing_style": addressing_style}, signature_version="s3v4"),
    )


class S3Uploader(IObjectStore):
    def __init__(self, config: ObjectStoreConfiguration, client=None):
        self._bucket = config.bucket
        self._client = client if client is not None else create_s3_client(config)
        self._transfer_config = TransferConfig(multipart_threshold=MULTIPART_THRESHOLD)

    @property
    def bucket(self) -> str:
        return self._bucket

    def upload(self, local_path: Path, key: str, logger: ILogger = None) -> None:
        if logger:
            logger.info(f"Uploading {local_path.name} to s3://{self._bucket}/{key}")
        try:
            self._client.upload_file(
                str(local_path),
                self._bucket,
                key,
                ExtraArgs={"ACL": "private"},
                Config=self._transfer_config,
            )
        except (BotoCoreError, ClientError) as e:
            raise UploadError(f"Upload of {local_path.name} to s3://{self._bucket}/{key} failed: {e}") from e
        except OSError as e:
            raise UploadError(f"Cannot read {local_path}: {e}") from e
