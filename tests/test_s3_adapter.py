from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from services.errors import UploadError
from services.models import ObjectStoreConfiguration
from services.storage.s3_adapter import S3Uploader, create_s3_client, object_key


def config(**overrides):
    values = dict(endpoint="s3.example.com", bucket="backups", access_key="ak", secret_key="sk")
    values.update(overrides)
    return ObjectStoreConfiguration(**values)


def test_object_key():
    assert object_key("mysql", "shop", "dump_2024_01_01_00_00_00.sql.gz") == (
        "backup/mysql_shop/dump_2024_01_01_00_00_00.sql.gz"
    )


def test_upload_is_private(tmp_path):
    artifact = tmp_path / "dump.sql.gz"
    artifact.write_bytes(b"\x1f\x8b")
    client = MagicMock()

    S3Uploader(config(), client=client).upload(artifact, "backup/mysql_shop/dump.sql.gz")

    args, kwargs = client.upload_file.call_args
    assert args == (str(artifact), "backups", "backup/mysql_shop/dump.sql.gz")
    assert kwargs["ExtraArgs"] == {"ACL": "private"}


@pytest.mark.parametrize("error", [
    ClientError({"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "PutObject"),
    EndpointConnectionError(endpoint_url="https://s3.example.com"),
])
def test_storage_errors_become_upload_errors(tmp_path, error):
    client = MagicMock()
    client.upload_file.side_effect = error

    with pytest.raises(UploadError, match="s3://backups/key"):
        S3Uploader(config(), client=client).upload(tmp_path / "dump.sql.gz", "key")


def test_client_settings():
    with patch("services.storage.s3_adapter.boto3.client") as boto_client:
        create_s3_client(config(secure=False, force_path_style=True))

    kwargs = boto_client.call_args.kwargs
    assert kwargs["endpoint_url"] == "http://s3.example.com"
    assert kwargs["use_ssl"] is False
    assert kwargs["config"].s3 == {"addressing_style": "path"}
