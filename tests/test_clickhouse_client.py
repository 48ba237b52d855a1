from dataclasses import replace
from datetime import datetime
from unittest.mock import MagicMock

import requests

from clients.clickhouse_client import ClickhouseBackupDriver
from services.models import ObjectStoreConfiguration


def s3_config():
    return ObjectStoreConfiguration(
        endpoint="minio.local:9000", bucket="backups", access_key="AKIA", secret_key="s3cr'et",
        secure=False, force_path_style=True,
    )


def make_driver(http_post):
    return ClickhouseBackupDriver(s3_config(), http_post=http_post, clock=lambda: datetime(2024, 3, 4, 5, 6, 7))


def test_backup_query_targets_the_bucket(database):
    driver = make_driver(MagicMock())
    destination = driver.backup_destination(database)

    assert destination == "http://minio.local:9000/backups/backup/clickhouse_shop/2024_03_04_05_06_07"
    assert driver.backup_query(database, destination) == (
        "BACKUP DATABASE `shop` TO S3("
        "'http://minio.local:9000/backups/backup/clickhouse_shop/2024_03_04_05_06_07', "
        "'AKIA', 's3cr\\'et')"
    )


def test_server_url(database):
    assert ClickhouseBackupDriver.server_url(replace(database, port=8123)) == "http://db.internal:8123/"
    assert ClickhouseBackupDriver.server_url(
        replace(database, host="https://ch.example.com", port=8443)
    ) == "https://ch.example.com:8443/"


def test_successful_backup(database, logger):
    http_post = MagicMock()

    assert make_driver(http_post).prepare_backup(database, logger) is True

    args, kwargs = http_post.call_args
    assert args == ("http://db.internal:5432/",)
    assert kwargs["auth"] == ("backup", "secret")
    assert kwargs["data"].startswith(b"BACKUP DATABASE `shop` TO S3(")


def test_server_error_returns_false(database, logger):
    response = MagicMock()
    response.text = "Code: 36. DB::Exception: Unknown database"
    response.raise_for_status.side_effect = requests.HTTPError("500 Server Error", response=response)

    assert make_driver(MagicMock(return_value=response)).prepare_backup(database, logger) is False


def test_unreachable_server_returns_false(database, logger):
    http_post = MagicMock(side_effect=requests.ConnectionError("connection refused"))
    assert make_driver(http_post).prepare_backup(database, logger) is False
