import gzip
from datetime import datetime

import pytest

from clients.postgres_client import DriverState, PostgresBackupDriver, PostgresClient
from conftest import FakeConnection, RecordingUploader, logs_table, users_table
from services.errors import BackupConnectionError, TableExportError
from services.interfaces import IConnectionProvider


def connector_for(connection):
    def connect(**kwargs):
        return connection, "PostgreSQL 16.2"
    return connect


def failing_connector(**kwargs):
    raise BackupConnectionError(f"Connection to {kwargs['host']} refused")


class TestPostgresClient:
    def test_export_walks_every_state(self, database, logger, tmp_path):
        connection = FakeConnection([users_table(3), logs_table()])
        client = PostgresClient(database, logger, connector=connector_for(connection))
        assert client.state is DriverState.IDLE

        rows = client.export(tmp_path / "dump.sql")

        assert rows == 3
        assert client.state is DriverState.DONE
        assert client.current_table_index == 1
        assert connection.closed
        assert client.connection is None

    def test_failure_marks_client_failed_and_disconnects(self, database, logger, tmp_path):
        connection = FakeConnection([users_table(3)], fail_on="SELECT * FROM")
        client = PostgresClient(database, logger, connector=connector_for(connection))

        with pytest.raises(TableExportError):
            client.export(tmp_path / "dump.sql")

        assert client.state is DriverState.FAILED
        assert connection.closed

    def test_connection_error_propagates(self, database, logger, tmp_path):
        client = PostgresClient(database, logger, connector=failing_connector)

        with pytest.raises(BackupConnectionError):
            client.export(tmp_path / "dump.sql")

        assert client.state is DriverState.FAILED

    def test_get_tables_requires_connection(self, database, logger):
        with pytest.raises(RuntimeError):
            PostgresClient(database, logger).get_tables()


def make_driver(connection, uploader, work_dir):
    def client_factory(database, logger):
        return PostgresClient(database, logger, connector=connector_for(connection))
    driver = PostgresBackupDriver(uploader, work_dir=work_dir, client_factory=client_factory)
    driver._pipeline._clock = lambda: datetime(2024, 5, 6, 17, 8, 9)
    return driver


class TestPostgresBackupDriver:
    def test_successful_backup_is_uploaded_and_cleaned_up(self, database, logger, tmp_path):
        uploader = RecordingUploader()
        driver = make_driver(FakeConnection([users_table(10), logs_table()]), uploader, tmp_path)

        assert driver.prepare_backup(database, logger) is True

        [(file_name, key, payload)] = uploader.uploads
        assert file_name == "dump_2024_05_06_17_08_09.sql.gz"
        assert key == "backup/postgresql_shop/dump_2024_05_06_17_08_09.sql.gz"
        dump = gzip.decompress(payload).decode("utf-8")
        assert "-- users\n" in dump and "-- logs\n" in dump
        assert dump.count("INSERT INTO") == 1
        assert list((tmp_path / "postgresql_shop").iterdir()) == []

    def test_failed_export_is_not_uploaded(self, database, logger, tmp_path):
        uploader = RecordingUploader()
        driver = make_driver(FakeConnection([users_table(3)], fail_on="SELECT * FROM"), uploader, tmp_path)

        assert driver.prepare_backup(database, logger) is False
        assert uploader.uploads == []
        assert list((tmp_path / "postgresql_shop").iterdir()) == []

    def test_connection_failure_returns_false(self, database, logger, tmp_path):
        uploader = RecordingUploader()
        driver = PostgresBackupDriver(
            uploader, work_dir=tmp_path,
            client_factory=lambda db, log: PostgresClient(db, log, connector=failing_connector),
        )

        assert driver.prepare_backup(database, logger) is False
        assert uploader.uploads == []


def test_connection_provider_only_needs_get_connection(database, logger):
    class StaticProvider(IConnectionProvider):
        def get_connection(self):
            return None

    assert StaticProvider().get_connection() is None
    assert not hasattr(PostgresClient(database, logger), "get_connection_params")


def test_client_describes_its_target(database, logger):
    client = PostgresClient(database, logger)
    assert client.describe_target() == "postgresql://backup@db.internal:5432/shop"
    assert "secret" not in client.describe_target()
