import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import psycopg2
import pytest

from custom_logging import BackupLogger
from services.models import DatabaseConfiguration, TableDescriptor

TABLE_IN_QUERY = re.compile(r'FROM (?:"((?:[^"]|"")+)"\.)?"((?:[^"]|"")+)"')


@dataclass
class FakeTable:
    name: str
    columns: List[str]
    rows: List[tuple] = field(default_factory=list)
    primary_key: List[Tuple[str, str]] = field(default_factory=list)
    auto_increment: List[Tuple[str, str]] = field(default_factory=list)
    schema: str = "public"

    def column_index(self, column: str) -> int:
        return self.columns.index(column)


class FakeCursor:
    def __init__(self, connection: "FakeConnection"):
        self._connection = connection
        self._result: list = []
        self.description = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def _table(self, query: str) -> FakeTable:
        match = TABLE_IN_QUERY.search(query)
        schema, name = (group.replace('""', '"') if group else None for group in match.groups())
        table = self._connection.tables[name]
        if schema != table.schema:
            raise AssertionError(f"{name} lives in schema {table.schema}, query used {schema}: {query}")
        return table

    def execute(self, query: str, params: tuple = ()):
        self._connection.queries.append((query, params))
        if self._connection.fail_on and self._connection.fail_on in query:
            raise psycopg2.OperationalError(f"server closed the connection while running: {query[:40]}")

        self.description = None
        if "information_schema.tables" in query:
            self._result = [(name,) for name, table in self._connection.tables.items() if table.schema == params[0]]
        elif "PRIMARY KEY" in query:
            self._result = list(self._connection.tables[params[1]].primary_key)
        elif "nextval" in query:
            self._result = list(self._connection.tables[params[1]].auto_increment)
        elif "COUNT(*)" in query:
            self._result = [(len(self._table(query).rows),)]
        elif query.startswith("SELECT * FROM"):
            self._result = self._select(query, params)
        else:
            raise AssertionError(f"Unexpected query: {query}")

    def _select(self, query: str, params: tuple) -> list:
        table = self._table(query)
        self.description = [(column, None) for column in table.columns]
        self._connection.page_queries.append((query, params))

        if "ORDER BY" in query:
            key = re.search(r'ORDER BY "([^"]+)"', query).group(1)
            index = table.column_index(key)
            rows = sorted(table.rows, key=lambda row: row[index])
            if "WHERE" in query:
                last_seen, limit = params
                rows = [row for row in rows if row[index] > last_seen]
            else:
                (limit,) = params
            return rows[:limit]

        limit, offset = params
        return table.rows[offset:offset + limit]

    def fetchall(self):
        return list(self._result)

    def fetchone(self):
        return self._result[0] if self._result else None


class FakeConnection:
    def __init__(self, tables: List[FakeTable], fail_on: Optional[str] = None):
        self.tables = {table.name: table for table in tables}
        self.fail_on = fail_on
        self.queries: list = []
        self.page_queries: list = []
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


class FakeConnectionProvider:
    def __init__(self, connection: FakeConnection):
        self._connection = connection

    def get_connection(self):
        return self._connection


class RecordingUploader:
    def __init__(self, error: Optional[Exception] = None):
        self.uploads: list = []
        self._error = error

    def upload(self, local_path, key, logger=None):
        assert local_path.exists(), "uploaded file must exist at upload time"
        self.uploads.append((local_path.name, key, local_path.read_bytes()))
        if self._error is not None:
            raise self._error


def users_table(count: int = 10) -> FakeTable:
    return FakeTable(
        name="users",
        columns=["id", "name", "active"],
        rows=[(i, f"user {i}", i % 2 == 0) for i in range(1, count + 1)],
        primary_key=[("id", "integer")],
    )


def logs_table() -> FakeTable:
    return FakeTable(name="logs", columns=["message", "created"], rows=[])


@pytest.fixture
def logger():
    return BackupLogger(name="backup.tests", console=False)


@pytest.fixture
def database():
    return DatabaseConfiguration(
        name="shop", host="db.internal", port=5432, user="backup", password="secret",
    )


@pytest.fixture
def make_descriptor():
    def _make(table: FakeTable, key: Optional[str] = None) -> TableDescriptor:
        return TableDescriptor(name=table.name, row_count=len(table.rows), pagination_key=key, schema=table.schema)
    return _make
