from typing import Any, Dict, Iterable, Optional, TextIO

import psycopg2

from custom_logging import BackupLogger
from services.backup.pagination import FETCH_BATCH_SIZE, choose_strategy
from services.backup.serializer import qualified_name
from services.backup.statements import INSERT_BATCH_SIZE, InsertStatementBatcher
from services.errors import TableExportError
from services.interfaces import IConnectionProvider
from services.models import TableDescriptor

NUMERIC_TYPES = frozenset({
    "smallint",
    "integer",
    "bigint",
    "numeric",
    "decimal",
    "real",
    "double precision",
})

TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s
      AND table_type = 'BASE TABLE';
"""

PRIMARY_KEY_QUERY = """
    SELECT kcu.column_name, c.data_type
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    JOIN information_schema.columns c
      ON c.table_schema = kcu.table_schema
     AND c.table_name = kcu.table_name
     AND c.column_name = kcu.column_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_schema = %s
      AND tc.table_name = %s
    ORDER BY kcu.ordinal_position;
"""

AUTO_INCREMENT_QUERY = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
      AND (column_default LIKE 'nextval(%%' OR is_identity = 'YES')
    ORDER BY ordinal_position;
"""


class TableExporter:
    """Writes the rows of PostgreSQL tables to a dump file as INSERT statements.

    Tables are read page by page (see ``services.backup.pagination``) and every
    page is written out before the next one is fetched. Any database error is
    raised as ``TableExportError``: a dump with a missing table is not a backup.
    """

    def __init__(self,
                 connection_provider: IConnectionProvider,
                 logger: BackupLogger,
                 skip_tables: Iterable[str] = (),
                 schema: str = "public",
                 fetch_size: int = FETCH_BATCH_SIZE,
                 insert_batch_size: int = INSERT_BATCH_SIZE):
        self._connection_provider = connection_provider
        self._logger = logger
        self._skip_tables = frozenset(skip_tables)
        self._schema = schema
        self._fetch_size = fetch_size
        self._insert_batch_size = insert_batch_size

    def _query(self, query: str, params: tuple) -> list:
        connection = self._connection_provider.get_connection()
        with connection.cursor() as cur:
            cur.execute(query, params)
            return cur.fetchall()

    def get_tables(self) -> list[str]:
        """Return the base tables of the configured schema."""
        return [row[0] for row in self._query(TABLES_QUERY, (self._schema,))]

    def count_rows(self, table_name: str) -> int:
        result = self._query(f"SELECT COUNT(*) FROM {qualified_name(self._schema, table_name)};", ())
        return int(result[0][0]) if result else 0

    def find_pagination_key(self, table_name: str) -> Optional[str]:
        primary_key = self._query(PRIMARY_KEY_QUERY, (self._schema, table_name))
        if len(primary_key) == 1 and primary_key[0][1] in NUMERIC_TYPES:
            return primary_key[0][0]

        for column_name, data_type in self._query(AUTO_INCREMENT_QUERY, (self._schema, table_name)):
            if data_type in NUMERIC_TYPES:
                return column_name
        return None

    def describe_table(self, table_name: str) -> TableDescriptor:
        return TableDescriptor(
            name=table_name,
            row_count=self.count_rows(table_name),
            pagination_key=self.find_pagination_key(table_name),
            schema=self._schema,
        )

    def is_skipped(self, table_name: str) -> bool:
        return table_name in self._skip_tables

    def export_table(self, table_name: str, output: TextIO,
                     metadata: Optional[Dict[str, Any]] = None) -> int:
        """Append the table's rows to ``output``; returns the number of rows written."""
        if self.is_skipped(table_name):
            self._logger.log_table_skipped(metadata, table_name)
            return 0

        output.write(f"-- {table_name}\n")

        try:
            table = self.describe_table(table_name)
            strategy = choose_strategy(
                self._connection_provider.get_connection(), table, self._logger, self._fetch_size
            )

            batcher = None
            rows_written = 0
            for columns, rows in strategy.pages():
                if batcher is None:
                    batcher = InsertStatementBatcher(table_name, columns, self._insert_batch_size)
                for row in rows:
                    statement = batcher.add_row(row)
                    if statement:
                        output.write(statement + "\n")
                rows_written += len(rows)
                output.flush()

            if batcher is not None:
                statement = batcher.flush()
                if statement:
                    output.write(statement + "\n")
        except psycopg2.Error as e:
            raise TableExportError(table_name, str(e).strip()) from e
        except OSError as e:
            raise TableExportError(table_name, f"cannot write dump: {e}") from e

        output.write("\n")
        output.flush()

        self._logger.log_table_backup(metadata, table_name, rows_written)
        return rows_written
