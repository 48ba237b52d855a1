"""
Bounded-size reading of a whole table.

Two strategies exist:

* ``CursorPagination`` pages on a numeric key: each query asks for rows with
  a key greater than the last one written. Rows are never read twice and
  concurrent inserts do not shift pages.
* ``OffsetPagination`` is used when a table has no numeric key. It pages with
  LIMIT/OFFSET up to the row count captured before the first fetch. Rows
  inserted or deleted while it runs can move between pages, so a busy table
  may come out with duplicated or missing rows. This is a known limitation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Tuple

from services.backup.serializer import qualified_name, quote_identifier
from services.interfaces import ILogger
from services.models import TableDescriptor

FETCH_BATCH_SIZE = 10_000

Page = Tuple[List[str], List[tuple]]


@dataclass
class CursorPosition:
    last_seen: Optional[Any] = None


@dataclass
class OffsetPosition:
    offset: int = 0


class PaginationStrategy(ABC):
    name = "abstract"

    def __init__(self, connection, table: TableDescriptor, logger: ILogger,
                 fetch_size: int = FETCH_BATCH_SIZE):
        if fetch_size < 1:
            raise ValueError("fetch_size must be at least 1")
        self._connection = connection
        self._table = table
        self._logger = logger
        self.fetch_size = fetch_size
        self.fetch_count = 0
        self.rows_read = 0

    @property
    def table_reference(self) -> str:
        return qualified_name(self._table.schema, self._table.name)

    def _fetch(self, query: str, params: tuple) -> Page:
        with self._connection.cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall()
            columns = [column[0] for column in cur.description] if cur.description else []
        self.fetch_count += 1
        self.rows_read += len(rows)
        return columns, rows

    def _report_progress(self) -> None:
        total = self._table.row_count
        percent = min(100.0, self.rows_read / total * 100) if total else 100.0
        self._logger.info(
            f"{self._table.name}: {percent:.1f}% ({self.rows_read}/{total} rows, fetch #{self.fetch_count})"
        )

    @abstractmethod
    def pages(self) -> Iterator[Page]:
        """Yield ``(columns, rows)`` pages until the table is exhausted."""


class CursorPagination(PaginationStrategy):
    name = "cursor"

    def __init__(self, connection, table: TableDescriptor, logger: ILogger,
                 fetch_size: int = FETCH_BATCH_SIZE):
        if not table.pagination_key:
            raise ValueError(f"Table '{table.name}' has no pagination key")
        super().__init__(connection, table, logger, fetch_size)
        self.position = CursorPosition()

    def _next_query(self) -> Tuple[str, tuple]:
        key = quote_identifier(self._table.pagination_key)
        if self.position.last_seen is None:
            return (f"SELECT * FROM {self.table_reference} ORDER BY {key} LIMIT %s",
                    (self.fetch_size,))
        return (f"SELECT * FROM {self.table_reference} WHERE {key} > %s ORDER BY {key} LIMIT %s",
                (self.position.last_seen, self.fetch_size))

    def pages(self) -> Iterator[Page]:
        while self.rows_read < self._table.row_count:
            query, params = self._next_query()
            columns, rows = self._fetch(query, params)
            if not rows:
                break

            key_index = columns.index(self._table.pagination_key)
            self.position.last_seen = rows[-1][key_index]
            self._report_progress()
            yield columns, rows

            if len(rows) < self.fetch_size:
                break


class OffsetPagination(PaginationStrategy):
    name = "offset"

    def __init__(self, connection, table: TableDescriptor, logger: ILogger,
                 fetch_size: int = FETCH_BATCH_SIZE):
        super().__init__(connection, table, logger, fetch_size)
        self.position = OffsetPosition()

    def pages(self) -> Iterator[Page]:
        query = f"SELECT * FROM {self.table_reference} LIMIT %s OFFSET %s"
        while self.position.offset < self._table.row_count:
            columns, rows = self._fetch(query, (self.fetch_size, self.position.offset))
            self.position.offset += self.fetch_size
            if not rows:
                break
            self._report_progress()
            yield columns, rows


def choose_strategy(connection, table: TableDescriptor, logger: ILogger,
                    fetch_size: int = FETCH_BATCH_SIZE) -> PaginationStrategy:
    if table.pagination_key:
        logger.debug(f"{table.name}: cursor pagination on column '{table.pagination_key}'")
        return CursorPagination(connection, table, logger, fetch_size)

    logger.warning(
        f"{table.name}: no numeric key found, falling back to offset pagination "
        f"(rows changed during the export may be duplicated or missed)"
    )
    return OffsetPagination(connection, table, logger, fetch_size)
