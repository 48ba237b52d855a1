from typing import Optional, Sequence

from services.backup.serializer import format_row, quote_identifier

INSERT_BATCH_SIZE = 1000


class InsertStatementBatcher:
    """Groups rows of one table into multi-row INSERT statements.

    A statement holds at most ``batch_size`` value tuples. Only the rows of
    the statement being built are kept in memory.
    """

    def __init__(self, table_name: str, columns: Sequence[str], batch_size: int = INSERT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.table_name = table_name
        self.columns = list(columns)
        self.batch_size = batch_size
        self._parts: list[str] = []
        self._pending_rows = 0

    @property
    def pending_rows(self) -> int:
        return self._pending_rows

    @property
    def is_full(self) -> bool:
        return self._pending_rows >= self.batch_size

    def begin_statement(self, first_row: Sequence) -> None:
        if self._pending_rows:
            raise RuntimeError("Previous statement was not flushed")
        column_list = ", ".join(quote_identifier(column) for column in self.columns)
        self._parts = [
            f"INSERT INTO {quote_identifier(self.table_name)} ({column_list}) VALUES {format_row(first_row)}"
        ]
        self._pending_rows = 1

    def append_row(self, row: Sequence) -> None:
        if not self._pending_rows:
            raise RuntimeError("append_row() called before begin_statement()")
        self._parts.append(f", {format_row(row)}")
        self._pending_rows += 1

    def flush(self) -> Optional[str]:
        """Close the current statement and return it, or None when empty."""
        if not self._pending_rows:
            return None
        statement = "".join(self._parts) + ";"
        self._parts = []
        self._pending_rows = 0
        return statement

    def add_row(self, row: Sequence) -> Optional[str]:
        """Add a row; returns the finished statement once the batch is full."""
        if self._pending_rows:
            self.append_row(row)
        else:
            self.begin_statement(row)
        if self.is_full:
            return self.flush()
        return None
