import math

import pytest

from services.backup.statements import InsertStatementBatcher


def collect(batcher, rows):
    statements = [statement for statement in (batcher.add_row(row) for row in rows) if statement]
    last = batcher.flush()
    if last:
        statements.append(last)
    return statements


@pytest.mark.parametrize("row_count, limit", [(1, 1000), (999, 1000), (1000, 1000), (1001, 1000), (7, 3)])
def test_statement_count_is_ceiling_of_rows_over_limit(row_count, limit):
    batcher = InsertStatementBatcher("items", ["id"], batch_size=limit)
    statements = collect(batcher, [(i,) for i in range(row_count)])
    assert len(statements) == math.ceil(row_count / limit)


def test_rows_keep_their_order():
    batcher = InsertStatementBatcher("items", ["id"], batch_size=2)
    statements = collect(batcher, [(1,), (2,), (3,)])
    assert statements == [
        'INSERT INTO "items" ("id") VALUES (1), (2);',
        'INSERT INTO "items" ("id") VALUES (3);',
    ]


def test_statement_shape():
    batcher = InsertStatementBatcher("users", ["id", "name"])
    batcher.add_row((1, "Alice"))
    batcher.add_row((2, None))
    assert batcher.pending_rows == 2
    assert batcher.flush() == 'INSERT INTO "users" ("id", "name") VALUES (1, \'Alice\'), (2, NULL);'
    assert batcher.pending_rows == 0


def test_flush_without_rows_returns_none():
    assert InsertStatementBatcher("empty", ["id"]).flush() is None


def test_append_before_begin_is_rejected():
    with pytest.raises(RuntimeError):
        InsertStatementBatcher("t", ["id"]).append_row((1,))


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        InsertStatementBatcher("t", ["id"], batch_size=0)
