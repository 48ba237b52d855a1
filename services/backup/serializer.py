"""
Conversion of column values into PostgreSQL literals for INSERT dumps.

``format_value`` never raises: a value of a type it does not know is written
as a quoted string, so one odd value cannot abort the export of a table.

Known limitation: psycopg2 decodes a json/jsonb array into a Python list, which
is written as ``ARRAY[...]``. Replaying such a row into a jsonb column fails;
only json objects (dicts) come out as ``'...'::jsonb``.
"""

import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any


def quote_identifier(name: str) -> str:
    return '"' + str(name).replace('"', '""') + '"'


def qualified_name(schema: str, name: str) -> str:
    return quote_identifier(schema) + "." + quote_identifier(name)


def quote_string(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _format_number(value) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        if math.isnan(value):
            return "'NaN'"
        return "'Infinity'" if value > 0 else "'-Infinity'"
    if isinstance(value, Decimal) and not value.is_finite():
        if value.is_nan():
            return "'NaN'"
        return "'Infinity'" if value > 0 else "'-Infinity'"
    return str(value)


def _format_sequence(values) -> str:
    if not values:
        return "'{}'"
    return "ARRAY[" + ", ".join(format_value(item) for item in values) + "]"


def _format_fallback(value: Any) -> str:
    try:
        text = str(value)
    except Exception:
        text = repr(value)
    return quote_string(text)


def format_value(value: Any) -> str:
    if value is None:
        return "NULL"

    # bool is a subclass of int
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"

    if isinstance(value, (int, float, Decimal)):
        return _format_number(value)

    if isinstance(value, (datetime, date, time)):
        return quote_string(value.isoformat())

    if isinstance(value, (list, tuple)):
        return _format_sequence(value)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return "E'\\\\x" + bytes(value).hex() + "'"

    if isinstance(value, dict):
        try:
            encoded = json.dumps(value, default=str)
        except (TypeError, ValueError):
            return _format_fallback(value)
        return quote_string(encoded) + "::jsonb"

    return _format_fallback(value)


def format_row(values) -> str:
    return "(" + ", ".join(format_value(value) for value in values) + ")"
