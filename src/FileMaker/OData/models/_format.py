# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Literal and identifier formatting shared by filters, keys and writes."""

from __future__ import annotations

import datetime as _dt
import re
from decimal import Decimal
from typing import Any, Union
from urllib.parse import quote

from ..common.constants import FIELD_ID_PREFIX, TABLE_ID_PREFIX

# Characters kept verbatim in query values and key segments.
_URL_SAFE = " $,()';=:/@*!?\"~"

_BARE_IDENTIFIER = re.compile(r"^[a-zA-Z][a-zA-Z0-9]*$")

# Full date-time with zone. Date-only values and a trailing "T" do not match.
_ISO_DATETIME = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{1,9})?)?(Z|[+-]\d{2}:\d{2})$"
)


def needs_field_quoting(name: str) -> bool:
    """
    Whether a field identifier must be double-quoted in a query.

    ``id`` is reserved, and names with whitespace, underscores or any other
    non-alphanumeric character must be quoted. Entity ids are never quoted.
    """
    if name.startswith(FIELD_ID_PREFIX) or name.startswith(TABLE_ID_PREFIX):
        return False
    if name == "id":
        return True
    if "_" in name or any(ch.isspace() for ch in name):
        return True
    return not _BARE_IDENTIFIER.match(name)


def quote_identifier(name: str) -> str:
    return f'"{name}"' if needs_field_quoting(name) else name


def escape_string(value: str) -> str:
    """Escape single quotes by doubling them."""
    return value.replace("'", "''")


def is_iso_datetime(value: str) -> bool:
    return bool(_ISO_DATETIME.match(value))


def format_timestamp(value: _dt.datetime) -> str:
    """UTC ISO-8601 with millisecond precision, e.g. ``2023-01-01T00:00:00.000Z``.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is not None:
        value = value.astimezone(_dt.timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def format_temporal(value: Any, kind: str) -> str:
    """Render a date/time value for a ``date``, ``time`` or ``timestamp`` field."""
    if isinstance(value, _dt.datetime):
        full = format_timestamp(value)
        if kind == "date":
            return full[:10]
        if kind == "time":
            return full[11:19]
        return full
    if isinstance(value, _dt.date):
        return value.isoformat()
    if isinstance(value, _dt.time):
        return value.replace(microsecond=0).isoformat()
    return str(value)


def format_literal(value: Any) -> str:
    """
    Render a Python value as an OData literal.

    ``None`` -> ``null``; booleans -> ``true``/``false``; numbers bare;
    dates and datetimes bare ISO-8601; strings single-quoted with embedded
    quotes doubled, except strings that are strict ISO date-times.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, _dt.datetime):
        return format_timestamp(value)
    if isinstance(value, _dt.date):
        return value.isoformat()
    if isinstance(value, _dt.time):
        return value.replace(microsecond=0).isoformat()
    text = str(value)
    if is_iso_datetime(text):
        return text
    return f"'{escape_string(text)}'"


def format_key(key: Union[str, int]) -> str:
    """Render a record key for ``/{table}({key})``: numbers bare, strings quoted."""
    if isinstance(key, bool):
        raise TypeError("record key must be str or int")
    if isinstance(key, (int, float, Decimal)):
        return str(key)
    return f"'{escape_string(str(key))}'"


def encode_url_value(text: str) -> str:
    """
    Percent-encode a query option value or key segment.

    OData punctuation is kept. ``&``, ``#``, ``+``, ``%`` and non-ASCII text
    are encoded; spaces and double quotes are left to the HTTP layer.

    Example::

        encode_url_value("name eq 'Tom & Jerry #2'")
        # "name eq 'Tom %26 Jerry %232'"
    """
    return quote(text, safe=_URL_SAFE)
