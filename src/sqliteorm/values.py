"""
Value model and SQL type mapping.

``SQLValue`` is the only representation that crosses the boundary between
typed records and the storage engine: ``None``, ``int`` (64-bit signed),
``float``, ``str`` or ``bytes``. Booleans travel as ``0``/``1`` and
timestamps as epoch seconds (``float``).

The storage column type of a field is chosen from its declared
``FieldKind`` alone, never from a runtime value, so table DDL can be
generated before any data exists:

    ============  ===========
    FieldKind     Column type
    ============  ===========
    INTEGER       INTEGER
    BOOLEAN       INTEGER
    REAL          REAL
    TEXT          TEXT
    UUID          TEXT
    BLOB          BLOB
    DATETIME      REAL
    ============  ===========
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeAlias
from uuid import UUID

from sqliteorm.exceptions import InvalidOperationError

SQLValue: TypeAlias = None | int | float | str | bytes
"""A single column value as stored by SQLite."""

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ColumnType(Enum):
    """SQLite storage column types used in generated DDL."""

    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"


class FieldKind(Enum):
    """Semantic type of a record field, driving encode/decode and DDL."""

    INTEGER = "integer"
    BOOLEAN = "boolean"
    REAL = "real"
    TEXT = "text"
    UUID = "uuid"
    BLOB = "blob"
    DATETIME = "datetime"

    @property
    def column_type(self) -> ColumnType:
        """Storage column type for this kind."""
        return _COLUMN_TYPES[self]


_COLUMN_TYPES: dict[FieldKind, ColumnType] = {
    FieldKind.INTEGER: ColumnType.INTEGER,
    FieldKind.BOOLEAN: ColumnType.INTEGER,
    FieldKind.REAL: ColumnType.REAL,
    FieldKind.TEXT: ColumnType.TEXT,
    FieldKind.UUID: ColumnType.TEXT,
    FieldKind.BLOB: ColumnType.BLOB,
    FieldKind.DATETIME: ColumnType.REAL,
}

# Exact type lookup, so bool never falls through to int
FIELD_KIND_MAP: dict[type, FieldKind] = {
    bool: FieldKind.BOOLEAN,
    int: FieldKind.INTEGER,
    float: FieldKind.REAL,
    str: FieldKind.TEXT,
    UUID: FieldKind.UUID,
    bytes: FieldKind.BLOB,
    datetime: FieldKind.DATETIME,
}


def field_kind_for(python_type: type) -> FieldKind | None:
    """
    Get the FieldKind for a declared Python type.

    Args:
        python_type: Base type of a field annotation (Optional already removed)

    Returns:
        The matching FieldKind, or None if the type is not supported

    Example:
        >>> field_kind_for(bool)
        <FieldKind.BOOLEAN: 'boolean'>
        >>> field_kind_for(dict) is None
        True
    """
    return FIELD_KIND_MAP.get(python_type)


def datetime_to_epoch(value: datetime) -> float:
    """Convert a datetime to epoch seconds, treating naive values as UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.timestamp()


def epoch_to_datetime(value: float) -> datetime:
    """Convert epoch seconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value, UTC)


def to_sql_value(value: Any) -> SQLValue:
    """
    Normalize a Python value into an SQLValue for use as a binding.

    Args:
        value: Value supplied by a caller (predicate operand, identity, ...)

    Returns:
        The equivalent SQLValue

    Raises:
        InvalidOperationError: If the value has no SQL representation or an
            integer does not fit in 64 bits

    Example:
        >>> to_sql_value(True)
        1
        >>> to_sql_value(UUID("12345678-1234-5678-1234-567812345678"))
        '12345678-1234-5678-1234-567812345678'
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, int):
        if not INT64_MIN <= value <= INT64_MAX:
            raise InvalidOperationError(f"integer {value} does not fit in 64 bits")
        return value
    if isinstance(value, (float, str, bytes)):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return datetime_to_epoch(value)
    if isinstance(value, Enum):
        return to_sql_value(value.value)
    raise InvalidOperationError(f"unsupported value type {type(value).__name__}")


def storage_class(value: SQLValue) -> str:
    """
    Name the SQLite storage class of a value, for error messages.

    Example:
        >>> storage_class(1.5)
        'REAL'
    """
    if value is None:
        return "NULL"
    if isinstance(value, int):
        return "INTEGER"
    if isinstance(value, float):
        return "REAL"
    if isinstance(value, str):
        return "TEXT"
    if isinstance(value, bytes):
        return "BLOB"
    return type(value).__name__


__all__ = [
    "SQLValue",
    "ColumnType",
    "FieldKind",
    "FIELD_KIND_MAP",
    "INT64_MIN",
    "INT64_MAX",
    "field_kind_for",
    "to_sql_value",
    "storage_class",
    "datetime_to_epoch",
    "epoch_to_datetime",
]
