"""
Encoder / decoder between records and rows.

``encode_record`` turns a record into ``{column: SQLValue}`` applying column
overrides; ``decode_record`` is the inverse. Conversions are driven only by
each field's declared ``FieldKind``:

- BOOLEAN is stored as INTEGER 0/1 and only decoded from 0 or 1
- DATETIME is stored as REAL epoch seconds and decoded to an aware UTC datetime
  (naive datetimes are rejected when encoding)
- UUID is stored as its canonical hyphenated TEXT form

A stored value that cannot be coerced to the declared type raises
``TypeMismatchError`` naming the column; nothing is silently skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import UUID

from pydantic import ValidationError

from sqliteorm.exceptions import InvalidDataError, MissingColumnError, TypeMismatchError
from sqliteorm.models.base import FieldDescriptor, Record, RecordDescriptor
from sqliteorm.values import (
    INT64_MAX,
    INT64_MIN,
    FieldKind,
    SQLValue,
    datetime_to_epoch,
    epoch_to_datetime,
    storage_class,
)

logger = logging.getLogger(__name__)

TRecord = TypeVar("TRecord", bound=Record)


def encode_value(field: FieldDescriptor, value: Any) -> SQLValue:
    """
    Encode one field value according to its declared kind.

    Raises:
        InvalidDataError: If the value does not match the declared kind, an
            integer does not fit in 64 bits, or a datetime is naive
    """
    if value is None:
        return None

    kind = field.kind
    if kind is FieldKind.BOOLEAN and isinstance(value, bool):
        return 1 if value else 0
    if kind is FieldKind.INTEGER and isinstance(value, int) and not isinstance(value, bool):
        if not INT64_MIN <= value <= INT64_MAX:
            raise InvalidDataError(f"{field.name}: integer {value} does not fit in 64 bits")
        return value
    if kind is FieldKind.REAL and isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if kind is FieldKind.TEXT and isinstance(value, str):
        return value
    if kind is FieldKind.UUID and isinstance(value, UUID):
        return str(value)
    if kind is FieldKind.BLOB and isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if kind is FieldKind.DATETIME and isinstance(value, datetime):
        # Stored values decode as aware UTC; a naive value could not round-trip
        if value.tzinfo is None or value.utcoffset() is None:
            raise InvalidDataError(
                f"{field.name}: naive datetime {value.isoformat()} has no timezone"
            )
        return datetime_to_epoch(value)

    raise InvalidDataError(
        f"{field.name}: cannot encode {type(value).__name__} as {kind.value}"
    )


def encode_record(record: Record) -> dict[str, SQLValue]:
    """
    Encode a record into a column -> value mapping.

    Every field is present in the result, keyed by its column name, in
    declaration order.

    Example:
        >>> encode_record(ShoppingItem(id=3, name="Apples", purchased=True))
        {'id': 3, 'name': 'Apples', 'quantity': 1, 'purchased': 1}
    """
    descriptor = type(record).descriptor()
    return {
        field.column: encode_value(field, getattr(record, field.name))
        for field in descriptor.fields
    }


def decode_value(field: FieldDescriptor, value: SQLValue) -> Any:
    """
    Decode one stored value into the field's declared type.

    Raises:
        TypeMismatchError: If the stored value cannot be coerced
    """
    if value is None:
        if field.nullable:
            return None
        raise _mismatch(field, value)

    kind = field.kind
    if kind is FieldKind.BOOLEAN:
        if isinstance(value, int) and value in (0, 1):
            return value == 1
    elif kind is FieldKind.INTEGER:
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
    elif kind is FieldKind.REAL:
        if isinstance(value, (int, float)):
            return float(value)
    elif kind is FieldKind.TEXT:
        if isinstance(value, str):
            return value
    elif kind is FieldKind.UUID:
        if isinstance(value, str):
            try:
                return UUID(value)
            except ValueError:
                raise _mismatch(field, value) from None
    elif kind is FieldKind.BLOB:
        if isinstance(value, bytes):
            return value
    elif kind is FieldKind.DATETIME:
        return _decode_datetime(field, value)

    raise _mismatch(field, value)


def _decode_datetime(field: FieldDescriptor, value: SQLValue) -> datetime:
    if isinstance(value, (int, float)):
        try:
            return epoch_to_datetime(value)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidDataError(f"{field.column}: timestamp {value} out of range") from e
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            raise _mismatch(field, value) from None
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise _mismatch(field, value)


def _mismatch(field: FieldDescriptor, value: SQLValue) -> TypeMismatchError:
    return TypeMismatchError(field.column, field.kind.value, storage_class(value))


def decode_record(record_cls: type[TRecord], row: Mapping[str, SQLValue]) -> TRecord:
    """
    Decode a row into an instance of ``record_cls``.

    Columns that are not fields of the record are ignored. A missing column
    is allowed only when its field declares a default.

    Raises:
        MissingColumnError: If a column without a default is absent
        TypeMismatchError: If a stored value cannot be coerced
        InvalidDataError: If the decoded values fail the record's validation
    """
    descriptor: RecordDescriptor = record_cls.descriptor()
    payload: dict[str, Any] = {}
    for field in descriptor.fields:
        if field.column not in row:
            if field.has_default:
                continue
            raise MissingColumnError(field.column)
        payload[field.name] = decode_value(field, row[field.column])

    try:
        return record_cls.model_validate(payload)
    except ValidationError as e:
        logger.debug("Row failed validation for %s: %s", descriptor.record_name, e)
        raise InvalidDataError(f"{descriptor.record_name}: {e}") from e


def decode_rows(record_cls: type[TRecord], rows: list[dict[str, SQLValue]]) -> list[TRecord]:
    """Decode every row, aborting on the first failure."""
    return [decode_record(record_cls, row) for row in rows]


__all__ = [
    "encode_value",
    "encode_record",
    "decode_value",
    "decode_record",
    "decode_rows",
]
