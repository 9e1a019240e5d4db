"""
Unit tests for the value model.

Tests for:
- FieldKind -> column type mapping
- Declared type lookup
- Binding normalization (to_sql_value)
- Epoch conversion of datetimes
"""

from datetime import UTC, datetime, timedelta, timezone
from enum import Enum
from uuid import UUID

import pytest

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.values import (
    INT64_MAX,
    INT64_MIN,
    ColumnType,
    FieldKind,
    datetime_to_epoch,
    epoch_to_datetime,
    field_kind_for,
    storage_class,
    to_sql_value,
)


class Color(Enum):
    RED = "red"
    BLUE = "blue"


class TestFieldKind:
    """Tests for the kind -> column type table."""

    @pytest.mark.parametrize(
        ("kind", "column_type"),
        [
            (FieldKind.INTEGER, ColumnType.INTEGER),
            (FieldKind.BOOLEAN, ColumnType.INTEGER),
            (FieldKind.REAL, ColumnType.REAL),
            (FieldKind.TEXT, ColumnType.TEXT),
            (FieldKind.UUID, ColumnType.TEXT),
            (FieldKind.BLOB, ColumnType.BLOB),
            (FieldKind.DATETIME, ColumnType.REAL),
        ],
    )
    def test_column_type(self, kind: FieldKind, column_type: ColumnType) -> None:
        assert kind.column_type is column_type

    def test_bool_is_not_integer(self) -> None:
        """bool is looked up exactly, never as its int base class."""
        assert field_kind_for(bool) is FieldKind.BOOLEAN
        assert field_kind_for(int) is FieldKind.INTEGER

    def test_unsupported_type(self) -> None:
        assert field_kind_for(dict) is None
        assert field_kind_for(list) is None


class TestToSQLValue:
    """Tests for binding normalization."""

    def test_none(self) -> None:
        assert to_sql_value(None) is None

    def test_bool_becomes_integer(self) -> None:
        assert to_sql_value(True) == 1
        assert to_sql_value(False) == 0
        assert type(to_sql_value(True)) is int

    def test_int_bounds(self) -> None:
        assert to_sql_value(INT64_MAX) == INT64_MAX
        assert to_sql_value(INT64_MIN) == INT64_MIN

    def test_int_overflow_rejected(self) -> None:
        with pytest.raises(InvalidOperationError, match="64 bits"):
            to_sql_value(INT64_MAX + 1)

    def test_scalars_pass_through(self) -> None:
        assert to_sql_value(1.5) == 1.5
        assert to_sql_value("text") == "text"
        assert to_sql_value(b"\x00\x01") == b"\x00\x01"

    def test_bytearray_becomes_bytes(self) -> None:
        assert to_sql_value(bytearray(b"ab")) == b"ab"
        assert to_sql_value(memoryview(b"ab")) == b"ab"

    def test_uuid_becomes_text(self) -> None:
        value = UUID("12345678-1234-5678-1234-567812345678")
        assert to_sql_value(value) == "12345678-1234-5678-1234-567812345678"

    def test_datetime_becomes_epoch(self) -> None:
        value = datetime(2024, 1, 1, tzinfo=UTC)
        assert to_sql_value(value) == value.timestamp()

    def test_enum_uses_value(self) -> None:
        assert to_sql_value(Color.RED) == "red"

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(InvalidOperationError, match="unsupported value type dict"):
            to_sql_value({"a": 1})


class TestEpochConversion:
    """Tests for datetime <-> epoch seconds."""

    def test_naive_treated_as_utc(self) -> None:
        naive = datetime(2024, 5, 1, 12, 0, 0)
        aware = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
        assert datetime_to_epoch(naive) == datetime_to_epoch(aware)

    def test_offset_respected(self) -> None:
        plus_two = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        utc = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)
        assert datetime_to_epoch(plus_two) == datetime_to_epoch(utc)

    def test_epoch_decodes_to_aware_utc(self) -> None:
        decoded = epoch_to_datetime(0)
        assert decoded == datetime(1970, 1, 1, tzinfo=UTC)
        assert decoded.tzinfo is UTC

    def test_fractional_seconds_survive(self) -> None:
        value = datetime(2024, 5, 1, 12, 0, 0, 250000, tzinfo=UTC)
        assert epoch_to_datetime(datetime_to_epoch(value)) == value


class TestStorageClass:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, "NULL"), (1, "INTEGER"), (1.0, "REAL"), ("a", "TEXT"), (b"a", "BLOB")],
    )
    def test_names(self, value: object, expected: str) -> None:
        assert storage_class(value) == expected  # type: ignore[arg-type]
