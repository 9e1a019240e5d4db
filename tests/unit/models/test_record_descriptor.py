"""
Unit tests for Record declaration and RecordDescriptor construction.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

import pytest
from pydantic import Field, ValidationError

from sqliteorm.exceptions import RecordDefinitionError
from sqliteorm.models.base import Index, Record, UniqueConstraint
from sqliteorm.values import ColumnType, FieldKind
from tests.fixtures import Contact, ShoppingItem, Tag


class Category(Record):
    id: int = 0
    title: str


class Box(Record):
    id: int = 0


class HTTPEndpoint(Record):
    id: str
    url: str


class TestTableNames:
    @pytest.mark.parametrize(
        ("record", "table"),
        [
            (ShoppingItem, "shopping_items"),
            (Category, "categories"),
            (Box, "boxes"),
            (HTTPEndpoint, "http_endpoints"),
            (Tag, "tags"),
        ],
    )
    def test_derived_from_class_name(self, record: type[Record], table: str) -> None:
        assert record.table_name() == table

    def test_explicit_table_name(self) -> None:
        class Legacy(Record):
            __table_name__ = "tbl_legacy"
            id: int = 0

        assert Legacy.table_name() == "tbl_legacy"
        assert Legacy.descriptor().table_name == "tbl_legacy"


class TestDescriptor:
    def test_fields_in_declaration_order(self) -> None:
        descriptor = ShoppingItem.descriptor()
        assert [f.name for f in descriptor.fields] == [
            "id",
            "name",
            "quantity",
            "price",
            "purchased",
            "note",
            "created_at",
        ]
        assert descriptor.record_name == "ShoppingItem"

    def test_kinds_and_nullability(self) -> None:
        descriptor = ShoppingItem.descriptor()
        kinds = {f.name: (f.kind, f.nullable) for f in descriptor.fields}
        assert kinds == {
            "id": (FieldKind.INTEGER, False),
            "name": (FieldKind.TEXT, False),
            "quantity": (FieldKind.INTEGER, False),
            "price": (FieldKind.REAL, False),
            "purchased": (FieldKind.BOOLEAN, False),
            "note": (FieldKind.TEXT, True),
            "created_at": (FieldKind.DATETIME, False),
        }

    def test_column_types(self) -> None:
        descriptor = Tag.descriptor()
        assert [f.column_type for f in descriptor.fields] == [
            ColumnType.TEXT,
            ColumnType.TEXT,
            ColumnType.BLOB,
        ]

    def test_identity(self) -> None:
        descriptor = ShoppingItem.descriptor()
        assert descriptor.identity.name == "id"
        assert descriptor.identity.is_identity is True
        assert descriptor.identity_column == "id"

    def test_custom_identity_and_column_override(self) -> None:
        descriptor = Contact.descriptor()
        assert descriptor.identity.name == "contact_id"
        assert descriptor.column_names == ["contact_id", "email", "balance", "last_seen"]
        assert descriptor.column_for("email_address") == "email"
        assert descriptor.column_for("unknown") == "unknown"
        email = descriptor.field_for_column("email")
        assert email is not None and email.name == "email_address"

    def test_defaults(self) -> None:
        descriptor = ShoppingItem.descriptor()
        quantity = descriptor.get_field("quantity")
        created_at = descriptor.get_field("created_at")
        name = descriptor.get_field("name")
        assert quantity is not None and quantity.default == 1 and quantity.has_default
        assert created_at is not None and created_at.has_factory and created_at.has_default
        assert name is not None and not name.has_default

    def test_descriptor_is_cached(self) -> None:
        assert ShoppingItem.descriptor() is ShoppingItem.descriptor()

    def test_optional_spellings(self) -> None:
        class Spellings(Record):
            id: int = 0
            a: Optional[int] = None  # noqa: UP007
            b: int | None = None

        descriptor = Spellings.descriptor()
        assert all(f.nullable for f in descriptor.fields[1:])

    def test_identity_value(self) -> None:
        assert Contact(contact_id=5, email_address="a@b.c").identity_value() == 5

    def test_adapter_keeps_constraints(self) -> None:
        class Bounded(Record):
            id: int = 0
            level: int = Field(default=0, ge=0)

        level = Bounded.descriptor().get_field("level")
        assert level is not None and level.adapter is not None
        assert level.adapter.validate_python(3) == 3
        with pytest.raises(ValidationError):
            level.adapter.validate_python(-1)


class TestInvalidDefinitions:
    def test_missing_identity(self) -> None:
        class NoId(Record):
            name: str

        with pytest.raises(RecordDefinitionError, match="identity field 'id' is not declared"):
            NoId.descriptor()

    def test_unsupported_identity_kind(self) -> None:
        class FloatId(Record):
            id: float = 0.0

        with pytest.raises(RecordDefinitionError, match="must be int, str or UUID"):
            FloatId.descriptor()

    def test_unsupported_field_type(self) -> None:
        class Nested(Record):
            id: int = 0
            data: dict[str, int] = Field(default_factory=dict)

        with pytest.raises(RecordDefinitionError, match="unsupported type"):
            Nested.descriptor()

    def test_ambiguous_union(self) -> None:
        class Either(Record):
            id: int = 0
            value: int | str = 0

        with pytest.raises(RecordDefinitionError, match="unsupported type"):
            Either.descriptor()

    def test_invalid_table_name(self) -> None:
        class Dashed(Record):
            __table_name__ = "bad-name"
            id: int = 0

        with pytest.raises(RecordDefinitionError, match="not a valid identifier"):
            Dashed.descriptor()

    def test_override_of_unknown_field(self) -> None:
        class Stray(Record):
            __column_names__ = {"missing": "m"}
            id: int = 0

        with pytest.raises(RecordDefinitionError, match="unknown fields: missing"):
            Stray.descriptor()

    def test_two_fields_one_column(self) -> None:
        class Clash(Record):
            __column_names__ = {"a": "b"}
            id: int = 0
            a: int = 0
            b: int = 0

        with pytest.raises(RecordDefinitionError, match="same column"):
            Clash.descriptor()

    def test_index_on_unknown_field(self) -> None:
        class BadIndex(Record):
            __indexes__ = [Index(("nope",))]
            id: int = 0

        with pytest.raises(RecordDefinitionError, match="Index references unknown fields"):
            BadIndex.descriptor()

    def test_constraint_on_unknown_field(self) -> None:
        class BadUnique(Record):
            __unique_constraints__ = [UniqueConstraint(("nope",))]
            id: int = 0

        with pytest.raises(RecordDefinitionError, match="UniqueConstraint"):
            BadUnique.descriptor()

    def test_empty_index_rejected(self) -> None:
        with pytest.raises(ValueError):
            Index(())
        with pytest.raises(ValueError):
            UniqueConstraint([])


class TestSupportedKinds:
    def test_every_kind_maps(self) -> None:
        class Everything(Record):
            id: UUID
            flag: bool
            count: int
            ratio: float
            label: str
            raw: bytes
            at: datetime

        kinds = [f.kind for f in Everything.descriptor().fields]
        assert kinds == [
            FieldKind.UUID,
            FieldKind.BOOLEAN,
            FieldKind.INTEGER,
            FieldKind.REAL,
            FieldKind.TEXT,
            FieldKind.BLOB,
            FieldKind.DATETIME,
        ]
