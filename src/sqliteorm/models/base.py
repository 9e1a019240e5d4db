"""
Record declaration and the per-type record descriptor.

A record type is a pydantic model subclassing ``Record``. Its statically
declared field annotations, defaults and class-level metadata are turned
once into a ``RecordDescriptor`` which every other layer (schema, codec,
compiler, repository) consumes read-only. Nothing downstream inspects the
model class again.
"""

from __future__ import annotations

import re
import types
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, TypeAdapter
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from sqliteorm.exceptions import RecordDefinitionError
from sqliteorm.values import ColumnType, FieldKind, field_kind_for

IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

IDENTITY_KINDS = (FieldKind.INTEGER, FieldKind.TEXT, FieldKind.UUID)


def _camel_to_snake(name: str) -> str:
    """
    Convert CamelCase to snake_case.

    Examples:
        >>> _camel_to_snake("ShoppingItem")
        'shopping_item'
        >>> _camel_to_snake("HTTPResponse")
        'http_response'
    """
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _pluralize(name: str) -> str:
    """
    Simple English pluralization.

    Handles common cases but not irregular plurals.

    Examples:
        >>> _pluralize("category")
        'categories'
        >>> _pluralize("item")
        'items'
        >>> _pluralize("batch")
        'batches'
    """
    if name.endswith("y") and len(name) > 1 and name[-2] not in "aeiou":
        return name[:-1] + "ies"
    if name.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"


def _is_optional(annotation: Any) -> bool:
    """Check if a type annotation is a Union with None."""
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        return type(None) in get_args(annotation)
    return False


def _extract_type(annotation: Any) -> Any:
    """
    Extract the base type from ``T``, ``T | None`` or ``Optional[T]``.

    Unions of more than one non-None type are returned unchanged so they
    are rejected as unsupported.
    """
    origin = get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0]
    return annotation


@dataclass(frozen=True)
class Index:
    """
    Declared index over one or more columns.

    Attributes:
        columns: Field names covered by the index, in order
        name: Index name (default: ``idx_<table>_<columns>``)
        unique: Create a UNIQUE index
    """

    columns: tuple[str, ...]
    name: str | None = None
    unique: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        if not self.columns:
            raise ValueError("Index requires at least one column")


@dataclass(frozen=True)
class UniqueConstraint:
    """Declared table-level UNIQUE constraint, inlined into CREATE TABLE."""

    columns: tuple[str, ...]
    name: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "columns", tuple(self.columns))
        if not self.columns:
            raise ValueError("UniqueConstraint requires at least one column")


@dataclass(frozen=True)
class FieldDescriptor:
    """
    Mapping facts for one record field.

    Attributes:
        name: Field name on the record
        column: Physical column name
        kind: Declared semantic type
        nullable: Whether the field accepts None (column allows NULL)
        default: Declared static default, or PydanticUndefined if there is none
        has_factory: Whether the default comes from a default_factory
        is_identity: Whether this is the primary key field
        adapter: Validator for the full declared type, constraints included
    """

    name: str
    column: str
    kind: FieldKind
    nullable: bool
    default: Any = PydanticUndefined
    has_factory: bool = False
    is_identity: bool = False
    adapter: TypeAdapter[Any] | None = field(default=None, compare=False, repr=False)

    @property
    def column_type(self) -> ColumnType:
        return self.kind.column_type

    @property
    def has_default(self) -> bool:
        return self.has_factory or self.default is not PydanticUndefined


@dataclass(frozen=True)
class RecordDescriptor:
    """
    Everything the persistence layer knows about a record type.

    Attributes:
        record_name: Record class name, used in error messages
        table_name: Table the records live in
        fields: Field descriptors in declaration order
        identity: Descriptor of the primary key field
        indexes: Declared indexes
        unique_constraints: Declared table-level unique constraints
    """

    record_name: str
    table_name: str
    fields: tuple[FieldDescriptor, ...]
    identity: FieldDescriptor
    indexes: tuple[Index, ...] = ()
    unique_constraints: tuple[UniqueConstraint, ...] = ()
    _by_name: dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, compare=False, repr=False
    )
    _by_column: dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        for descriptor in self.fields:
            self._by_name[descriptor.name] = descriptor
            self._by_column[descriptor.column] = descriptor

    @property
    def column_names(self) -> list[str]:
        return [descriptor.column for descriptor in self.fields]

    @property
    def identity_column(self) -> str:
        return self.identity.column

    def get_field(self, name: str) -> FieldDescriptor | None:
        """Get the descriptor of a field by field name."""
        return self._by_name.get(name)

    def field_for_column(self, column: str) -> FieldDescriptor | None:
        """Get the descriptor of a field by physical column name."""
        return self._by_column.get(column)

    def column_for(self, name: str) -> str:
        """
        Resolve a field name to its column name.

        Names that are not fields of this record (already-physical column
        names, columns of joined tables) pass through unchanged.
        """
        descriptor = self._by_name.get(name)
        return descriptor.column if descriptor is not None else name


_DESCRIPTORS: dict[type, RecordDescriptor] = {}


class Record(BaseModel):
    """
    Base class for persisted record types.

    Subclasses declare their columns as ordinary pydantic fields. Supported
    field types are ``bool``, ``int``, ``float``, ``str``, ``uuid.UUID``,
    ``bytes`` and ``datetime``, each optionally ``| None``.

    Class-level metadata:
        __table_name__: Table name (default: snake_case plural of the class name)
        __identity__: Name of the primary key field (default "id")
        __column_names__: Field name -> column name overrides
        __indexes__: Declared ``Index`` entries
        __unique_constraints__: Declared ``UniqueConstraint`` entries

    An ``int`` identity whose value is 0 or None is assigned by SQLite on
    insert.

    Example:
        >>> class ShoppingItem(Record):
        ...     __indexes__ = [Index(("name",))]
        ...
        ...     id: int = 0
        ...     name: str
        ...     quantity: int = 1
        ...     purchased: bool = False
        ...
        >>> ShoppingItem.table_name()
        'shopping_items'
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )

    __table_name__: ClassVar[str | None] = None
    __identity__: ClassVar[str] = "id"
    __column_names__: ClassVar[dict[str, str]] = {}
    __indexes__: ClassVar[list[Index]] = []
    __unique_constraints__: ClassVar[list[UniqueConstraint]] = []

    @classmethod
    def table_name(cls) -> str:
        """
        Get the table name for this record type.

        Returns __table_name__ if explicitly set, otherwise derives the
        table name from the class name using snake_case and pluralization.
        """
        if cls.__table_name__:
            return cls.__table_name__
        return _pluralize(_camel_to_snake(cls.__name__))

    @classmethod
    def descriptor(cls) -> RecordDescriptor:
        """
        Get the cached RecordDescriptor for this record type.

        Raises:
            RecordDefinitionError: If a field type is unsupported, a name is
                not a valid SQL identifier, or the identity field is missing
        """
        cached = _DESCRIPTORS.get(cls)
        if cached is None:
            cached = _build_descriptor(cls)
            _DESCRIPTORS[cls] = cached
        return cached

    def identity_value(self) -> Any:
        """Current value of the identity field."""
        return getattr(self, type(self).__identity__)


def _check_identifier(record_name: str, name: str, what: str) -> None:
    if not IDENTIFIER_PATTERN.match(name):
        raise RecordDefinitionError(record_name, f"{what} {name!r} is not a valid identifier")


def _build_field(
    record_cls: type[Record],
    name: str,
    info: FieldInfo,
    is_identity: bool,
) -> FieldDescriptor:
    record_name = record_cls.__name__
    annotation = info.annotation
    base_type = _extract_type(annotation)
    kind = field_kind_for(base_type) if isinstance(base_type, type) else None
    if kind is None:
        raise RecordDefinitionError(
            record_name, f"field {name!r} has unsupported type {annotation!r}"
        )

    column = record_cls.__column_names__.get(name, name)
    _check_identifier(record_name, column, "column")

    if info.metadata:
        adapter: TypeAdapter[Any] = TypeAdapter(Annotated[(annotation, *info.metadata)])
    else:
        adapter = TypeAdapter(annotation)

    default = info.default if info.default_factory is None else PydanticUndefined

    return FieldDescriptor(
        name=name,
        column=column,
        kind=kind,
        nullable=_is_optional(annotation),
        default=default,
        has_factory=info.default_factory is not None,
        is_identity=is_identity,
        adapter=adapter,
    )


def _build_descriptor(record_cls: type[Record]) -> RecordDescriptor:
    record_name = record_cls.__name__
    table_name = record_cls.table_name()
    _check_identifier(record_name, table_name, "table name")

    identity_name = record_cls.__identity__
    if identity_name not in record_cls.model_fields:
        raise RecordDefinitionError(
            record_name, f"identity field {identity_name!r} is not declared"
        )

    unknown = set(record_cls.__column_names__) - set(record_cls.model_fields)
    if unknown:
        raise RecordDefinitionError(
            record_name, f"column overrides for unknown fields: {', '.join(sorted(unknown))}"
        )

    fields = tuple(
        _build_field(record_cls, name, info, name == identity_name)
        for name, info in record_cls.model_fields.items()
    )

    columns = [descriptor.column for descriptor in fields]
    if len(set(columns)) != len(columns):
        raise RecordDefinitionError(record_name, "two fields map to the same column")

    identity = next(descriptor for descriptor in fields if descriptor.is_identity)
    if identity.kind not in IDENTITY_KINDS:
        raise RecordDefinitionError(
            record_name, f"identity field {identity_name!r} must be int, str or UUID"
        )

    field_names = {descriptor.name for descriptor in fields}
    for declared in (*record_cls.__indexes__, *record_cls.__unique_constraints__):
        missing = [column for column in declared.columns if column not in field_names]
        if missing:
            raise RecordDefinitionError(
                record_name, f"{type(declared).__name__} references unknown fields {missing}"
            )
        if declared.name is not None:
            _check_identifier(record_name, declared.name, "constraint name")

    return RecordDescriptor(
        record_name=record_name,
        table_name=table_name,
        fields=fields,
        identity=identity,
        indexes=tuple(record_cls.__indexes__),
        unique_constraints=tuple(record_cls.__unique_constraints__),
    )


__all__ = [
    "Record",
    "Index",
    "UniqueConstraint",
    "FieldDescriptor",
    "RecordDescriptor",
    "IDENTIFIER_PATTERN",
]
