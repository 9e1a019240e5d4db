"""
Schema generation for record types.

Generates CREATE TABLE / CREATE INDEX / DROP TABLE statements from a
``RecordDescriptor``. Column types come from each field's declared
``FieldKind`` only, so DDL is available before any row exists.

Example:
    >>> class ShoppingItem(Record):
    ...     __unique_constraints__ = [UniqueConstraint(("name",))]
    ...     __indexes__ = [Index(("quantity",))]
    ...
    ...     id: int = 0
    ...     name: str
    ...     quantity: int = 1
    ...     note: str | None = None
    ...
    >>> print(generate_schema(ShoppingItem.descriptor()))
    CREATE TABLE IF NOT EXISTS shopping_items (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        quantity INTEGER NOT NULL DEFAULT 1,
        note TEXT,
        CONSTRAINT uq_shopping_items_name UNIQUE (name)
    )
    >>> generate_indexes(ShoppingItem.descriptor())
    ['CREATE INDEX IF NOT EXISTS idx_shopping_items_quantity ON shopping_items (quantity)']
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from sqliteorm.models.base import FieldDescriptor, RecordDescriptor
from sqliteorm.values import FieldKind


def generate_schema(descriptor: RecordDescriptor, if_not_exists: bool = True) -> str:
    """
    Generate CREATE TABLE SQL for a record type.

    Args:
        descriptor: Descriptor of the record type
        if_not_exists: Include IF NOT EXISTS clause (default True)

    Returns:
        CREATE TABLE SQL statement

    Note:
        - An ``int`` identity becomes ``INTEGER PRIMARY KEY AUTOINCREMENT``
        - Non-optional fields get NOT NULL
        - Simple static defaults get a DEFAULT clause
        - Declared unique constraints are inlined as table constraints
    """
    definitions = [_generate_column(field) for field in descriptor.fields]
    for constraint in descriptor.unique_constraints:
        columns = [descriptor.column_for(name) for name in constraint.columns]
        name = constraint.name or f"uq_{descriptor.table_name}_{'_'.join(columns)}"
        definitions.append(f"CONSTRAINT {name} UNIQUE ({', '.join(columns)})")

    exists_clause = "IF NOT EXISTS " if if_not_exists else ""
    body = ",\n    ".join(definitions)
    return f"CREATE TABLE {exists_clause}{descriptor.table_name} (\n    {body}\n)"


def generate_indexes(descriptor: RecordDescriptor) -> list[str]:
    """
    Generate one CREATE INDEX statement per declared index.

    Index names default to ``idx_<table>_<columns>``.
    """
    table_name = descriptor.table_name
    statements = []
    for index in descriptor.indexes:
        columns = [descriptor.column_for(name) for name in index.columns]
        name = index.name or f"idx_{table_name}_{'_'.join(columns)}"
        unique = "UNIQUE " if index.unique else ""
        statements.append(
            f"CREATE {unique}INDEX IF NOT EXISTS {name} ON {table_name} ({', '.join(columns)})"
        )
    return statements


def generate_full_schema(descriptor: RecordDescriptor) -> list[str]:
    """CREATE TABLE followed by its CREATE INDEX statements, in execution order."""
    return [generate_schema(descriptor), *generate_indexes(descriptor)]


def generate_drop(descriptor: RecordDescriptor) -> str:
    """DROP TABLE statement for a record type (idempotent)."""
    return f"DROP TABLE IF EXISTS {descriptor.table_name}"


def _generate_column(field: FieldDescriptor) -> str:
    sql_type = field.column_type.value

    if field.is_identity:
        if field.kind is FieldKind.INTEGER:
            return f"{field.column} INTEGER PRIMARY KEY AUTOINCREMENT"
        return f"{field.column} {sql_type} PRIMARY KEY"

    parts = [field.column, sql_type]
    if not field.nullable:
        parts.append("NOT NULL")

    if field.has_default and not field.has_factory and field.default is not None:
        default_value = _format_default(field.default)
        if default_value is not None:
            parts.append(f"DEFAULT {default_value}")

    return " ".join(parts)


def _format_default(value: Any) -> str | None:
    """
    Format a Python default value as an SQLite literal.

    Returns:
        SQL literal string, or None if the value has no simple literal form
    """
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "1" if value else "0"
    elif isinstance(value, (int, float)):
        return str(value)
    elif isinstance(value, str):
        escaped = value.replace("'", "''")
        return f"'{escaped}'"

    # datetimes, UUIDs and blobs are left to the record's own default
    return None


__all__ = [
    "generate_schema",
    "generate_indexes",
    "generate_full_schema",
    "generate_drop",
]
