"""
Validation of column names and column expressions.

Identifiers cannot travel as bindings, so every name that ends up in SQL
text is checked against a narrow grammar before it is emitted:

- column: ``name`` or ``table.name``
- operand: a column, or an aggregate call ``FUNC(column)`` / ``FUNC(*)`` /
  ``FUNC(DISTINCT column)``
- selection: an operand, ``*`` or ``table.*``, optionally ``AS alias``
"""

from __future__ import annotations

import re
from collections.abc import Callable

from sqliteorm.exceptions import InvalidOperationError

ColumnMapper = Callable[[str], str]
"""Resolves a logical field name to its physical column name."""

_NAME = r"[A-Za-z_][A-Za-z0-9_]*"
_COLUMN = rf"{_NAME}(?:\.{_NAME})?"
_CALL = rf"({_NAME})\(\s*(\*|(?:DISTINCT\s+)?{_COLUMN})\s*\)"

COLUMN_PATTERN = re.compile(rf"^{_COLUMN}$")
NAME_PATTERN = re.compile(rf"^{_NAME}$")
_CALL_PATTERN = re.compile(rf"^{_CALL}$", re.IGNORECASE)
_ALIAS_PATTERN = re.compile(rf"^(.+?)\s+AS\s+({_NAME})$", re.IGNORECASE)
_STAR_PATTERN = re.compile(rf"^(?:{_NAME}\.)?\*$")


def identity_mapper(name: str) -> str:
    return name


def check_name(name: str) -> str:
    """
    Validate an unqualified name (table, index, alias).

    Raises:
        InvalidOperationError: If ``name`` is not a plain identifier
    """
    if not isinstance(name, str) or not NAME_PATTERN.match(name):
        raise InvalidOperationError(f"unsafe identifier {name!r}")
    return name


def resolve_operand(expression: str, mapper: ColumnMapper = identity_mapper) -> str:
    """
    Validate a column or aggregate call and map field names to columns.

    Example:
        >>> resolve_operand("createdAt", {"createdAt": "created_at"}.get)
        'created_at'
        >>> resolve_operand("count(*)")
        'COUNT(*)'

    Raises:
        InvalidOperationError: If the expression is outside the allowed grammar
    """
    if not isinstance(expression, str):
        raise InvalidOperationError(f"unsafe column {expression!r}")
    expression = expression.strip()
    if COLUMN_PATTERN.match(expression):
        return _map_column(expression, mapper)

    call = _CALL_PATTERN.match(expression)
    if call is None:
        raise InvalidOperationError(f"unsafe column {expression!r}")
    function, argument = call.groups()
    if argument == "*":
        return f"{function.upper()}(*)"
    distinct = ""
    if argument.upper().startswith("DISTINCT"):
        distinct = "DISTINCT "
        argument = argument[len("DISTINCT") :].strip()
    return f"{function.upper()}({distinct}{_map_column(argument, mapper)})"


def resolve_selection(expression: str, mapper: ColumnMapper = identity_mapper) -> str:
    """Validate one entry of a SELECT list (operand, ``*`` or ``t.*``, optional alias)."""
    if not isinstance(expression, str):
        raise InvalidOperationError(f"unsafe selection {expression!r}")
    expression = expression.strip()
    if _STAR_PATTERN.match(expression):
        return expression

    aliased = _ALIAS_PATTERN.match(expression)
    if aliased is not None:
        operand, alias = aliased.groups()
        return f"{resolve_operand(operand, mapper)} AS {alias}"
    return resolve_operand(expression, mapper)


def _map_column(column: str, mapper: ColumnMapper) -> str:
    # Qualified names refer to another table's physical column
    if "." in column:
        return column
    mapped = mapper(column)
    if not COLUMN_PATTERN.match(mapped):
        raise InvalidOperationError(f"unsafe column {mapped!r}")
    return mapped


__all__ = [
    "ColumnMapper",
    "identity_mapper",
    "check_name",
    "resolve_operand",
    "resolve_selection",
]
