"""
Immutable query specification.

A ``Query`` describes what to select (columns, predicate, joins, grouping,
having, ordering, limit and offset) without naming the table; a
``QueryCompiler`` bound to a table turns it into SQL. Every builder method
returns a new ``Query`` and never modifies the receiver, so a query can be
shared, extended, and compiled repeatedly with identical results.

Example:
    >>> query = (
    ...     Query()
    ...     .where_eq("purchased", False)
    ...     .where_gt("quantity", 0)
    ...     .order_by("created_at", "desc")
    ...     .order_by("name")
    ...     .limit(20)
    ... )
    >>> items = (await repo.find_all(query)).unwrap()
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Literal

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.query.predicate import Predicate


class SortOrder(Enum):
    """Sort direction of an ORDER BY term."""

    ASC = "ASC"
    DESC = "DESC"


class JoinType(Enum):
    """Join flavour and its SQL keyword."""

    INNER = "INNER JOIN"
    LEFT = "LEFT JOIN"


@dataclass(frozen=True)
class Join:
    """
    A join clause.

    Attributes:
        join_type: INNER or LEFT
        table: Joined table name
        on: ON condition, written against physical column names. It is
            emitted as-is and must not contain literal values.
    """

    join_type: JoinType
    table: str
    on: str


@dataclass(frozen=True)
class Ordering:
    """One ORDER BY term."""

    column: str
    order: SortOrder = SortOrder.ASC


def _check_count(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidOperationError(f"{name} must be a non-negative integer, got {value!r}")
    return value


@dataclass(frozen=True)
class Query:
    """
    Query specification: a value object compiled by ``QueryCompiler``.

    Attributes:
        columns: Selected columns or expressions (default ``*``)
        predicate: WHERE predicate, if any
        joins: Join clauses in declaration order
        group_columns: GROUP BY columns
        having_predicate: HAVING predicate, if any
        orderings: ORDER BY terms in declaration order; later terms break
            ties of earlier ones
        limit_value: LIMIT, if any
        offset_value: OFFSET, if any

    Note:
        Column names may be record field names; the compiler maps them to
        physical column names.
    """

    columns: tuple[str, ...] = ("*",)
    predicate: Predicate | None = None
    joins: tuple[Join, ...] = ()
    group_columns: tuple[str, ...] = ()
    having_predicate: Predicate | None = None
    orderings: tuple[Ordering, ...] = ()
    limit_value: int | None = None
    offset_value: int | None = None

    # -- selection ----------------------------------------------------------

    def select(self, *columns: str) -> Query:
        """
        Replace the selected columns.

        Example:
            >>> Query().select("name", "COUNT(*) AS total")
        """
        if not columns:
            raise InvalidOperationError("select requires at least one column")
        return replace(self, columns=tuple(columns))

    # -- filtering ----------------------------------------------------------

    def where(self, predicate: Predicate) -> Query:
        """
        Add a WHERE predicate, conjoined with any existing one.

        Args:
            predicate: Condition to add

        Returns:
            New Query with the predicate added

        Example:
            >>> base = Query().where(Predicate.eq("purchased", False))
            >>> cheap = base.where(Predicate.lt("price", 5))  # base is unchanged
        """
        if self.predicate is None:
            return replace(self, predicate=predicate)
        return replace(self, predicate=self.predicate & predicate)

    def where_eq(self, column: str, value: Any) -> Query:
        return self.where(Predicate.eq(column, value))

    def where_ne(self, column: str, value: Any) -> Query:
        return self.where(Predicate.ne(column, value))

    def where_gt(self, column: str, value: Any) -> Query:
        return self.where(Predicate.gt(column, value))

    def where_gte(self, column: str, value: Any) -> Query:
        return self.where(Predicate.gte(column, value))

    def where_lt(self, column: str, value: Any) -> Query:
        return self.where(Predicate.lt(column, value))

    def where_lte(self, column: str, value: Any) -> Query:
        return self.where(Predicate.lte(column, value))

    def where_like(self, column: str, pattern: str) -> Query:
        return self.where(Predicate.like(column, pattern))

    def where_not_like(self, column: str, pattern: str) -> Query:
        return self.where(Predicate.not_like(column, pattern))

    def where_in(self, column: str, values: Iterable[Any]) -> Query:
        return self.where(Predicate.in_(column, values))

    def where_not_in(self, column: str, values: Iterable[Any]) -> Query:
        return self.where(Predicate.not_in(column, values))

    def where_between(self, column: str, low: Any, high: Any) -> Query:
        return self.where(Predicate.between(column, low, high))

    def where_null(self, column: str) -> Query:
        return self.where(Predicate.is_null(column))

    def where_not_null(self, column: str) -> Query:
        return self.where(Predicate.is_not_null(column))

    # -- joins --------------------------------------------------------------

    def join(self, table: str, on: str) -> Query:
        """Append an INNER JOIN."""
        return replace(self, joins=(*self.joins, Join(JoinType.INNER, table, on)))

    def left_join(self, table: str, on: str) -> Query:
        """Append a LEFT JOIN."""
        return replace(self, joins=(*self.joins, Join(JoinType.LEFT, table, on)))

    # -- grouping -----------------------------------------------------------

    def group_by(self, *columns: str) -> Query:
        """Append GROUP BY columns."""
        return replace(self, group_columns=(*self.group_columns, *columns))

    def having(self, predicate: Predicate) -> Query:
        """Add a HAVING predicate, conjoined with any existing one."""
        if self.having_predicate is None:
            return replace(self, having_predicate=predicate)
        return replace(self, having_predicate=self.having_predicate & predicate)

    # -- ordering and paging ------------------------------------------------

    def order_by(
        self,
        column: str,
        direction: SortOrder | Literal["asc", "desc"] = SortOrder.ASC,
    ) -> Query:
        """
        Append an ORDER BY term.

        Args:
            column: Column to sort by
            direction: SortOrder, or 'asc' / 'desc'

        Example:
            >>> Query().order_by("created_at", "desc").order_by("name")
        """
        if not isinstance(direction, SortOrder):
            try:
                direction = SortOrder(str(direction).upper())
            except ValueError:
                raise InvalidOperationError(f"unknown sort direction {direction!r}") from None
        return replace(self, orderings=(*self.orderings, Ordering(column, direction)))

    def limit(self, count: int) -> Query:
        """
        Set LIMIT.

        Raises:
            InvalidOperationError: If count is negative
        """
        return replace(self, limit_value=_check_count("limit", count))

    def offset(self, count: int) -> Query:
        """Set OFFSET."""
        return replace(self, offset_value=_check_count("offset", count))

    def paginate(self, limit: int, offset: int = 0) -> Query:
        """
        Set both LIMIT and OFFSET.

        Example:
            >>> # Page 2 with 20 items per page
            >>> query = Query().paginate(limit=20, offset=20)
        """
        return replace(
            self,
            limit_value=_check_count("limit", limit),
            offset_value=_check_count("offset", offset),
        )

    @property
    def is_paged(self) -> bool:
        return self.limit_value is not None or self.offset_value is not None

    @property
    def is_grouped(self) -> bool:
        return bool(self.group_columns)


__all__ = ["Query", "Join", "JoinType", "Ordering", "SortOrder"]
