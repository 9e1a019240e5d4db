"""
Predicate expressions and their compilation to parameterized SQL.

A ``Predicate`` is an immutable tree of comparisons and boolean
combinators over column names. Compiling it yields an SQL fragment and the
ordered list of values bound to its ``?`` placeholders. Bindings are
collected during a single left-to-right emission, so binding ``i`` always
belongs to the ``i``-th placeholder in the text, at any nesting depth.

Example:
    >>> p = Predicate.eq("status", "open") & (
    ...     Predicate.gt("quantity", 5) | Predicate.is_null("due_at")
    ... )
    >>> p.compile()
    ('(status = ?) AND ((quantity > ?) OR (due_at IS NULL))', ['open', 5])
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.query.identifiers import ColumnMapper, identity_mapper, resolve_operand
from sqliteorm.values import SQLValue, to_sql_value


class ComparisonOperator(Enum):
    """Column comparison operators and their SQL spelling."""

    EQ = "="
    NE = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IS_NULL = "IS NULL"
    IS_NOT_NULL = "IS NOT NULL"

    @property
    def takes_value(self) -> bool:
        """False for the NULL tests, which emit no placeholder."""
        return self not in (ComparisonOperator.IS_NULL, ComparisonOperator.IS_NOT_NULL)


class Predicate:
    """
    Base class of all predicate nodes.

    Build predicates with the factory classmethods and combine them with
    ``&`` (AND), ``|`` (OR) and ``~`` (NOT). Nodes are frozen dataclasses;
    combining never modifies an operand.
    """

    # -- compilation --------------------------------------------------------

    def compile(self, mapper: ColumnMapper = identity_mapper) -> tuple[str, list[SQLValue]]:
        """
        Compile to an SQL fragment and its ordered bindings.

        Args:
            mapper: Resolves field names to column names before emission

        Returns:
            Tuple of (SQL fragment, bindings)

        Raises:
            InvalidOperationError: For an empty IN list or an unsafe column name
        """
        bindings: list[SQLValue] = []
        sql = self._emit(mapper, bindings)
        return sql, bindings

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        raise NotImplementedError

    # -- operators ----------------------------------------------------------

    def __and__(self, other: Predicate) -> Predicate:
        return Predicate.and_(self, other)

    def __or__(self, other: Predicate) -> Predicate:
        return Predicate.or_(self, other)

    def __invert__(self) -> Predicate:
        return Predicate.not_(self)

    # -- factories ----------------------------------------------------------

    @classmethod
    def eq(cls, column: str, value: Any) -> Predicate:
        """
        Create an equality predicate (column = value).

        Comparing with None produces ``IS NULL``, since ``= NULL`` never matches.

        Example:
            >>> Predicate.eq("name", "Apples").compile()
            ('name = ?', ['Apples'])
        """
        if value is None:
            return Comparison(column, ComparisonOperator.IS_NULL)
        return Comparison(column, ComparisonOperator.EQ, to_sql_value(value))

    @classmethod
    def ne(cls, column: str, value: Any) -> Predicate:
        """Create a not-equal predicate (column != value); None gives ``IS NOT NULL``."""
        if value is None:
            return Comparison(column, ComparisonOperator.IS_NOT_NULL)
        return Comparison(column, ComparisonOperator.NE, to_sql_value(value))

    @classmethod
    def lt(cls, column: str, value: Any) -> Predicate:
        return Comparison(column, ComparisonOperator.LT, to_sql_value(value))

    @classmethod
    def lte(cls, column: str, value: Any) -> Predicate:
        return Comparison(column, ComparisonOperator.LTE, to_sql_value(value))

    @classmethod
    def gt(cls, column: str, value: Any) -> Predicate:
        return Comparison(column, ComparisonOperator.GT, to_sql_value(value))

    @classmethod
    def gte(cls, column: str, value: Any) -> Predicate:
        return Comparison(column, ComparisonOperator.GTE, to_sql_value(value))

    @classmethod
    def like(cls, column: str, pattern: str) -> Predicate:
        """
        Create a LIKE predicate.

        Example:
            >>> Predicate.like("name", "App%").compile()
            ('name LIKE ?', ['App%'])
        """
        return Comparison(column, ComparisonOperator.LIKE, to_sql_value(pattern))

    @classmethod
    def not_like(cls, column: str, pattern: str) -> Predicate:
        return Comparison(column, ComparisonOperator.NOT_LIKE, to_sql_value(pattern))

    @classmethod
    def is_null(cls, column: str) -> Predicate:
        return Comparison(column, ComparisonOperator.IS_NULL)

    @classmethod
    def is_not_null(cls, column: str) -> Predicate:
        return Comparison(column, ComparisonOperator.IS_NOT_NULL)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> Predicate:
        """
        Create a set membership predicate (column IN (values)).

        One placeholder is emitted per value, in input order. An empty list
        is accepted here but fails to compile.

        Example:
            >>> Predicate.in_("id", [3, 1, 2]).compile()
            ('id IN (?, ?, ?)', [3, 1, 2])
        """
        return InList(column, tuple(to_sql_value(value) for value in values))

    @classmethod
    def not_in(cls, column: str, values: Iterable[Any]) -> Predicate:
        return InList(column, tuple(to_sql_value(value) for value in values), negated=True)

    @classmethod
    def between(cls, column: str, low: Any, high: Any) -> Predicate:
        """
        Create a range predicate (column BETWEEN low AND high).

        Bindings are emitted as (low, high); their order is not checked.
        """
        return Between(column, to_sql_value(low), to_sql_value(high))

    @classmethod
    def and_(cls, *predicates: Predicate) -> Predicate:
        """
        Conjoin predicates. Nested conjunctions are flattened.

        Raises:
            InvalidOperationError: If no predicate is given
        """
        return _combine(And, predicates)

    @classmethod
    def or_(cls, *predicates: Predicate) -> Predicate:
        """Disjoin predicates. Nested disjunctions are flattened."""
        return _combine(Or, predicates)

    @classmethod
    def not_(cls, predicate: Predicate) -> Predicate:
        return Not(predicate)

    @classmethod
    def raw(cls, sql: str, bindings: Sequence[Any] = ()) -> Predicate:
        """
        Embed a hand-written SQL condition.

        Values must still travel as bindings: the number of ``?`` in ``sql``
        has to equal ``len(bindings)``.

        Example:
            >>> Predicate.raw("length(name) > ?", [3]).compile()
            ('length(name) > ?', [3])
        """
        return Raw(sql, tuple(to_sql_value(value) for value in bindings))


def _combine(node_type: type[And] | type[Or], predicates: Sequence[Predicate]) -> Predicate:
    if not predicates:
        raise InvalidOperationError(f"{node_type.keyword} requires at least one predicate")
    operands: list[Predicate] = []
    for predicate in predicates:
        if not isinstance(predicate, Predicate):
            raise InvalidOperationError(f"not a predicate: {predicate!r}")
        if isinstance(predicate, node_type):
            operands.extend(predicate.operands)
        else:
            operands.append(predicate)
    if len(operands) == 1:
        return operands[0]
    return node_type(tuple(operands))


@dataclass(frozen=True)
class Comparison(Predicate):
    """Binary comparison of a column with one value, or a NULL test."""

    column: str
    operator: ComparisonOperator
    value: SQLValue = None

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        column = resolve_operand(self.column, mapper)
        if not self.operator.takes_value:
            return f"{column} {self.operator.value}"
        bindings.append(self.value)
        return f"{column} {self.operator.value} ?"


@dataclass(frozen=True)
class InList(Predicate):
    """Set membership test, ``IN`` or ``NOT IN``."""

    column: str
    values: tuple[SQLValue, ...]
    negated: bool = False

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        keyword = "NOT IN" if self.negated else "IN"
        if not self.values:
            raise InvalidOperationError(f"{keyword} requires at least one value ({self.column})")
        column = resolve_operand(self.column, mapper)
        bindings.extend(self.values)
        placeholders = ", ".join("?" for _ in self.values)
        return f"{column} {keyword} ({placeholders})"


@dataclass(frozen=True)
class Between(Predicate):
    """Inclusive range test."""

    column: str
    low: SQLValue
    high: SQLValue

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        column = resolve_operand(self.column, mapper)
        bindings.append(self.low)
        bindings.append(self.high)
        return f"{column} BETWEEN ? AND ?"


@dataclass(frozen=True)
class _Junction(Predicate):
    operands: tuple[Predicate, ...]

    keyword = ""

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        parts = [f"({operand._emit(mapper, bindings)})" for operand in self.operands]
        return f" {self.keyword} ".join(parts)


@dataclass(frozen=True)
class And(_Junction):
    """Conjunction; each operand is parenthesized."""

    keyword = "AND"


@dataclass(frozen=True)
class Or(_Junction):
    """Disjunction; each operand is parenthesized."""

    keyword = "OR"


@dataclass(frozen=True)
class Not(Predicate):
    """Negation."""

    operand: Predicate

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        return f"NOT ({self.operand._emit(mapper, bindings)})"


@dataclass(frozen=True)
class Raw(Predicate):
    """Hand-written condition with its own bindings."""

    sql: str
    bindings: tuple[SQLValue, ...] = ()

    def __post_init__(self) -> None:
        placeholders = self.sql.count("?")
        if placeholders != len(self.bindings):
            raise InvalidOperationError(
                f"raw predicate has {placeholders} placeholders but "
                f"{len(self.bindings)} bindings"
            )

    def _emit(self, mapper: ColumnMapper, bindings: list[SQLValue]) -> str:
        bindings.extend(self.bindings)
        return self.sql


__all__ = [
    "Predicate",
    "ComparisonOperator",
    "Comparison",
    "InList",
    "Between",
    "And",
    "Or",
    "Not",
    "Raw",
]
