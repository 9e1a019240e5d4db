"""
Query building: predicates, query specifications and their SQL compiler.

Example:
    >>> from sqliteorm.query import Predicate, Query, QueryCompiler
    >>>
    >>> query = Query().where(Predicate.in_("status", ["open", "held"])).order_by("id")
    >>> QueryCompiler("tickets").compile_select(query)
    ('SELECT * FROM tickets WHERE status IN (?, ?) ORDER BY id ASC', ['open', 'held'])
"""

from sqliteorm.query.compiler import CompiledSQL, QueryCompiler
from sqliteorm.query.identifiers import ColumnMapper
from sqliteorm.query.predicate import (
    And,
    Between,
    Comparison,
    ComparisonOperator,
    InList,
    Not,
    Or,
    Predicate,
    Raw,
)
from sqliteorm.query.query import Join, JoinType, Ordering, Query, SortOrder

__all__ = [
    # Predicates
    "Predicate",
    "ComparisonOperator",
    "Comparison",
    "InList",
    "Between",
    "And",
    "Or",
    "Not",
    "Raw",
    # Specification
    "Query",
    "Join",
    "JoinType",
    "Ordering",
    "SortOrder",
    # Compilation
    "QueryCompiler",
    "CompiledSQL",
    "ColumnMapper",
]
