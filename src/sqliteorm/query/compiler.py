"""
Compilation of query specifications to parameterized SQL.

Clauses are always emitted in the same order:

    SELECT columns FROM table [JOIN ...] [WHERE ...] [GROUP BY ...]
    [HAVING ...] [ORDER BY ...] [LIMIT ?] [OFFSET ?]

Bindings follow the placeholders in text order: WHERE bindings, then
HAVING bindings, then LIMIT and OFFSET. Identifiers are validated before
they are emitted; values are never interpolated.
"""

from __future__ import annotations

from collections.abc import Mapping

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.models.base import RecordDescriptor
from sqliteorm.query.identifiers import (
    ColumnMapper,
    check_name,
    identity_mapper,
    resolve_operand,
    resolve_selection,
)
from sqliteorm.query.predicate import Predicate
from sqliteorm.query.query import Query
from sqliteorm.values import SQLValue

CompiledSQL = tuple[str, list[SQLValue]]
"""An SQL statement and its ordered bindings."""


class QueryCompiler:
    """
    Compiles ``Query`` specifications against one table.

    Args:
        table: Table the statements target
        mapper: Resolves field names to column names
        identity_column: Primary key column, never assigned by UPDATE

    Example:
        >>> compiler = QueryCompiler("items")
        >>> compiler.compile_select(Query().where_eq("name", "Apples").limit(1))
        ('SELECT * FROM items WHERE name = ? LIMIT ?', ['Apples', 1])
    """

    def __init__(
        self,
        table: str,
        mapper: ColumnMapper = identity_mapper,
        identity_column: str = "id",
    ) -> None:
        self._table = check_name(table)
        self._mapper = mapper
        self._identity_column = identity_column

    @classmethod
    def for_record(cls, descriptor: RecordDescriptor) -> QueryCompiler:
        """Create a compiler for a record type's table and column mapping."""
        return cls(descriptor.table_name, descriptor.column_for, descriptor.identity_column)

    @property
    def table(self) -> str:
        return self._table

    def compile_predicate(self, predicate: Predicate) -> CompiledSQL:
        """Compile a predicate with this compiler's column mapping."""
        return predicate.compile(self._mapper)

    def compile_select(self, query: Query | None = None) -> CompiledSQL:
        """
        Compile a SELECT statement.

        Raises:
            InvalidOperationError: For unsafe identifiers or an empty IN list
        """
        query = query or Query()
        bindings: list[SQLValue] = []
        columns = ", ".join(resolve_selection(column, self._mapper) for column in query.columns)
        parts = [f"SELECT {columns} FROM {self._table}"]  # nosec B608
        parts.extend(self._from_tail(query, bindings))

        if query.orderings:
            terms = [
                f"{resolve_operand(ordering.column, self._mapper)} {ordering.order.value}"
                for ordering in query.orderings
            ]
            parts.append(f"ORDER BY {', '.join(terms)}")

        if query.limit_value is not None:
            parts.append("LIMIT ?")
            bindings.append(query.limit_value)
        if query.offset_value is not None:
            # SQLite only accepts OFFSET after a LIMIT; -1 means unbounded
            if query.limit_value is None:
                parts.append("LIMIT -1")
            parts.append("OFFSET ?")
            bindings.append(query.offset_value)

        return " ".join(parts), bindings

    def compile_count(self, query: Query | None = None) -> CompiledSQL:
        """
        Compile a statement returning one row with a ``count`` column.

        Grouped or paged queries are counted as a sub-select so the result is
        the number of rows the query returns, not the size of the first group.
        Selected columns and ordering of a plain query are ignored.
        """
        query = query or Query()
        if query.is_grouped or query.is_paged:
            inner_sql, bindings = self.compile_select(query)
            return f"SELECT COUNT(*) AS count FROM ({inner_sql})", bindings  # nosec B608

        bindings = []
        parts = [f"SELECT COUNT(*) AS count FROM {self._table}"]  # nosec B608
        parts.extend(self._from_tail(query, bindings))
        return " ".join(parts), bindings

    def compile_insert(self, values: Mapping[str, SQLValue]) -> CompiledSQL:
        """
        Compile an INSERT of the given column -> value mapping.

        Keys are storage column names (as produced by ``encode_record``) and
        are not passed through the field mapping.
        """
        if not values:
            return f"INSERT INTO {self._table} DEFAULT VALUES", []  # nosec B608
        columns = [check_name(column) for column in values]
        placeholders = ", ".join("?" for _ in columns)
        column_list = ", ".join(columns)
        sql = f"INSERT INTO {self._table} ({column_list}) VALUES ({placeholders})"  # nosec B608
        return sql, list(values.values())

    def compile_update(
        self,
        query: Query | None,
        assignments: Mapping[str, SQLValue],
    ) -> CompiledSQL:
        """
        Compile an UPDATE of the rows matched by ``query``'s predicate.

        Keys of ``assignments`` are storage column names; the identity column
        is never assigned, even if present. Only the predicate of ``query``
        is used, and it is written in field names.

        Raises:
            InvalidOperationError: If nothing is left to assign
        """
        set_terms: list[str] = []
        bindings: list[SQLValue] = []
        for name, value in assignments.items():
            column = check_name(name)
            if column == self._identity_column:
                continue
            set_terms.append(f"{column} = ?")
            bindings.append(value)
        if not set_terms:
            raise InvalidOperationError(f"UPDATE of {self._table} has no columns to set")

        sql = f"UPDATE {self._table} SET {', '.join(set_terms)}"  # nosec B608
        if query is not None and query.predicate is not None:
            where_sql, where_bindings = self.compile_predicate(query.predicate)
            sql += f" WHERE {where_sql}"
            bindings.extend(where_bindings)
        return sql, bindings

    def compile_delete(self, query: Query | None = None) -> CompiledSQL:
        """Compile a DELETE of the rows matched by ``query``'s predicate."""
        sql = f"DELETE FROM {self._table}"  # nosec B608
        if query is None or query.predicate is None:
            return sql, []
        where_sql, bindings = self.compile_predicate(query.predicate)
        return f"{sql} WHERE {where_sql}", bindings

    def _from_tail(self, query: Query, bindings: list[SQLValue]) -> list[str]:
        """JOIN, WHERE, GROUP BY and HAVING clauses, appending their bindings."""
        parts = [
            f"{join.join_type.value} {check_name(join.table)} ON {join.on}" for join in query.joins
        ]

        if query.predicate is not None:
            where_sql, where_bindings = self.compile_predicate(query.predicate)
            parts.append(f"WHERE {where_sql}")
            bindings.extend(where_bindings)

        if query.group_columns:
            columns = [resolve_operand(column, self._mapper) for column in query.group_columns]
            parts.append(f"GROUP BY {', '.join(columns)}")

        if query.having_predicate is not None:
            having_sql, having_bindings = self.compile_predicate(query.having_predicate)
            parts.append(f"HAVING {having_sql}")
            bindings.extend(having_bindings)

        return parts


__all__ = ["QueryCompiler", "CompiledSQL"]
