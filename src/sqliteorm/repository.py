"""
Generic repository over one record type.

A ``Repository`` owns all SQL for its record type: it compiles queries,
runs them through the shared ``Database``, decodes rows, and signals the
``ChangeNotifier`` once a mutation has committed. Every public operation
returns an ``ORMResult`` instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from sqliteorm.database import Database
from sqliteorm.exceptions import (
    InvalidDataError,
    InvalidOperationError,
    NotFoundError,
    ORMError,
)
from sqliteorm.models.base import Record, RecordDescriptor
from sqliteorm.models.codec import decode_rows, encode_record
from sqliteorm.models.schema import generate_drop, generate_full_schema
from sqliteorm.notifier import ChangeNotifier
from sqliteorm.observability import Tracer, create_tracer
from sqliteorm.observability.attributes import (
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_QUERY_HAS_PREDICATE,
    ATTR_QUERY_LIMIT,
    ATTR_RECORD_ID,
    ATTR_RECORD_TYPE,
    ATTR_TABLE_NAME,
)
from sqliteorm.query.compiler import QueryCompiler
from sqliteorm.query.predicate import Predicate
from sqliteorm.query.query import Query
from sqliteorm.result import Err, Ok, ORMResult
from sqliteorm.subscriptions.queries import (
    CountSubscription,
    ExistsSubscription,
    QuerySubscription,
    SingleSubscription,
)
from sqliteorm.values import FieldKind, SQLValue

logger = logging.getLogger(__name__)

TRecord = TypeVar("TRecord", bound=Record)


class Repository(Generic[TRecord]):
    """
    CRUD operations for one record type.

    All operations are coroutines that serialize on the database's single
    connection. Reads return decoded records; writes return the persisted
    record or an affected-row count. Successful mutations notify the
    record's table after they commit (immediately, or when the enclosing
    transaction commits).

    Args:
        database: Open (or soon to be opened) Database
        record_class: The Record subclass this repository manages
        notifier: Change notifier to signal; required for live subscriptions
        tracer: Optional tracer (if not provided, one will be created)
        enable_tracing: Whether to enable OpenTelemetry tracing (default True)

    Raises:
        RecordDefinitionError: If ``record_class`` cannot be mapped to a table

    Example:
        >>> items = Repository(db, ShoppingItem, notifier)
        >>> await items.create_table()
        >>> apples = (await items.insert(ShoppingItem(name="Apples", quantity=6))).unwrap()
        >>> apples.id
        1
        >>> (await items.count()).unwrap()
        1
        >>> (await items.delete(apples.id)).unwrap()
        1
    """

    def __init__(
        self,
        database: Database,
        record_class: type[TRecord],
        notifier: ChangeNotifier | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self._database = database
        self._record_class = record_class
        self._notifier = notifier
        self._descriptor = record_class.descriptor()
        self._compiler = QueryCompiler.for_record(self._descriptor)

    @property
    def record_class(self) -> type[TRecord]:
        return self._record_class

    @property
    def descriptor(self) -> RecordDescriptor:
        return self._descriptor

    @property
    def table_name(self) -> str:
        return self._descriptor.table_name

    @property
    def database(self) -> Database:
        return self._database

    @property
    def notifier(self) -> ChangeNotifier | None:
        return self._notifier

    @property
    def compiler(self) -> QueryCompiler:
        return self._compiler

    @property
    def tracer(self) -> Tracer:
        return self._tracer

    # =========================================================================
    # Reads
    # =========================================================================

    async def find(self, id: Any) -> ORMResult[TRecord | None]:
        """
        Find a record by identity.

        Args:
            id: Identity value

        Returns:
            Ok(record), or Ok(None) if no record has this identity
        """
        with self._tracer.span("sqliteorm.repository.find", self._attributes("SELECT", id=id)):
            try:
                records = await self._select(self._identity_query(id).limit(1))
            except ORMError as e:
                return self._failure("find", e)
            return Ok(records[0] if records else None)

    async def get(self, id: Any) -> ORMResult[TRecord]:
        """
        Get a record by identity, treating absence as an error.

        Returns:
            Ok(record), or Err(NotFoundError) if no record has this identity
        """
        result = await self.find(id)
        if isinstance(result, Err):
            return result
        if result.value is None:
            return self._failure("get", NotFoundError(self._descriptor.record_name, id))
        return Ok(result.value)

    async def find_all(self, query: Query | None = None) -> ORMResult[list[TRecord]]:
        """
        Find all records matching a query.

        A row that fails to decode fails the whole call; rows are never
        skipped.

        Args:
            query: Query specification (default: every record)
        """
        with self._tracer.span(
            "sqliteorm.repository.find_all", self._attributes("SELECT", query=query)
        ):
            try:
                return Ok(await self._select(query))
            except ORMError as e:
                return self._failure("find_all", e)

    async def find_first(self, query: Query | None = None) -> ORMResult[TRecord | None]:
        """First record matching a query (LIMIT 1), or Ok(None)."""
        query = query or Query()
        with self._tracer.span(
            "sqliteorm.repository.find_first", self._attributes("SELECT", query=query)
        ):
            try:
                records = await self._select(query.limit(1))
            except ORMError as e:
                return self._failure("find_first", e)
            return Ok(records[0] if records else None)

    async def count(self, query: Query | None = None) -> ORMResult[int]:
        """
        Count records matching a query.

        Returns:
            Ok(count), or Err(InvalidDataError) if the engine returns a
            non-numeric count
        """
        with self._tracer.span(
            "sqliteorm.repository.count", self._attributes("SELECT", query=query)
        ):
            try:
                sql, bindings = self._compiler.compile_count(query)
                rows = await self._database.query(sql, bindings)
                return Ok(_first_number(rows))
            except ORMError as e:
                return self._failure("count", e)

    async def exists(self, query: Query | None = None) -> ORMResult[bool]:
        """Whether at least one record matches a query."""
        return (await self.count(query)).map(lambda count: count > 0)

    async def raw(self, sql: str, bindings: Sequence[SQLValue] = ()) -> ORMResult[list[TRecord]]:
        """
        Run a hand-written SELECT and decode its rows as records.

        Example:
            >>> await items.raw("SELECT * FROM shopping_items WHERE quantity > ?", [3])
        """
        with self._tracer.span("sqliteorm.repository.raw", self._attributes("SELECT")):
            try:
                rows = await self._database.query(sql, bindings)
                return Ok(decode_rows(self._record_class, rows))
            except ORMError as e:
                return self._failure("raw", e)

    async def raw_count(self, sql: str, bindings: Sequence[SQLValue] = ()) -> ORMResult[int]:
        """Run a hand-written statement whose first column is a count."""
        with self._tracer.span("sqliteorm.repository.raw_count", self._attributes("SELECT")):
            try:
                rows = await self._database.query(sql, bindings)
                return Ok(_first_number(rows))
            except ORMError as e:
                return self._failure("raw_count", e)

    # =========================================================================
    # Writes
    # =========================================================================

    async def insert(self, record: TRecord) -> ORMResult[TRecord]:
        """
        Insert a record.

        An ``int`` identity holding 0 or None is left to SQLite; the assigned
        row id is written back into the record's identity field.

        Returns:
            Ok(record) with its identity set

        Note:
            The record passed in is updated in place and returned.
        """
        identity = self._descriptor.identity
        id_value = getattr(record, identity.name)
        with self._tracer.span(
            "sqliteorm.repository.insert", self._attributes("INSERT", id=id_value)
        ):
            try:
                values = encode_record(record)
                assign_id = self._is_default_identity(id_value)
                if assign_id:
                    del values[identity.column]
                elif id_value is None:
                    raise InvalidOperationError(
                        f"{self._descriptor.record_name}.{identity.name} must be set before insert"
                    )

                sql, bindings = self._compiler.compile_insert(values)
                row_id = await self._database.execute_insert(sql, bindings)
                if assign_id:
                    setattr(record, identity.name, self._convert_row_id(row_id))
            except ORMError as e:
                return self._failure("insert", e)

            self._notify()
            return Ok(record)

    async def update(self, record: TRecord) -> ORMResult[int]:
        """
        Update the row with the record's identity.

        Every column except the identity is assigned.

        Returns:
            Ok(affected row count); Ok(0) when no row has that identity
        """
        id_value = record.identity_value()
        with self._tracer.span(
            "sqliteorm.repository.update", self._attributes("UPDATE", id=id_value)
        ):
            try:
                values = encode_record(record)
                query = self._identity_query(id_value)
                sql, bindings = self._compiler.compile_update(query, values)
                affected = await self._database.execute(sql, bindings)
            except ORMError as e:
                return self._failure("update", e)

            if affected:
                self._notify()
            return Ok(affected)

    async def save(self, record: TRecord) -> ORMResult[TRecord]:
        """
        Insert or update a record.

        A default identity always inserts. Otherwise the identity is looked
        up first: an existing row is updated, a missing one is inserted with
        the given identity.
        """
        id_value = record.identity_value()
        if self._is_default_identity(id_value):
            return await self.insert(record)

        with self._tracer.span(
            "sqliteorm.repository.save", self._attributes("UPSERT", id=id_value)
        ):
            found = await self.find(id_value)
            if isinstance(found, Err):
                return found
            if found.value is None:
                return await self.insert(record)

            updated = await self.update(record)
            if isinstance(updated, Err):
                return updated
            return Ok(record)

    async def delete(self, id: Any) -> ORMResult[int]:
        """
        Delete the record with the given identity.

        Returns:
            Ok(affected row count), 0 or 1
        """
        with self._tracer.span("sqliteorm.repository.delete", self._attributes("DELETE", id=id)):
            return await self._delete(self._identity_query(id), "delete")

    async def delete_where(self, query: Query) -> ORMResult[int]:
        """
        Delete every record matched by the query's predicate.

        A query without a predicate deletes every row.
        """
        with self._tracer.span(
            "sqliteorm.repository.delete_where", self._attributes("DELETE", query=query)
        ):
            return await self._delete(query, "delete_where")

    async def _delete(self, query: Query, operation: str) -> ORMResult[int]:
        try:
            sql, bindings = self._compiler.compile_delete(query)
            affected = await self._database.execute(sql, bindings)
        except ORMError as e:
            return self._failure(operation, e)
        if affected:
            self._notify()
        return Ok(affected)

    # =========================================================================
    # Schema
    # =========================================================================

    async def create_table(self) -> ORMResult[None]:
        """
        Create the table and its declared indexes if they do not exist.

        Safe to call repeatedly.
        """
        with self._tracer.span("sqliteorm.repository.create_table", self._attributes("CREATE")):
            try:
                for statement in generate_full_schema(self._descriptor):
                    await self._database.execute(statement)
            except ORMError as e:
                return self._failure("create_table", e)
            logger.info("Created table %s", self.table_name)
            return Ok(None)

    async def drop_table(self) -> ORMResult[None]:
        """Drop the table if it exists."""
        with self._tracer.span("sqliteorm.repository.drop_table", self._attributes("DROP")):
            try:
                await self._database.execute(generate_drop(self._descriptor))
            except ORMError as e:
                return self._failure("drop_table", e)
            logger.info("Dropped table %s", self.table_name)
            self._notify()
            return Ok(None)

    # =========================================================================
    # Live subscriptions
    # =========================================================================

    def subscribe(self, query: Query | None = None) -> QuerySubscription[TRecord]:
        """
        Live list of the records matching a query.

        Example:
            >>> async with items.subscribe(Query().order_by("name")) as live:
            ...     live.observe(lambda result: print(result.value))
        """
        return QuerySubscription(self, query)

    def subscribe_first(self, query: Query | None = None) -> SingleSubscription[TRecord]:
        """Live first record matching a query."""
        return SingleSubscription(self, query=query)

    def subscribe_id(self, id: Any) -> SingleSubscription[TRecord]:
        """Live record with the given identity."""
        return SingleSubscription(self, id=id)

    def subscribe_count(self, query: Query | None = None) -> CountSubscription:
        """Live count of the records matching a query."""
        return CountSubscription(self, query)

    def subscribe_exists(self, query: Query | None = None) -> ExistsSubscription:
        """Live flag telling whether any record matches a query."""
        return ExistsSubscription(self, query)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _select(self, query: Query | None) -> list[TRecord]:
        sql, bindings = self._compiler.compile_select(query)
        rows = await self._database.query(sql, bindings)
        return decode_rows(self._record_class, rows)

    def _identity_query(self, id: Any) -> Query:
        return Query().where(Predicate.eq(self._descriptor.identity.name, id))

    def _is_default_identity(self, value: Any) -> bool:
        if self._descriptor.identity.kind is not FieldKind.INTEGER:
            return False
        return value is None or value == 0

    def _convert_row_id(self, row_id: int) -> Any:
        """Validate an engine row id against the declared identity type."""
        identity = self._descriptor.identity
        if identity.adapter is None:
            # Hand-built descriptors may carry no validator; the row id is already an int
            return row_id
        try:
            converted = identity.adapter.validate_python(row_id)
        except ValidationError as e:
            raise InvalidDataError(
                f"row id {row_id} is not a valid {self._descriptor.record_name}.{identity.name}"
            ) from e
        if converted is None or int(converted) != row_id:
            raise InvalidDataError(
                f"row id {row_id} does not round-trip through "
                f"{self._descriptor.record_name}.{identity.name}"
            )
        return converted

    def _notify(self) -> None:
        notifier = self._notifier
        if notifier is None:
            return
        table = self.table_name
        self._database.after_commit(lambda: notifier.notify(table))

    def _failure(self, operation: str, error: ORMError) -> Err:
        logger.debug("%s.%s failed: %s", self._descriptor.record_name, operation, error)
        return Err(error)

    def _attributes(
        self,
        operation: str,
        *,
        id: Any = None,
        query: Query | None = None,
    ) -> dict[str, Any]:
        attributes: dict[str, Any] = {
            ATTR_RECORD_TYPE: self._descriptor.record_name,
            ATTR_TABLE_NAME: self.table_name,
            ATTR_DB_SYSTEM: "sqlite",
            ATTR_DB_OPERATION: operation,
        }
        if id is not None:
            attributes[ATTR_RECORD_ID] = str(id)
        if query is not None:
            attributes[ATTR_QUERY_HAS_PREDICATE] = query.predicate is not None
            if query.limit_value is not None:
                attributes[ATTR_QUERY_LIMIT] = query.limit_value
        return attributes


def _first_number(rows: list[dict[str, SQLValue]]) -> int:
    """First column of the first row as an int, or InvalidDataError."""
    if not rows or not rows[0]:
        raise InvalidDataError("count query returned no rows")
    value = next(iter(rows[0].values()))
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidDataError(f"count result is not numeric: {value!r}")
    return int(value)


__all__ = ["Repository"]
