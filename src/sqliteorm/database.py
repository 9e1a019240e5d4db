"""
Async SQLite database wrapper.

``Database`` owns exactly one aiosqlite connection and is the only place
SQL reaches the engine. Every statement is serialized through an
``asyncio.Lock``, so concurrent callers queue rather than race. Statements
outside an explicit transaction commit immediately (the connection runs in
autocommit mode); ``begin()`` holds the lock for the owning task until
``commit()`` or ``rollback()``.

Engine errors are translated into the typed ``ORMError`` hierarchy:

- UNIQUE violations -> DuplicateEntryError
- other integrity violations -> ConstraintViolationError
- "database is locked" / busy -> DatabaseLockedError
- syntax errors, unknown tables or columns -> InvalidSQLError
- anything else -> SQLExecutionError
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator, Callable, Coroutine, Sequence
from contextlib import asynccontextmanager
from typing import Any

import aiosqlite

from sqliteorm.config import DatabaseConfig
from sqliteorm.exceptions import (
    ConnectionFailedError,
    ConstraintViolationError,
    DatabaseLockedError,
    DatabaseNotOpenError,
    DuplicateEntryError,
    InvalidOperationError,
    InvalidSQLError,
    ORMError,
    SQLExecutionError,
    TransactionFailedError,
    TransactionNotActiveError,
)
from sqliteorm.observability import Tracer, create_tracer
from sqliteorm.observability.attributes import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_ROW_COUNT,
)
from sqliteorm.values import SQLValue

logger = logging.getLogger(__name__)

Row = dict[str, SQLValue]
"""One result row, keyed by column name."""

_UNIQUE_PREFIX = "UNIQUE constraint failed:"
_INVALID_SQL_MARKERS = (
    "syntax error",
    "no such table",
    "no such column",
    "has no column named",
    "incomplete input",
    "unrecognized token",
    "incorrect number of bindings",
)
_LOCKED_MESSAGES = (
    "database is locked",
    "database table is locked",
    "database schema is locked",
)
# Primary result codes SQLITE_BUSY and SQLITE_LOCKED
_LOCKED_CODES = (5, 6)


def translate_error(sql: str, error: Exception) -> ORMError:
    """
    Map a driver exception to the matching ORMError.

    Args:
        sql: Statement that failed
        error: Exception raised by sqlite3 / aiosqlite

    Returns:
        Typed error carrying the engine-reported reason

    Example:
        >>> error = sqlite3.IntegrityError("UNIQUE constraint failed: items.name")
        >>> translate_error("INSERT ...", error)
        DuplicateEntryError('Duplicate entry for items.name')
    """
    message = str(error)
    lowered = message.lower()

    if isinstance(error, sqlite3.IntegrityError):
        if message.startswith(_UNIQUE_PREFIX):
            targets = [part.strip() for part in message[len(_UNIQUE_PREFIX) :].split(",")]
            entity = targets[0].split(".", 1)[0] if targets else ""
            fields = ", ".join(target.split(".", 1)[-1] for target in targets)
            return DuplicateEntryError(entity, fields)
        return ConstraintViolationError(message)

    if isinstance(error, (sqlite3.OperationalError, sqlite3.ProgrammingError)) and any(
        marker in lowered for marker in _INVALID_SQL_MARKERS
    ):
        return InvalidSQLError(sql, message)

    if _is_locked(error, lowered):
        return DatabaseLockedError(message)

    return SQLExecutionError(sql, message)


async def _run_control(connection: aiosqlite.Connection, sql: str) -> None:
    await connection.execute(sql)


def _is_locked(error: Exception, lowered: str) -> bool:
    code = getattr(error, "sqlite_errorcode", None)
    if isinstance(code, int):
        return (code & 0xFF) in _LOCKED_CODES
    return lowered.startswith(_LOCKED_MESSAGES)


def _operation(sql: str) -> str:
    words = sql.split(None, 1)
    return words[0].upper() if words else ""


class Database:
    """
    Serialized async access to one SQLite connection.

    Args:
        config: Connection settings (default: private in-memory database)
        tracer: Optional tracer; created from ``config.enable_tracing`` if omitted

    Example:
        >>> db = Database(DatabaseConfig(path="app.db"))
        >>> await db.open()
        >>> await db.execute("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        >>> row_id = await db.execute_insert("INSERT INTO t (name) VALUES (?)", ["a"])
        >>> await db.query("SELECT * FROM t")
        [{'id': 1, 'name': 'a'}]
        >>> async with db.transaction():
        ...     await db.execute("DELETE FROM t")
        >>> await db.close()
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        tracer: Tracer | None = None,
    ) -> None:
        self._config = config or DatabaseConfig()
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._transaction_owner: asyncio.Task[Any] | None = None
        self._pending_callbacks: list[Callable[[], None]] = []
        self._background_tasks: set[asyncio.Future[Any]] = set()
        self._tracer = tracer or create_tracer(__name__, self._config.enable_tracing)

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        """True while any task holds an explicit transaction."""
        return self._transaction_owner is not None

    # -- lifecycle ----------------------------------------------------------

    async def open(self) -> None:
        """
        Open the connection and apply PRAGMAs. No-op if already open.

        Raises:
            ConnectionFailedError: If the database cannot be opened
        """
        if self._connection is not None:
            return

        try:
            connection = await aiosqlite.connect(self._config.path, isolation_level=None)
        except (sqlite3.Error, OSError) as e:
            raise ConnectionFailedError(str(e)) from e

        try:
            for pragma in self._config.pragmas():
                await connection.execute(pragma)
        except sqlite3.Error as e:
            await connection.close()
            raise ConnectionFailedError(str(e)) from e

        self._connection = connection
        logger.debug(
            "Connected to SQLite database: %s (wal_mode=%s, busy_timeout=%d)",
            self._config.path,
            self._config.wal_mode,
            self._config.busy_timeout,
        )

    async def close(self) -> None:
        """
        Close the connection. Safe to call multiple times.

        An open transaction is rolled back first and its after-commit
        callbacks are discarded.
        """
        connection = self._connection
        if connection is None:
            return

        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

        if self._transaction_owner is not None:
            logger.warning("Closing %s with an open transaction; rolling back", self._config.path)
            try:
                await connection.execute("ROLLBACK")
            except sqlite3.Error as e:
                logger.debug("Rollback during close failed: %s", e)
            self._end_transaction()

        self._connection = None
        try:
            await connection.close()
        except sqlite3.Error as e:
            raise ConnectionFailedError(str(e)) from e
        logger.debug("Closed SQLite database connection: %s", self._config.path)

    async def __aenter__(self) -> Database:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    def _ensure_open(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise DatabaseNotOpenError()
        return self._connection

    # -- statements ---------------------------------------------------------

    @asynccontextmanager
    async def _serialized(self) -> AsyncIterator[aiosqlite.Connection]:
        """Hold the statement lock, unless the current task owns the transaction."""
        if self._owns_transaction():
            yield self._ensure_open()
            return
        async with self._lock:
            yield self._ensure_open()

    def _owns_transaction(self) -> bool:
        owner = self._transaction_owner
        return owner is not None and owner is asyncio.current_task()

    def _span_attributes(self, sql: str) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "sqlite",
            ATTR_DB_NAME: self._config.path,
            ATTR_DB_OPERATION: _operation(sql),
        }

    async def execute(self, sql: str, bindings: Sequence[SQLValue] = ()) -> int:
        """
        Execute a statement that returns no rows.

        Returns:
            Number of rows affected (0 for DDL)

        Raises:
            DatabaseNotOpenError: If the database is not open
            ExecutionError: If the engine rejects the statement
        """
        with self._tracer.span("sqliteorm.database.execute", self._span_attributes(sql)) as span:
            async with self._serialized() as connection:
                try:
                    async with connection.execute(sql, tuple(bindings)) as cursor:
                        affected = max(cursor.rowcount, 0)
                except (sqlite3.Error, OverflowError) as e:
                    raise translate_error(sql, e) from e
            if span is not None:
                span.set_attribute(ATTR_ROW_COUNT, affected)
            return affected

    async def execute_insert(self, sql: str, bindings: Sequence[SQLValue] = ()) -> int:
        """
        Execute an INSERT and return the row id SQLite assigned.

        The row id is read from the same statement's cursor, so no other
        statement can run in between.
        """
        with self._tracer.span("sqliteorm.database.insert", self._span_attributes(sql)):
            async with self._serialized() as connection:
                try:
                    async with connection.execute(sql, tuple(bindings)) as cursor:
                        row_id = cursor.lastrowid
                except (sqlite3.Error, OverflowError) as e:
                    raise translate_error(sql, e) from e
            if row_id is None:
                raise SQLExecutionError(sql, "no row id was assigned")
            return row_id

    async def query(self, sql: str, bindings: Sequence[SQLValue] = ()) -> list[Row]:
        """
        Execute a statement and return its rows as column -> value dicts.

        Raises:
            DatabaseNotOpenError: If the database is not open
            ExecutionError: If the engine rejects the statement
        """
        with self._tracer.span("sqliteorm.database.query", self._span_attributes(sql)) as span:
            async with self._serialized() as connection:
                try:
                    async with connection.execute(sql, tuple(bindings)) as cursor:
                        fetched = await cursor.fetchall()
                        names = [column[0] for column in cursor.description or ()]
                except (sqlite3.Error, OverflowError) as e:
                    raise translate_error(sql, e) from e
            rows = [dict(zip(names, row, strict=True)) for row in fetched]
            if span is not None:
                span.set_attribute(ATTR_ROW_COUNT, len(rows))
            return rows

    async def last_insert_rowid(self) -> int:
        """Row id of the most recent successful INSERT on this connection."""
        rows = await self.query("SELECT last_insert_rowid() AS rowid")
        value = rows[0]["rowid"]
        return int(value) if isinstance(value, int) else 0

    # -- transactions -------------------------------------------------------

    async def begin(self) -> None:
        """
        Begin an explicit transaction owned by the current task.

        Other tasks' statements wait until the transaction ends.

        Raises:
            InvalidOperationError: If the current task already has a transaction
        """
        if self._owns_transaction():
            raise InvalidOperationError("Transaction already in progress")
        connection = self._ensure_open()

        await self._lock.acquire()
        starting = asyncio.ensure_future(_run_control(connection, "BEGIN"))
        try:
            await asyncio.shield(starting)
        except sqlite3.Error as e:
            self._lock.release()
            raise translate_error("BEGIN", e) from e
        except BaseException:
            # BEGIN still runs on the connection thread; undo it before unlocking
            self._start_background(self._undo_interrupted_begin(connection, starting))
            raise
        self._transaction_owner = asyncio.current_task()
        logger.debug("Transaction started on %s", self._config.path)

    async def commit(self) -> None:
        """
        Commit the current task's transaction and run its after-commit callbacks.

        Raises:
            TransactionNotActiveError: If the current task has no transaction
            TransactionFailedError: If the commit fails (the transaction is
                rolled back)
        """
        if not self._owns_transaction():
            raise TransactionNotActiveError()
        connection = self._ensure_open()

        finishing = asyncio.ensure_future(self._finish_commit(connection))
        try:
            callbacks = await asyncio.shield(finishing)
        except TransactionFailedError:
            raise
        except BaseException:
            # The commit settles in the background and releases the lock there
            self._background_tasks.add(finishing)
            finishing.add_done_callback(self._on_interrupted_commit_done)
            raise

        logger.debug("Transaction committed on %s", self._config.path)
        for callback in callbacks:
            self._run_callback(callback)

    async def _finish_commit(
        self, connection: aiosqlite.Connection
    ) -> list[Callable[[], None]]:
        try:
            await _run_control(connection, "COMMIT")
        except sqlite3.Error as e:
            try:
                await _run_control(connection, "ROLLBACK")
            except sqlite3.Error as rollback_error:
                logger.debug("Rollback after failed commit failed: %s", rollback_error)
            finally:
                self._end_transaction()
            raise TransactionFailedError(str(e)) from e
        except BaseException:
            self._end_transaction()
            raise
        return self._end_transaction()

    def _on_interrupted_commit_done(self, task: asyncio.Task[list[Callable[[], None]]]) -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Interrupted commit on %s failed: %s", self._config.path, error)
            return
        logger.debug("Interrupted commit on %s completed", self._config.path)
        for callback in task.result():
            self._run_callback(callback)

    async def _undo_interrupted_begin(
        self, connection: aiosqlite.Connection, starting: asyncio.Future[None]
    ) -> None:
        try:
            await starting
            await _run_control(connection, "ROLLBACK")
        except (sqlite3.Error, ValueError) as e:
            logger.debug("Undoing interrupted BEGIN on %s failed: %s", self._config.path, e)
        finally:
            self._lock.release()

    def _start_background(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def rollback(self) -> None:
        """
        Roll back the current task's transaction, discarding its callbacks.

        Raises:
            TransactionNotActiveError: If the current task has no transaction
        """
        if not self._owns_transaction():
            raise TransactionNotActiveError()
        connection = self._ensure_open()

        try:
            await connection.execute("ROLLBACK")
        except sqlite3.Error as e:
            raise translate_error("ROLLBACK", e) from e
        finally:
            self._end_transaction()
        logger.debug("Transaction rolled back on %s", self._config.path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Database]:
        """
        Run a block inside a transaction.

        Commits when the block finishes, rolls back if it raises.

        Example:
            >>> async with db.transaction():
            ...     await db.execute("UPDATE items SET quantity = 0")
            ...     await db.execute("DELETE FROM items WHERE quantity = 0")
        """
        await self.begin()
        try:
            yield self
        except BaseException:
            if self._owns_transaction():
                await self.rollback()
            raise
        await self.commit()

    def after_commit(self, callback: Callable[[], None]) -> None:
        """
        Run ``callback`` once the current write is durable.

        Outside a transaction the callback runs immediately; inside one it
        runs after a successful commit and is dropped on rollback.
        """
        if self._owns_transaction():
            self._pending_callbacks.append(callback)
        else:
            self._run_callback(callback)

    def _end_transaction(self) -> list[Callable[[], None]]:
        callbacks = self._pending_callbacks
        self._pending_callbacks = []
        self._transaction_owner = None
        if self._lock.locked():
            self._lock.release()
        return callbacks

    @staticmethod
    def _run_callback(callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            logger.exception("after_commit callback %r failed", callback)


__all__ = ["Database", "Row", "translate_error"]
