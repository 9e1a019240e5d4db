"""
ORM facade.

``ORM`` ties the pieces together: it owns the ``Database``, the
``ChangeNotifier`` shared by every repository, and one cached
``Repository`` per record type.

Example:
    >>> async with ORM(DatabaseConfig(path="shopping.db")) as orm:
    ...     await orm.create_tables(ShoppingItem)
    ...     items = orm.repository(ShoppingItem)
    ...     await items.insert(ShoppingItem(name="Apples", quantity=6))
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

from sqliteorm.config import MEMORY_PATH, DatabaseConfig
from sqliteorm.database import Database, Row
from sqliteorm.exceptions import ORMError, TransactionFailedError
from sqliteorm.models.base import Record
from sqliteorm.notifier import ChangeNotifier
from sqliteorm.observability import Tracer, create_tracer
from sqliteorm.repository import Repository
from sqliteorm.result import Err, Ok, ORMResult
from sqliteorm.values import SQLValue

logger = logging.getLogger(__name__)

T = TypeVar("T")
TRecord = TypeVar("TRecord", bound=Record)


class ORM:
    """
    Database, change notifier and repositories for one SQLite database.

    Args:
        config: Connection settings (default: private in-memory database)
        tracer: Optional tracer shared by the database and repositories
        enable_tracing: Override ``config.enable_tracing`` when no tracer is given
    """

    def __init__(
        self,
        config: DatabaseConfig | None = None,
        *,
        tracer: Tracer | None = None,
        enable_tracing: bool | None = None,
    ) -> None:
        self._config = config or DatabaseConfig()
        if enable_tracing is None:
            enable_tracing = self._config.enable_tracing
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._database = Database(self._config, tracer=self._tracer)
        self._notifier = ChangeNotifier()
        self._repositories: dict[type[Record], Repository[Any]] = {}

    @classmethod
    def in_memory(cls, *, enable_tracing: bool = False) -> ORM:
        """ORM over a private in-memory database."""
        return cls(DatabaseConfig(path=MEMORY_PATH, enable_tracing=enable_tracing))

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def database(self) -> Database:
        return self._database

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def is_open(self) -> bool:
        return self._database.is_open

    # -- lifecycle ----------------------------------------------------------

    async def open(self) -> ORMResult[None]:
        """Open the database connection."""
        try:
            await self._database.open()
        except ORMError as e:
            logger.debug("Opening %s failed: %s", self._config.path, e)
            return Err(e)
        logger.info("Opened database %s", self._config.path)
        return Ok(None)

    async def close(self) -> ORMResult[None]:
        """
        Close every change channel, then the database connection.

        Live subscriptions are closed through their channels.
        """
        self._notifier.cleanup_all()
        try:
            await self._database.close()
        except ORMError as e:
            logger.debug("Closing %s failed: %s", self._config.path, e)
            return Err(e)
        logger.info("Closed database %s", self._config.path)
        return Ok(None)

    async def __aenter__(self) -> ORM:
        (await self.open()).unwrap()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()

    # -- repositories -------------------------------------------------------

    def repository(self, record_type: type[TRecord]) -> Repository[TRecord]:
        """
        Get the repository for a record type, creating it on first use.

        Raises:
            RecordDefinitionError: If ``record_type`` cannot be mapped to a table
        """
        repository = self._repositories.get(record_type)
        if repository is None:
            repository = Repository(
                self._database,
                record_type,
                self._notifier,
                tracer=self._tracer,
            )
            self._repositories[record_type] = repository
        return repository

    async def create_tables(self, *record_types: type[Record]) -> ORMResult[None]:
        """Create the tables of the given record types, stopping at the first failure."""
        for record_type in record_types:
            result = await self.repository(record_type).create_table()
            if isinstance(result, Err):
                return result
        return Ok(None)

    # -- transactions and raw SQL -------------------------------------------

    async def transaction(self, block: Callable[[], Awaitable[ORMResult[T]]]) -> ORMResult[T]:
        """
        Run ``block`` inside a transaction.

        The transaction commits when ``block`` returns ``Ok`` and rolls back
        when it returns ``Err`` (which is passed through) or raises (which
        becomes ``Err(TransactionFailedError)``). Change notifications of
        the block's writes are sent only after the commit.

        Example:
            >>> async def move_stock() -> ORMResult[int]:
            ...     await items.update(apples)
            ...     return await items.delete(pears.id)
            >>> await orm.transaction(move_stock)
        """
        try:
            await self._database.begin()
        except ORMError as e:
            logger.debug("Starting transaction failed: %s", e)
            return Err(e)

        try:
            result = await block()
        except Exception as e:
            await self._rollback_quietly()
            error = TransactionFailedError(str(e) or type(e).__name__)
            error.__cause__ = e
            logger.debug("Transaction block raised: %s", e)
            return Err(error)
        except BaseException:
            await self._rollback_quietly()
            raise

        if isinstance(result, Err):
            await self._rollback_quietly()
            return result

        try:
            await self._database.commit()
        except ORMError as e:
            logger.debug("Commit failed: %s", e)
            return Err(e)
        return result

    async def _rollback_quietly(self) -> None:
        try:
            await self._database.rollback()
        except ORMError as e:
            logger.warning("Rollback failed: %s", e)

    async def execute(self, sql: str, bindings: Sequence[SQLValue] = ()) -> ORMResult[int]:
        """Execute a raw statement and return the affected row count."""
        try:
            return Ok(await self._database.execute(sql, bindings))
        except ORMError as e:
            logger.debug("execute failed: %s", e)
            return Err(e)

    async def query(self, sql: str, bindings: Sequence[SQLValue] = ()) -> ORMResult[list[Row]]:
        """Run a raw SELECT and return its rows as column -> value dicts."""
        try:
            return Ok(await self._database.query(sql, bindings))
        except ORMError as e:
            logger.debug("query failed: %s", e)
            return Err(e)


__all__ = ["ORM"]
