"""
Concrete live subscription shapes.

- QuerySubscription: every record matching a query
- SingleSubscription: one record, by identity or as the first match
- CountSubscription: number of matching records
- ExistsSubscription: whether any record matches
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqliteorm.exceptions import InvalidOperationError
from sqliteorm.models.base import Record
from sqliteorm.query.query import Query
from sqliteorm.result import ORMResult
from sqliteorm.subscriptions.base import LiveSubscription

if TYPE_CHECKING:
    from sqliteorm.notifier import ChangeNotifier
    from sqliteorm.repository import Repository

TRecord = TypeVar("TRecord", bound=Record)

_MISSING: Any = object()


class QuerySubscription(LiveSubscription[list[TRecord]]):
    """Live list of the records matching a query (default: all records)."""

    kind = "query"

    def __init__(
        self,
        repository: Repository[TRecord],
        query: Query | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        super().__init__(repository, notifier)
        self._query = query

    @property
    def query(self) -> Query | None:
        return self._query

    async def _fetch(self) -> ORMResult[list[TRecord]]:
        return await self._repository.find_all(self._query)


class SingleSubscription(LiveSubscription[TRecord | None]):
    """
    Live optional record.

    Follows either the record with a fixed identity or the first record
    matching a query; exactly one of ``id`` and ``query`` may be given. The
    value is None while no record matches.
    """

    kind = "single"

    def __init__(
        self,
        repository: Repository[TRecord],
        *,
        id: Any = _MISSING,
        query: Query | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        if id is not _MISSING and query is not None:
            raise InvalidOperationError("single subscription takes an id or a query, not both")
        super().__init__(repository, notifier)
        self._id = id
        self._query = query

    async def _fetch(self) -> ORMResult[TRecord | None]:
        if self._id is not _MISSING:
            return await self._repository.find(self._id)
        return await self._repository.find_first(self._query)


class CountSubscription(LiveSubscription[int]):
    """Live number of records matching a query."""

    kind = "count"

    def __init__(
        self,
        repository: Repository[Any],
        query: Query | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        super().__init__(repository, notifier)
        self._query = query

    async def _fetch(self) -> ORMResult[int]:
        return await self._repository.count(self._query)


class ExistsSubscription(LiveSubscription[bool]):
    """Live flag: True while at least one record matches a query."""

    kind = "exists"

    def __init__(
        self,
        repository: Repository[Any],
        query: Query | None = None,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        super().__init__(repository, notifier)
        self._query = query

    async def _fetch(self) -> ORMResult[bool]:
        return await self._repository.exists(self._query)


__all__ = [
    "QuerySubscription",
    "SingleSubscription",
    "CountSubscription",
    "ExistsSubscription",
]
