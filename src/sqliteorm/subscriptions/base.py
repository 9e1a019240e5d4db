"""
Live subscription base class.

A live subscription holds the result of one query and re-runs it every time
the change notifier signals its table. This module provides:

- SubscriptionState: Lifecycle states
- ResultObserver: Type of observer callbacks
- LiveSubscription: State machine, observer registry and refresh loop

State Machine:
    CREATED -> SETTING_UP -> LIVE -> CLOSED
    CLOSED is reachable from every state and is terminal.

Setup registers with the notifier *before* the initial load. A change that
commits while the initial query is in flight marks the subscription dirty,
and the refresh loop runs the query again before going quiet, so the change
is reflected by the first or the next published result.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqliteorm.exceptions import InvalidOperationError, ORMError
from sqliteorm.observability.attributes import ATTR_SUBSCRIPTION_KIND, ATTR_TABLE_NAME
from sqliteorm.result import Err, Ok, ORMResult

if TYPE_CHECKING:
    from types import TracebackType

    from sqliteorm.notifier import ChangeNotifier, ChannelRegistration
    from sqliteorm.repository import Repository

logger = logging.getLogger(__name__)

T = TypeVar("T")

ResultObserver = Callable[[ORMResult[Any]], None]
"""Called with every published result (success or failure)."""


class SubscriptionState(Enum):
    """States a live subscription moves through."""

    CREATED = "created"
    """Holds its inputs only; not registered, nothing loaded."""

    SETTING_UP = "setting_up"
    """Registered with the notifier, initial load in flight."""

    LIVE = "live"
    """Initial result published; re-fetching on every change."""

    CLOSED = "closed"
    """Registration released; no further results are published."""


class LiveSubscription(ABC, Generic[T]):
    """
    Observable holder of a query result that follows its table.

    Results are published on the event loop ``start()`` ran on. A failed
    re-fetch is published as an ``Err`` and the subscription stays live;
    the next change triggers another attempt.

    Args:
        repository: Repository the query runs against
        notifier: Change notifier to register with (default: the
            repository's notifier)

    Raises:
        InvalidOperationError: If no notifier is available

    Example:
        >>> async with items.subscribe(Query().order_by("name")) as live:
        ...     unregister = live.observe(lambda result: print(result.value))
        ...     await items.insert(ShoppingItem(name="Pears"))
    """

    kind = "query"

    def __init__(
        self,
        repository: Repository[Any],
        notifier: ChangeNotifier | None = None,
    ) -> None:
        notifier = notifier or repository.notifier
        if notifier is None:
            raise InvalidOperationError(
                f"repository for {repository.table_name} has no change notifier"
            )
        self._repository = repository
        self._notifier = notifier
        self._table = repository.table_name
        self._tracer = repository.tracer
        self._state = SubscriptionState.CREATED
        self._result: ORMResult[T] | None = None
        self._observers: list[ResultObserver] = []
        self._registration: ChannelRegistration | None = None
        self._first_result = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._dirty = False
        self._refreshing = False

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def table(self) -> str:
        return self._table

    @property
    def result(self) -> ORMResult[T] | None:
        """Last published result, or None before the initial load."""
        return self._result

    @property
    def value(self) -> T | None:
        """Value of the last result; None before the first load or after a failure."""
        if isinstance(self._result, Ok):
            return self._result.value
        return None

    @property
    def error(self) -> ORMError | None:
        """Error of the last result, if it was a failure."""
        if isinstance(self._result, Err):
            return self._result.error
        return None

    @property
    def is_live(self) -> bool:
        return self._state is SubscriptionState.LIVE

    @property
    def is_closed(self) -> bool:
        return self._state is SubscriptionState.CLOSED

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """
        Register for changes, then load and publish the initial result.

        Starting a subscription that is already set up or live does nothing.

        Raises:
            InvalidOperationError: If the subscription is closed
        """
        if self._state is SubscriptionState.CLOSED:
            raise InvalidOperationError(f"{self.kind} subscription on {self._table} is closed")
        if self._state is not SubscriptionState.CREATED:
            return

        self._state = SubscriptionState.SETTING_UP
        with self._tracer.span(
            "sqliteorm.subscription.start",
            {ATTR_SUBSCRIPTION_KIND: self.kind, ATTR_TABLE_NAME: self._table},
        ):
            try:
                self._registration = self._notifier.publisher(self._table).subscribe(
                    self._on_change, on_close=self.close
                )
                self._refreshing = True
                await self._refresh_loop()
            except BaseException:
                self.close()
                raise

        if self._state is SubscriptionState.SETTING_UP:
            self._state = SubscriptionState.LIVE
            logger.debug("%s subscription on %s is live", self.kind, self._table)

    def close(self) -> None:
        """
        Release the notifier registration and stop publishing.

        Safe at any point of the lifecycle, including during the initial
        load, and idempotent. Pending ``wait_for_result`` calls return.
        """
        if self._state is SubscriptionState.CLOSED:
            return
        self._state = SubscriptionState.CLOSED
        self._dirty = False

        if self._registration is not None:
            self._registration.cancel()
            self._registration = None

        task = self._task
        self._task = None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        self._observers.clear()
        self._first_result.set()
        logger.debug("%s subscription on %s closed", self.kind, self._table)

    async def aclose(self) -> None:
        """Close the subscription and wait for an in-flight refresh to finish."""
        task = self._task
        self.close()
        if task is not None and task is not _current_task():
            await asyncio.gather(task, return_exceptions=True)

    async def __aenter__(self) -> LiveSubscription[T]:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    # =========================================================================
    # Results
    # =========================================================================

    def observe(self, observer: ResultObserver) -> Callable[[], None]:
        """
        Register an observer of published results.

        If a result has already been published the observer receives it
        immediately.

        Returns:
            Callable that unregisters the observer
        """
        if self._state is SubscriptionState.CLOSED:
            raise InvalidOperationError(f"{self.kind} subscription on {self._table} is closed")
        self._observers.append(observer)
        if self._result is not None:
            self._notify_observer(observer, self._result)

        def unregister() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unregister

    async def wait_for_result(self, timeout: float | None = None) -> ORMResult[T] | None:
        """
        Wait until a result has been published.

        Starts the subscription if it has not been started yet; ``timeout``
        only bounds the wait that follows.

        Args:
            timeout: Seconds to wait (default: no limit)

        Returns:
            The current result, or None if the subscription closed before
            any result was published

        Raises:
            TimeoutError: If no result arrives within ``timeout``
        """
        if self._state is SubscriptionState.CREATED:
            await self.start()
        if not self._first_result.is_set():
            await asyncio.wait_for(self._first_result.wait(), timeout)
        return self._result

    async def refresh(self) -> ORMResult[T] | None:
        """
        Re-run the query now and publish the result.

        If a refresh is already running it is asked to run once more
        instead, and this call returns the current result.
        """
        if self._state not in (SubscriptionState.SETTING_UP, SubscriptionState.LIVE):
            raise InvalidOperationError(
                f"{self.kind} subscription on {self._table} is not running"
            )
        self._dirty = True
        if not self._refreshing:
            self._refreshing = True
            await self._refresh_loop()
        return self._result

    @abstractmethod
    async def _fetch(self) -> ORMResult[T]:
        """Run the subscription's query once."""

    # =========================================================================
    # Internals
    # =========================================================================

    def _on_change(self) -> None:
        if self._state is SubscriptionState.CLOSED:
            return
        self._dirty = True
        if self._refreshing:
            return
        self._refreshing = True
        self._task = asyncio.get_running_loop().create_task(self._refresh_loop())

    async def _refresh_loop(self) -> None:
        """
        Fetch and publish until no change arrived during the last fetch.

        Callers set ``_refreshing`` before entering so that at most one loop
        runs at a time; signals that arrive meanwhile only set ``_dirty``.
        """
        try:
            while True:
                self._dirty = False
                result = await self._fetch()
                if self._state is SubscriptionState.CLOSED:
                    return
                self._publish(result)
                if not self._dirty or self._state is SubscriptionState.CLOSED:
                    return
        finally:
            self._refreshing = False

    def _publish(self, result: ORMResult[T]) -> None:
        self._result = result
        self._first_result.set()
        if isinstance(result, Err):
            logger.debug(
                "%s subscription on %s published a failure: %s",
                self.kind,
                self._table,
                result.error,
            )
        for observer in list(self._observers):
            self._notify_observer(observer, result)

    def _notify_observer(self, observer: ResultObserver, result: ORMResult[T]) -> None:
        try:
            observer(result)
        except Exception:
            logger.exception(
                "Observer of %s subscription on %s raised",
                self.kind,
                self._table,
            )


def _current_task() -> asyncio.Task[Any] | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


__all__ = ["LiveSubscription", "SubscriptionState", "ResultObserver"]
