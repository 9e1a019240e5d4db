"""
Per-table change notification.

The ``ChangeNotifier`` maps table names to ``TableChannel`` broadcasters.
A notification carries no payload: it only says "this table changed", and
each subscriber re-queries whatever it is interested in. The notifier holds
no data and caches nothing.

Callbacks are always delivered on the event loop the registration was made
from, via ``loop.call_soon_threadsafe``, so a subscriber never runs inside
the publisher's call stack and never on a foreign thread.

Example:
    >>> notifier = ChangeNotifier()
    >>> channel = notifier.publisher("items")
    >>> registration = channel.subscribe(lambda: print("items changed"))
    >>> notifier.notify("items")       # callback runs on the next loop iteration
    >>> registration.cancel()
    >>> notifier.cleanup_all()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

from sqliteorm.exceptions import InvalidOperationError

if TYPE_CHECKING:
    from sqliteorm.models.base import Record

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[], None]
"""Called with no arguments when a table changes."""

_CLOSED = object()
_CHANGED = object()


def table_key(table: str | type[Record]) -> str:
    """Resolve a table reference (name or Record subclass) to the table name."""
    if isinstance(table, str):
        return table
    return table.table_name()


class ChannelRegistration:
    """
    Handle for one subscriber of a TableChannel.

    Call ``cancel()`` to stop receiving notifications; cancelling twice is
    harmless.
    """

    def __init__(
        self,
        channel: TableChannel,
        callback: ChangeCallback,
        loop: asyncio.AbstractEventLoop,
        on_close: ChangeCallback | None = None,
    ) -> None:
        self._channel = channel
        self._callback = callback
        self._loop = loop
        self._on_close = on_close
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def table(self) -> str:
        return self._channel.table

    def cancel(self) -> None:
        """Stop delivering notifications to this subscriber."""
        if not self._active:
            return
        self._active = False
        self._channel._remove(self)

    def _schedule(self, callback: ChangeCallback) -> None:
        try:
            self._loop.call_soon_threadsafe(callback)
        except RuntimeError:
            # The owning loop is closed; nobody is left to receive anything
            logger.debug("Dropping registration on %s: event loop is closed", self.table)
            self._active = False

    def _deliver(self) -> None:
        if self._active:
            self._schedule(self._invoke)

    def _invoke(self) -> None:
        if self._active:
            self._callback()

    def _close(self) -> None:
        self._active = False
        if self._on_close is not None:
            self._schedule(self._on_close)


class TableChannel:
    """
    Broadcast channel for change events of one table.

    Thread-safe: subscribing, publishing and closing may happen from any
    thread.
    """

    def __init__(self, table: str) -> None:
        self._table = table
        self._lock = threading.RLock()
        self._registrations: list[ChannelRegistration] = []
        self._closed = False

    @property
    def table(self) -> str:
        return self._table

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._registrations)

    def subscribe(
        self,
        callback: ChangeCallback,
        loop: asyncio.AbstractEventLoop | None = None,
        on_close: ChangeCallback | None = None,
    ) -> ChannelRegistration:
        """
        Register a callback for change events.

        Args:
            callback: Called with no arguments after each change
            loop: Loop to deliver on (default: the running loop)
            on_close: Called once if the channel is closed while registered

        Returns:
            Registration handle; call ``cancel()`` to unsubscribe

        Raises:
            InvalidOperationError: If the channel has been closed
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        with self._lock:
            if self._closed:
                raise InvalidOperationError(f"change channel for {self._table} is closed")
            registration = ChannelRegistration(self, callback, loop, on_close)
            self._registrations.append(registration)
        logger.debug("Subscribed to changes of %s", self._table)
        return registration

    def publish(self) -> int:
        """
        Signal every current subscriber.

        Returns:
            Number of subscribers signalled
        """
        with self._lock:
            registrations = list(self._registrations)
        for registration in registrations:
            registration._deliver()
        return len(registrations)

    async def listen(self) -> AsyncIterator[None]:
        """
        Iterate over change events as an async stream.

        Bursts that arrive before the consumer resumes are coalesced into a
        single item. The iteration ends when the channel is closed.

        Example:
            >>> async for _ in notifier.publisher("items").listen():
            ...     await refresh_items()
        """
        queue: asyncio.Queue[object] = asyncio.Queue(maxsize=1)

        def on_change() -> None:
            if queue.empty():
                queue.put_nowait(_CHANGED)

        def on_close() -> None:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(_CLOSED)

        registration = self.subscribe(on_change, on_close=on_close)
        try:
            while True:
                item = await queue.get()
                if item is _CLOSED:
                    return
                yield None
        finally:
            registration.cancel()

    def close(self) -> None:
        """Close the channel and tell every subscriber. Idempotent."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registrations = self._registrations
            self._registrations = []
        for registration in registrations:
            registration._close()

    def _remove(self, registration: ChannelRegistration) -> None:
        with self._lock:
            if registration in self._registrations:
                self._registrations.remove(registration)


class ChangeNotifier:
    """
    Registry of per-table change channels.

    One notifier is shared by every repository of an ORM; its lifecycle is
    explicit (``cleanup_all()`` on shutdown) rather than module-global.

    Thread Safety:
        All methods are safe to call from any thread.
    """

    def __init__(self) -> None:
        self._channels: dict[str, TableChannel] = {}
        self._lock = threading.RLock()

    def publisher(self, table: str | type[Record]) -> TableChannel:
        """
        Get the channel for a table, creating it if absent.

        Args:
            table: Table name or Record subclass
        """
        key = table_key(table)
        with self._lock:
            channel = self._channels.get(key)
            if channel is None:
                channel = TableChannel(key)
                self._channels[key] = channel
            return channel

    def notify(self, table: str | type[Record]) -> None:
        """
        Broadcast a change of ``table``.

        Notifying a table nobody listens to is a no-op.
        """
        key = table_key(table)
        with self._lock:
            channel = self._channels.get(key)
        if channel is None:
            return
        count = channel.publish()
        logger.debug("Notified %d subscriber(s) of changes to %s", count, key)

    def cleanup(self, table: str | type[Record]) -> None:
        """Close and remove the channel of one table. A second call is a no-op."""
        key = table_key(table)
        with self._lock:
            channel = self._channels.pop(key, None)
        if channel is not None:
            channel.close()
            logger.debug("Closed change channel for %s", key)

    def cleanup_all(self) -> None:
        """Close and remove every channel."""
        with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            channel.close()
        if channels:
            logger.debug("Closed %d change channel(s)", len(channels))

    def has_channel(self, table: str | type[Record]) -> bool:
        with self._lock:
            return table_key(table) in self._channels

    @property
    def tables(self) -> list[str]:
        """Names of tables that currently have a channel."""
        with self._lock:
            return list(self._channels)

    def subscriber_count(self, table: str | type[Record]) -> int:
        with self._lock:
            channel = self._channels.get(table_key(table))
        return channel.subscriber_count if channel is not None else 0


__all__ = [
    "ChangeNotifier",
    "TableChannel",
    "ChannelRegistration",
    "ChangeCallback",
    "table_key",
]
