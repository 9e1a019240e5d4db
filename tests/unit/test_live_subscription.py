"""
Unit tests for the live subscription state machine.

These tests drive subscriptions with a stub repository whose reads can be
held open, so the interleavings around the initial load are deterministic:

- A change committed while the initial load is in flight is never lost
- Closing mid-setup discards the late result and releases waiters
- Failed re-fetches are published and the subscription stays live
- Bursts of changes coalesce without losing the final state
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from sqliteorm.exceptions import InvalidOperationError, InvalidSQLError
from sqliteorm.notifier import ChangeNotifier
from sqliteorm.observability import NullTracer
from sqliteorm.result import Err, Ok, ORMResult
from sqliteorm.subscriptions import (
    CountSubscription,
    ExistsSubscription,
    QuerySubscription,
    SingleSubscription,
    SubscriptionState,
)
from tests.conftest import eventually

TABLE = "items"


class StubRepository:
    """
    Repository double backed by a list.

    Every read snapshots ``rows`` when it starts, then waits on ``gate`` (if
    set) before answering, like a query that has already read the table but
    has not returned yet.
    """

    table_name = TABLE

    def __init__(self, notifier: ChangeNotifier | None) -> None:
        self.notifier = notifier
        self.tracer = NullTracer()
        self.rows: list[str] = []
        self.gate: asyncio.Event | None = None
        self.fetches = 0
        self.fail_next = False

    async def _read(self) -> ORMResult[list[str]]:
        self.fetches += 1
        snapshot = list(self.rows)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_next:
            self.fail_next = False
            return Err(InvalidSQLError("SELECT * FROM items", "boom"))
        return Ok(snapshot)

    async def find_all(self, query: Any = None) -> ORMResult[list[str]]:
        return await self._read()

    async def find(self, id: Any) -> ORMResult[str | None]:
        return (await self._read()).map(lambda rows: id if id in rows else None)

    async def find_first(self, query: Any = None) -> ORMResult[str | None]:
        return (await self._read()).map(lambda rows: rows[0] if rows else None)

    async def count(self, query: Any = None) -> ORMResult[int]:
        return (await self._read()).map(len)

    async def exists(self, query: Any = None) -> ORMResult[bool]:
        return (await self._read()).map(bool)

    def mutate(self, value: str) -> None:
        self.rows.append(value)
        if self.notifier is not None:
            self.notifier.notify(TABLE)


@pytest.fixture
def repo(notifier: ChangeNotifier) -> StubRepository:
    return StubRepository(notifier)


def subscribe(repo: StubRepository) -> QuerySubscription[Any]:
    return QuerySubscription(repo)  # type: ignore[arg-type]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_registers_and_publishes(
        self, repo: StubRepository, notifier: ChangeNotifier
    ) -> None:
        repo.rows = ["a"]
        sub = subscribe(repo)
        assert sub.state is SubscriptionState.CREATED
        assert sub.result is None

        await sub.start()

        assert sub.state is SubscriptionState.LIVE
        assert sub.is_live
        assert sub.result == Ok(["a"])
        assert sub.value == ["a"]
        assert sub.error is None
        assert notifier.subscriber_count(TABLE) == 1
        sub.close()

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()
        await sub.start()
        assert repo.fetches == 1
        sub.close()

    @pytest.mark.asyncio
    async def test_close_releases_registration(
        self, repo: StubRepository, notifier: ChangeNotifier
    ) -> None:
        sub = subscribe(repo)
        await sub.start()
        sub.close()
        sub.close()

        assert sub.state is SubscriptionState.CLOSED
        assert notifier.subscriber_count(TABLE) == 0

        repo.mutate("late")
        await asyncio.sleep(0.01)
        assert repo.fetches == 1

    @pytest.mark.asyncio
    async def test_closed_subscription_cannot_restart(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        sub.close()
        with pytest.raises(InvalidOperationError, match="closed"):
            await sub.start()
        with pytest.raises(InvalidOperationError):
            sub.observe(lambda result: None)

    @pytest.mark.asyncio
    async def test_async_context_manager(self, repo: StubRepository) -> None:
        async with subscribe(repo) as sub:
            assert sub.state is SubscriptionState.LIVE
        assert sub.state is SubscriptionState.CLOSED

    def test_requires_notifier(self) -> None:
        with pytest.raises(InvalidOperationError, match="no change notifier"):
            subscribe(StubRepository(None))

    @pytest.mark.asyncio
    async def test_channel_cleanup_closes_subscription(
        self, repo: StubRepository, notifier: ChangeNotifier
    ) -> None:
        sub = subscribe(repo)
        await sub.start()
        notifier.cleanup(TABLE)
        await eventually(lambda: sub.is_closed)


class TestAtomicSetup:
    @pytest.mark.asyncio
    async def test_change_during_initial_load_is_reflected(self, repo: StubRepository) -> None:
        repo.gate = asyncio.Event()
        sub = subscribe(repo)
        published: list[Any] = []
        sub.observe(lambda result: published.append(result.value))

        starting = asyncio.create_task(sub.start())
        await eventually(lambda: repo.fetches == 1)

        # The initial read has already taken its snapshot; this change lands after it
        repo.mutate("a")
        await asyncio.sleep(0.01)
        repo.gate.set()
        await starting

        assert published[0] == []
        assert published[-1] == ["a"]
        assert sub.value == ["a"]
        assert sub.state is SubscriptionState.LIVE
        sub.close()

    @pytest.mark.asyncio
    async def test_close_during_initial_load_discards_result(self, repo: StubRepository) -> None:
        repo.gate = asyncio.Event()
        repo.rows = ["a"]
        sub = subscribe(repo)
        published: list[Any] = []
        sub.observe(published.append)

        starting = asyncio.create_task(sub.start())
        await eventually(lambda: repo.fetches == 1)
        waiter = asyncio.create_task(sub.wait_for_result())
        await asyncio.sleep(0)

        sub.close()
        assert await asyncio.wait_for(waiter, timeout=1.0) is None

        repo.gate.set()
        await starting
        assert published == []
        assert sub.result is None
        assert sub.state is SubscriptionState.CLOSED


class TestRefresh:
    @pytest.mark.asyncio
    async def test_refetches_on_change(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()

        repo.mutate("a")
        await eventually(lambda: sub.value == ["a"])
        repo.mutate("b")
        await eventually(lambda: sub.value == ["a", "b"])
        sub.close()

    @pytest.mark.asyncio
    async def test_failure_is_published_and_subscription_stays_live(
        self, repo: StubRepository
    ) -> None:
        sub = subscribe(repo)
        await sub.start()

        repo.fail_next = True
        repo.mutate("a")
        await eventually(lambda: sub.error is not None)
        assert isinstance(sub.result, Err)
        assert sub.value is None
        assert sub.state is SubscriptionState.LIVE

        repo.mutate("b")
        await eventually(lambda: sub.value == ["a", "b"])
        assert sub.error is None
        sub.close()

    @pytest.mark.asyncio
    async def test_burst_coalesces_to_final_state(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()
        repo.gate = asyncio.Event()

        repo.mutate("a")
        await eventually(lambda: repo.fetches == 2)
        for value in "bcdef":
            repo.mutate(value)
        await asyncio.sleep(0.01)
        repo.gate.set()

        await eventually(lambda: sub.value == list("abcdef"))
        assert repo.fetches <= 4
        sub.close()

    @pytest.mark.asyncio
    async def test_manual_refresh(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()
        repo.rows.append("silent")

        assert await sub.refresh() == Ok(["silent"])
        assert repo.fetches == 2
        sub.close()

    @pytest.mark.asyncio
    async def test_refresh_requires_running_subscription(self, repo: StubRepository) -> None:
        with pytest.raises(InvalidOperationError, match="not running"):
            await subscribe(repo).refresh()


class TestObservers:
    @pytest.mark.asyncio
    async def test_observe_replays_current_result(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()
        seen: list[Any] = []
        sub.observe(seen.append)
        assert seen == [Ok([])]
        sub.close()

    @pytest.mark.asyncio
    async def test_unregister(self, repo: StubRepository) -> None:
        sub = subscribe(repo)
        await sub.start()
        seen: list[Any] = []
        unregister = sub.observe(seen.append)
        unregister()
        unregister()

        repo.mutate("a")
        await eventually(lambda: sub.value == ["a"])
        assert seen == [Ok([])]
        sub.close()

    @pytest.mark.asyncio
    async def test_failing_observer_does_not_stop_others(
        self, repo: StubRepository, caplog: pytest.LogCaptureFixture
    ) -> None:
        def broken(result: ORMResult[Any]) -> None:
            raise RuntimeError("observer bug")

        seen: list[Any] = []
        sub = subscribe(repo)
        sub.observe(broken)
        sub.observe(seen.append)

        await sub.start()

        assert seen == [Ok([])]
        assert "raised" in caplog.text
        sub.close()


class TestWaitForResult:
    @pytest.mark.asyncio
    async def test_starts_and_returns_first_result(self, repo: StubRepository) -> None:
        repo.rows = ["a"]
        sub = subscribe(repo)
        assert await sub.wait_for_result() == Ok(["a"])
        sub.close()

    @pytest.mark.asyncio
    async def test_timeout(self, repo: StubRepository) -> None:
        repo.gate = asyncio.Event()
        sub = subscribe(repo)
        starting = asyncio.create_task(sub.start())
        await eventually(lambda: repo.fetches == 1)

        with pytest.raises(TimeoutError):
            await sub.wait_for_result(timeout=0.05)

        sub.close()
        repo.gate.set()
        await starting


class TestShapes:
    @pytest.mark.asyncio
    async def test_count_and_exists(self, repo: StubRepository) -> None:
        count = CountSubscription(repo)  # type: ignore[arg-type]
        exists = ExistsSubscription(repo)  # type: ignore[arg-type]
        await count.start()
        await exists.start()
        assert (count.value, exists.value) == (0, False)

        repo.mutate("a")
        await eventually(lambda: count.value == 1 and exists.value is True)
        assert count.kind == "count"
        assert exists.kind == "exists"
        count.close()
        exists.close()

    @pytest.mark.asyncio
    async def test_single_by_id_and_first(self, repo: StubRepository) -> None:
        by_id = SingleSubscription(repo, id="b")  # type: ignore[arg-type]
        first = SingleSubscription(repo)  # type: ignore[arg-type]
        await by_id.start()
        await first.start()
        assert by_id.value is None
        assert first.value is None

        repo.mutate("a")
        repo.mutate("b")
        await eventually(lambda: by_id.value == "b" and first.value == "a")
        by_id.close()
        first.close()

    def test_single_rejects_id_and_query(self, repo: StubRepository) -> None:
        with pytest.raises(InvalidOperationError, match="not both"):
            SingleSubscription(repo, id=1, query=object())  # type: ignore[arg-type]
