"""
Shared pytest fixtures for the sqliteorm library tests.

This module provides:
- Database fixtures (database, file_database) over real SQLite
- Change notifier fixture with explicit cleanup
- Repository fixtures for the shared record types (items, tags, contacts)
- ORM fixture over an in-memory database
- Polling helper for asserting on live subscriptions

All fixtures are function scoped, so every test gets a fresh database.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import pytest
import pytest_asyncio

from sqliteorm import ORM, ChangeNotifier, Database, DatabaseConfig, Repository
from tests.fixtures import Contact, ShoppingItem, Tag

# ============================================================================
# Helpers
# ============================================================================


async def eventually(
    condition: Callable[[], bool],
    timeout: float = 2.0,
    interval: float = 0.01,
) -> None:
    """
    Wait until ``condition()`` is true.

    Live subscriptions refresh on the event loop after the database worker
    thread answers, so assertions on them poll instead of sleeping a fixed
    amount.

    Raises:
        AssertionError: If the condition is still false after ``timeout``
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() >= deadline:
            raise AssertionError("condition not met within timeout")
        await asyncio.sleep(interval)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def memory_config() -> DatabaseConfig:
    """In-memory database settings with tracing disabled."""
    return DatabaseConfig(enable_tracing=False)


@pytest_asyncio.fixture
async def database(memory_config: DatabaseConfig) -> AsyncGenerator[Database, None]:
    """
    Provide an open in-memory Database.

    Yields:
        Open Database, closed after the test.
    """
    db = Database(memory_config)
    await db.open()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def file_database(tmp_path: Path) -> AsyncGenerator[Database, None]:
    """Provide an open file-backed Database in WAL mode."""
    db = Database(DatabaseConfig(path=str(tmp_path / "test.db"), enable_tracing=False))
    await db.open()
    yield db
    await db.close()


@pytest.fixture
def notifier() -> Generator[ChangeNotifier, None, None]:
    """Provide a ChangeNotifier whose channels are closed after the test."""
    change_notifier = ChangeNotifier()
    yield change_notifier
    change_notifier.cleanup_all()


# ============================================================================
# Repository Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def items(
    database: Database, notifier: ChangeNotifier
) -> AsyncGenerator[Repository[ShoppingItem], None]:
    """Provide a ShoppingItem repository with its table created."""
    repo = Repository(database, ShoppingItem, notifier, enable_tracing=False)
    (await repo.create_table()).unwrap()
    yield repo


@pytest_asyncio.fixture
async def tags(
    database: Database, notifier: ChangeNotifier
) -> AsyncGenerator[Repository[Tag], None]:
    """Provide a Tag repository with its table created."""
    repo = Repository(database, Tag, notifier, enable_tracing=False)
    (await repo.create_table()).unwrap()
    yield repo


@pytest_asyncio.fixture
async def contacts(
    database: Database, notifier: ChangeNotifier
) -> AsyncGenerator[Repository[Contact], None]:
    """Provide a Contact repository with its table created."""
    repo = Repository(database, Contact, notifier, enable_tracing=False)
    (await repo.create_table()).unwrap()
    yield repo


# ============================================================================
# ORM Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def orm() -> AsyncGenerator[ORM, None]:
    """Provide an open in-memory ORM with the ShoppingItem table created."""
    instance = ORM.in_memory()
    (await instance.open()).unwrap()
    (await instance.create_tables(ShoppingItem)).unwrap()
    yield instance
    await instance.close()
