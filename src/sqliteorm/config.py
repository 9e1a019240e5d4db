"""
Configuration for the SQLite database wrapper.
"""

from __future__ import annotations

from dataclasses import dataclass

MEMORY_PATH = ":memory:"


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Connection settings applied when a Database is opened.

    Attributes:
        path: Database file path, or ":memory:" for a private in-memory database
        wal_mode: Use write-ahead logging (ignored for in-memory databases)
        busy_timeout: Milliseconds SQLite waits on a locked database before
            reporting it as locked
        foreign_keys: Enforce foreign key constraints
        enable_tracing: Create OpenTelemetry spans for statements

    Example:
        >>> config = DatabaseConfig(path="app.db", busy_timeout=10_000)
        >>> config.is_memory
        False
    """

    path: str = MEMORY_PATH
    wal_mode: bool = True
    busy_timeout: int = 5000
    foreign_keys: bool = True
    enable_tracing: bool = True

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("path must not be empty")
        if self.busy_timeout < 0:
            raise ValueError(f"busy_timeout must be >= 0, got {self.busy_timeout}")

    @property
    def is_memory(self) -> bool:
        """True if this config points at an in-memory database."""
        return self.path == MEMORY_PATH

    def pragmas(self) -> list[str]:
        """
        PRAGMA statements to run right after connecting, in order.

        Example:
            >>> DatabaseConfig(path=":memory:").pragmas()
            ['PRAGMA foreign_keys = ON', 'PRAGMA busy_timeout = 5000']
        """
        statements = [
            f"PRAGMA foreign_keys = {'ON' if self.foreign_keys else 'OFF'}",
            f"PRAGMA busy_timeout = {int(self.busy_timeout)}",
        ]
        if self.wal_mode and not self.is_memory:
            statements.append("PRAGMA journal_mode = WAL")
        return statements


__all__ = ["DatabaseConfig", "MEMORY_PATH"]
