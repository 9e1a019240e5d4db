"""
Unit tests for mapping sqlite3 exceptions to typed ORM errors.
"""

import sqlite3

import pytest

from sqliteorm.database import translate_error
from sqliteorm.exceptions import (
    ConstraintViolationError,
    DatabaseLockedError,
    DuplicateEntryError,
    InvalidSQLError,
    SQLExecutionError,
)


class TestTranslateError:
    def test_unique_violation(self) -> None:
        error = translate_error(
            "INSERT INTO tags (label) VALUES (?)",
            sqlite3.IntegrityError("UNIQUE constraint failed: tags.label"),
        )
        assert isinstance(error, DuplicateEntryError)
        assert error.entity == "tags"
        assert error.field == "label"

    def test_composite_unique_violation(self) -> None:
        error = translate_error(
            "INSERT ...",
            sqlite3.IntegrityError("UNIQUE constraint failed: slots.day, slots.hour"),
        )
        assert isinstance(error, DuplicateEntryError)
        assert error.entity == "slots"
        assert error.field == "day, hour"

    def test_other_integrity_violation(self) -> None:
        error = translate_error(
            "INSERT ...",
            sqlite3.IntegrityError("NOT NULL constraint failed: items.name"),
        )
        assert type(error) is ConstraintViolationError
        assert error.constraint == "NOT NULL constraint failed: items.name"

    @pytest.mark.parametrize(
        "message",
        [
            "database is locked",
            "database table is locked: items",
            "database schema is locked: main",
        ],
    )
    def test_locked(self, message: str) -> None:
        error = translate_error("UPDATE ...", sqlite3.OperationalError(message))
        assert isinstance(error, DatabaseLockedError)

    @pytest.mark.parametrize("code", [5, 6, 261, 517])
    def test_locked_by_result_code(self, code: int) -> None:
        raised = sqlite3.OperationalError("cannot commit transaction")
        raised.sqlite_errorcode = code
        assert isinstance(translate_error("COMMIT", raised), DatabaseLockedError)

    @pytest.mark.parametrize(
        "message",
        ["no such table: blocked_users", "no such table: busy_slots", "no such column: unlocked"],
    )
    def test_names_mentioning_locks_are_invalid_sql(self, message: str) -> None:
        error = translate_error("SELECT * FROM blocked_users", sqlite3.OperationalError(message))
        assert isinstance(error, InvalidSQLError)
        assert error.reason == message

    def test_busy_in_other_message_is_not_locked(self) -> None:
        error = translate_error("SELECT 1", sqlite3.OperationalError("busy_flag overflow"))
        assert type(error) is SQLExecutionError

    @pytest.mark.parametrize(
        "message",
        [
            'near "SELEC": syntax error',
            "no such table: missing",
            "no such column: nope",
            "table items has no column named nope",
        ],
    )
    def test_invalid_sql(self, message: str) -> None:
        error = translate_error("SELEC 1", sqlite3.OperationalError(message))
        assert isinstance(error, InvalidSQLError)
        assert error.query == "SELEC 1"
        assert error.reason == message

    def test_binding_count_mismatch_is_invalid_sql(self) -> None:
        error = translate_error(
            "SELECT ?",
            sqlite3.ProgrammingError(
                "Incorrect number of bindings supplied. "
                "The current statement uses 1, and there are 0 supplied."
            ),
        )
        assert isinstance(error, InvalidSQLError)

    def test_anything_else(self) -> None:
        error = translate_error("SELECT 1", sqlite3.OperationalError("disk I/O error"))
        assert type(error) is SQLExecutionError
        assert error.query == "SELECT 1"
        assert error.reason == "disk I/O error"

    def test_overflow(self) -> None:
        error = translate_error("INSERT ...", OverflowError("Python int too large"))
        assert isinstance(error, SQLExecutionError)
