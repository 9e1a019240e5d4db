"""
Exceptions for sqliteorm.

Error kinds are grouped by origin so callers can match on either a concrete
failure (``DuplicateEntryError``) or a whole family (``ExecutionError``):

- Connection: ConnectionFailedError, DatabaseNotOpenError, DatabaseLockedError
- Execution: SQLExecutionError, InvalidSQLError, ConstraintViolationError
- Data mapping: TypeMismatchError, MissingColumnError, InvalidDataError
- Transaction: TransactionFailedError, TransactionNotActiveError
- General: NotFoundError, DuplicateEntryError, InvalidOperationError

Public repository operations never raise these across their boundary; they
return them wrapped in ``Err`` (see ``sqliteorm.result``).
"""

from typing import Any


class ORMError(Exception):
    """
    Base exception for all sqliteorm failures.

    Example:
        >>> result = await repo.insert(item)
        >>> if isinstance(result.error, ORMError):
        ...     print(f"Insert failed: {result.error}")
    """

    pass


# =============================================================================
# Connection
# =============================================================================


class DatabaseConnectionError(ORMError):
    """Base class for failures talking to the database file itself."""

    pass


class ConnectionFailedError(DatabaseConnectionError):
    """Raised when the database cannot be opened or closed."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Database connection failed: {reason}")


class DatabaseNotOpenError(DatabaseConnectionError):
    """Raised when an operation is attempted before ``open()``."""

    def __init__(self) -> None:
        super().__init__("Database is not open")


class DatabaseLockedError(DatabaseConnectionError):
    """Raised when SQLite reports the database as locked or busy."""

    def __init__(self, reason: str = "database is locked") -> None:
        self.reason = reason
        super().__init__(f"Database is locked: {reason}")


# =============================================================================
# Execution
# =============================================================================


class ExecutionError(ORMError):
    """Base class for failures while executing a statement."""

    pass


class SQLExecutionError(ExecutionError):
    """
    Raised when a statement fails for a reason not covered by a narrower kind.

    Attributes:
        query: The SQL statement that failed
        reason: Engine-reported reason
    """

    def __init__(self, query: str, reason: str) -> None:
        self.query = query
        self.reason = reason
        super().__init__(f"SQL execution failed for query '{query}': {reason}")


class InvalidSQLError(ExecutionError):
    """Raised when SQLite rejects a statement as malformed."""

    def __init__(self, query: str, reason: str | None = None) -> None:
        self.query = query
        self.reason = reason
        detail = f" - {reason}" if reason else ""
        super().__init__(f"Invalid SQL query: {query}{detail}")


class ConstraintViolationError(ExecutionError):
    """
    Raised when a statement violates a table constraint.

    Attributes:
        constraint: Engine-reported description of the violated constraint
    """

    def __init__(self, constraint: str) -> None:
        self.constraint = constraint
        super().__init__(f"Constraint violation: {constraint}")


# =============================================================================
# Data mapping
# =============================================================================


class DataMappingError(ORMError):
    """Base class for failures converting between records and rows."""

    pass


class TypeMismatchError(DataMappingError):
    """
    Raised when a stored value cannot be coerced to the declared field type.

    Attributes:
        column: Column holding the offending value
        expected_type: Declared semantic type of the field
        actual_type: Storage class of the value that was found
    """

    def __init__(self, column: str, expected_type: str, actual_type: str) -> None:
        self.column = column
        self.expected_type = expected_type
        self.actual_type = actual_type
        super().__init__(
            f"Type mismatch for column '{column}': expected {expected_type}, got {actual_type}"
        )


class MissingColumnError(DataMappingError):
    """Raised when a row lacks a column required by the record type."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Missing column: {name}")


class InvalidDataError(DataMappingError):
    """Raised for any other record/row conversion failure."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid data: {reason}")


# =============================================================================
# Transaction
# =============================================================================


class TransactionError(ORMError):
    """Base class for transaction failures."""

    pass


class TransactionFailedError(TransactionError):
    """Raised when a transaction cannot be committed or its body fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Transaction failed: {reason}")


class TransactionNotActiveError(TransactionError):
    """Raised by commit/rollback when no transaction is in progress."""

    def __init__(self) -> None:
        super().__init__("No active transaction")


# =============================================================================
# General
# =============================================================================


class NotFoundError(ORMError):
    """
    Raised when a record was required but does not exist.

    Attributes:
        entity: Record type name
        id: Identity that was looked up
    """

    def __init__(self, entity: str, id: Any) -> None:
        self.entity = entity
        self.id = id
        super().__init__(f"{entity} not found with id: {id}")


class DuplicateEntryError(ConstraintViolationError):
    """
    Raised when an insert or update collides with a unique column.

    Attributes:
        entity: Table the collision happened in
        field: Column (or comma separated columns) that must be unique
    """

    def __init__(self, entity: str, field: str) -> None:
        self.entity = entity
        self.field = field
        self.constraint = f"UNIQUE constraint failed: {entity}.{field}"
        ExecutionError.__init__(self, f"Duplicate entry for {entity}.{field}")


class InvalidOperationError(ORMError):
    """Raised when an operation is requested that cannot be carried out."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid operation: {reason}")


class RecordDefinitionError(ORMError):
    """Raised when a Record subclass cannot be mapped to a table."""

    def __init__(self, record_name: str, reason: str) -> None:
        self.record_name = record_name
        self.reason = reason
        super().__init__(f"Invalid record definition {record_name}: {reason}")


__all__ = [
    "ORMError",
    "DatabaseConnectionError",
    "ConnectionFailedError",
    "DatabaseNotOpenError",
    "DatabaseLockedError",
    "ExecutionError",
    "SQLExecutionError",
    "InvalidSQLError",
    "ConstraintViolationError",
    "DataMappingError",
    "TypeMismatchError",
    "MissingColumnError",
    "InvalidDataError",
    "TransactionError",
    "TransactionFailedError",
    "TransactionNotActiveError",
    "NotFoundError",
    "DuplicateEntryError",
    "InvalidOperationError",
    "RecordDefinitionError",
]
