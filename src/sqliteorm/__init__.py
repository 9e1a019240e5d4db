"""
sqliteorm - Typed records, composable queries and live results over SQLite.

This library provides:
- Record declaration with Pydantic models and generated table schemas
- Predicate and query builders compiled to parameterized SQL
- A generic async Repository returning typed Ok/Err results
- Per-table change notification
- Live subscriptions that re-run their query whenever their table changes
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("sqliteorm-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from sqliteorm.config import MEMORY_PATH, DatabaseConfig
from sqliteorm.database import Database, Row
from sqliteorm.exceptions import (
    ConnectionFailedError,
    ConstraintViolationError,
    DatabaseConnectionError,
    DatabaseLockedError,
    DatabaseNotOpenError,
    DataMappingError,
    DuplicateEntryError,
    ExecutionError,
    InvalidDataError,
    InvalidOperationError,
    InvalidSQLError,
    MissingColumnError,
    NotFoundError,
    ORMError,
    RecordDefinitionError,
    SQLExecutionError,
    TransactionError,
    TransactionFailedError,
    TransactionNotActiveError,
    TypeMismatchError,
)
from sqliteorm.models import Index, Record, RecordDescriptor, UniqueConstraint
from sqliteorm.notifier import ChangeNotifier, ChannelRegistration, TableChannel
from sqliteorm.orm import ORM
from sqliteorm.query import (
    ComparisonOperator,
    JoinType,
    Predicate,
    Query,
    QueryCompiler,
    SortOrder,
)
from sqliteorm.repository import Repository
from sqliteorm.result import Err, Ok, ORMResult
from sqliteorm.subscriptions import (
    CountSubscription,
    ExistsSubscription,
    LiveSubscription,
    QuerySubscription,
    SingleSubscription,
    SubscriptionState,
)
from sqliteorm.values import ColumnType, FieldKind, SQLValue

__all__ = [
    "__version__",
    # Facade
    "ORM",
    "Repository",
    # Storage
    "Database",
    "DatabaseConfig",
    "MEMORY_PATH",
    "Row",
    # Records
    "Record",
    "RecordDescriptor",
    "Index",
    "UniqueConstraint",
    "FieldKind",
    "ColumnType",
    "SQLValue",
    # Queries
    "Predicate",
    "ComparisonOperator",
    "Query",
    "QueryCompiler",
    "SortOrder",
    "JoinType",
    # Results
    "Ok",
    "Err",
    "ORMResult",
    # Change notification
    "ChangeNotifier",
    "TableChannel",
    "ChannelRegistration",
    # Live subscriptions
    "LiveSubscription",
    "SubscriptionState",
    "QuerySubscription",
    "SingleSubscription",
    "CountSubscription",
    "ExistsSubscription",
    # Exceptions
    "ORMError",
    "DatabaseConnectionError",
    "ConnectionFailedError",
    "DatabaseNotOpenError",
    "DatabaseLockedError",
    "ExecutionError",
    "SQLExecutionError",
    "InvalidSQLError",
    "ConstraintViolationError",
    "DuplicateEntryError",
    "DataMappingError",
    "TypeMismatchError",
    "MissingColumnError",
    "InvalidDataError",
    "TransactionError",
    "TransactionFailedError",
    "TransactionNotActiveError",
    "NotFoundError",
    "InvalidOperationError",
    "RecordDefinitionError",
]
