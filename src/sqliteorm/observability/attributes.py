"""
Standard span attributes for sqliteorm.

Attribute names used across repositories and the database wrapper so spans
can be filtered consistently. Database attributes follow OpenTelemetry
semantic conventions.

Example:
    >>> from sqliteorm.observability.attributes import (
    ...     ATTR_RECORD_TYPE,
    ...     ATTR_TABLE_NAME,
    ... )
    >>>
    >>> with tracer.span(
    ...     "sqliteorm.repository.find",
    ...     {ATTR_RECORD_TYPE: "Item", ATTR_TABLE_NAME: "items"},
    ... ):
    ...     pass
"""

# =============================================================================
# Database Attributes (OpenTelemetry semantic conventions)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (always 'sqlite')."""

ATTR_DB_NAME = "db.name"
"""Database file path, or ':memory:'."""

ATTR_DB_OPERATION = "db.operation"
"""SQL verb of the statement (SELECT, INSERT, UPDATE, DELETE, ...)."""

# =============================================================================
# Record Attributes
# =============================================================================

ATTR_RECORD_TYPE = "sqliteorm.record.type"
"""Record class name (e.g., 'Item')."""

ATTR_RECORD_ID = "sqliteorm.record.id"
"""Identity value of the record involved (stringified)."""

ATTR_TABLE_NAME = "sqliteorm.table.name"
"""Table the operation targets."""

ATTR_ROW_COUNT = "sqliteorm.row.count"
"""Number of rows returned or affected (integer)."""

# =============================================================================
# Query Attributes
# =============================================================================

ATTR_QUERY_LIMIT = "sqliteorm.query.limit"
"""LIMIT of the compiled query, when set (integer)."""

ATTR_QUERY_HAS_PREDICATE = "sqliteorm.query.has_predicate"
"""Whether the compiled query carries a WHERE predicate (boolean)."""

# =============================================================================
# Subscription Attributes
# =============================================================================

ATTR_SUBSCRIPTION_KIND = "sqliteorm.subscription.kind"
"""Live subscription shape ('query', 'single', 'count', 'exists')."""


__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_DB_NAME",
    "ATTR_DB_OPERATION",
    "ATTR_RECORD_TYPE",
    "ATTR_RECORD_ID",
    "ATTR_TABLE_NAME",
    "ATTR_ROW_COUNT",
    "ATTR_QUERY_LIMIT",
    "ATTR_QUERY_HAS_PREDICATE",
    "ATTR_SUBSCRIPTION_KIND",
]
