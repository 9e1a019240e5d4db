"""
Observability utilities for sqliteorm.

Provides the injectable Tracer abstraction and the standard span attribute
names used by repositories and the database wrapper.

Example:
    >>> from sqliteorm.observability import create_tracer, ATTR_TABLE_NAME
    >>>
    >>> tracer = create_tracer(__name__, enable_tracing=True)
    >>> with tracer.span("sqliteorm.repository.count", {ATTR_TABLE_NAME: "items"}):
    ...     pass
"""

from sqliteorm.observability.attributes import (
    ATTR_DB_NAME,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_QUERY_HAS_PREDICATE,
    ATTR_QUERY_LIMIT,
    ATTR_RECORD_ID,
    ATTR_RECORD_TYPE,
    ATTR_ROW_COUNT,
    ATTR_SUBSCRIPTION_KIND,
    ATTR_TABLE_NAME,
)
from sqliteorm.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
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
