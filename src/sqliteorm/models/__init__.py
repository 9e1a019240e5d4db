"""
Record declaration, schema generation and row encoding.

Example:
    >>> from sqliteorm.models import Record, Index, generate_schema
    >>>
    >>> class Note(Record):
    ...     __indexes__ = [Index(("title",))]
    ...     id: int = 0
    ...     title: str
    ...
    >>> print(generate_schema(Note.descriptor()))
"""

from sqliteorm.models.base import (
    FieldDescriptor,
    Index,
    Record,
    RecordDescriptor,
    UniqueConstraint,
)
from sqliteorm.models.codec import (
    decode_record,
    decode_rows,
    decode_value,
    encode_record,
    encode_value,
)
from sqliteorm.models.schema import (
    generate_drop,
    generate_full_schema,
    generate_indexes,
    generate_schema,
)

__all__ = [
    # Declaration
    "Record",
    "Index",
    "UniqueConstraint",
    "FieldDescriptor",
    "RecordDescriptor",
    # Codec
    "encode_record",
    "encode_value",
    "decode_record",
    "decode_value",
    "decode_rows",
    # Schema
    "generate_schema",
    "generate_indexes",
    "generate_full_schema",
    "generate_drop",
]
