"""
PackSQL Models

Pydantic models and exceptions shared across the package.

Available Models:
    Schema Models:
        - Schema, Table, Column, ForeignKey, ReferencedBy

    Partition Models:
        - Pack, FkEdge, BridgeRef, CandidateRef, RefView, SliceResult

    SQL Models:
        - SqlErrorKind, ValidationResult, SynthesisAttempt, QueryResult

    Errors:
        - PackSQLError and its subclasses

Usage:
    from packsql.models import Schema, Pack, ValidationResult
"""

from packsql.models.errors import (
    ExecutionFailure,
    PackNotFound,
    PackSQLError,
    PartitionEmpty,
    SchemaInconsistency,
    SynthesisExhausted,
    TransportFailure,
    ValidationFailure,
)
from packsql.models.pack import BridgeRef, CandidateRef, FkEdge, Pack, RefView, SliceResult
from packsql.models.schema import (
    Column,
    ForeignKey,
    ReferencedBy,
    Schema,
    Table,
    TableNameResolver,
    normalize_table_name,
)
from packsql.models.sql import QueryResult, SqlErrorKind, SynthesisAttempt, ValidationResult

__all__ = [
    # Schema
    "Column",
    "ForeignKey",
    "ReferencedBy",
    "Schema",
    "Table",
    "TableNameResolver",
    "normalize_table_name",
    # Packs
    "BridgeRef",
    "CandidateRef",
    "FkEdge",
    "Pack",
    "RefView",
    "SliceResult",
    # SQL
    "QueryResult",
    "SqlErrorKind",
    "SynthesisAttempt",
    "ValidationResult",
    # Errors
    "ExecutionFailure",
    "PackNotFound",
    "PackSQLError",
    "PartitionEmpty",
    "SchemaInconsistency",
    "SynthesisExhausted",
    "TransportFailure",
    "ValidationFailure",
]
