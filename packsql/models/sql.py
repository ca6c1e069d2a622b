"""
SQL Validation and Execution Models
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class SqlErrorKind(str, Enum):
    """Reason a candidate statement was rejected."""

    DISALLOWED_TABLE = "DisallowedTable"
    DISALLOWED_DML = "DisallowedDml"
    MULTIPLE_STATEMENTS = "MultipleStatements"
    ID_VS_STRING_COMPARE = "IdVsStringCompare"
    SYNTAX_SUSPICIOUS = "SyntaxSuspicious"
    RUNTIME_DB_ERROR = "RuntimeDbError"


class ValidationResult(BaseModel):
    """Outcome of a safety check. `valid` holds exactly when `kind` is None."""

    model_config = ConfigDict(frozen=True)

    valid: bool = Field(..., description="Whether the statement passed every check")
    kind: SqlErrorKind | None = Field(None, description="Failure kind (None when valid)")
    message: str = Field(default="", description="Human readable failure reason")

    @model_validator(mode="after")
    def check_kind_matches_validity(self) -> "ValidationResult":
        if self.valid != (self.kind is None):
            raise ValueError("valid must be True exactly when kind is None")
        return self

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, kind: SqlErrorKind, message: str) -> "ValidationResult":
        return cls(valid=False, kind=kind, message=message)

    def describe(self) -> str:
        """`Kind: message` text used in refinement feedback."""
        if self.valid:
            return ""
        return f"{self.kind.value}: {self.message}"


class SynthesisAttempt(BaseModel):
    """Mutable state of one synthesis loop run."""

    sql: str = Field(default="", description="Current candidate SQL")
    attempt: int = Field(default=0, ge=0, description="Validate/execute passes so far")
    stage: str | None = Field(None, description="Stage of the last failure")
    last_error: str | None = Field(None, description="Last validation or execution error")
    last_kind: SqlErrorKind | None = Field(None, description="Kind of the last failure")


class QueryResult(BaseModel):
    """Rows returned by the executor."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    columns: list[str] = Field(default_factory=list, description="Column names")
    rows: list[dict[str, Any]] = Field(default_factory=list, description="Result rows")
    row_count: int = Field(default=0, ge=0, description="Number of rows")
    execution_time_ms: float = Field(default=0.0, ge=0, description="Execution time")
