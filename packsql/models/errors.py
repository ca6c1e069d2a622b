"""
Error Taxonomy

Every failure the core can surface is a PackSQLError subclass tagged with
whether the caller may retry. Transport failures are never refined.
"""

from typing import Any

from packsql.models.sql import SqlErrorKind, ValidationResult


class PackSQLError(Exception):
    """
    Base exception.

    Attributes:
        component: Name of the component that raised the error
        message: Error description
        recoverable: Whether the synthesis loop may refine and retry
        context: Additional context for debugging
    """

    def __init__(
        self,
        component: str,
        message: str,
        recoverable: bool = False,
        context: dict[str, Any] | None = None,
    ):
        self.component = component
        self.message = message
        self.recoverable = recoverable
        self.context = context or {}
        super().__init__(f"[{component}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/API responses."""
        return {
            "component": self.component,
            "message": self.message,
            "recoverable": self.recoverable,
            "context": self.context,
            "type": self.__class__.__name__,
        }


class SchemaInconsistency(PackSQLError):
    """A foreign key references a table missing from the snapshot."""

    def __init__(self, from_table: str, to_table: str):
        super().__init__(
            "slicer",
            f"Foreign key from '{from_table}' references unknown table '{to_table}'",
            recoverable=True,
            context={"from_table": from_table, "to_table": to_table},
        )


class PartitionEmpty(PackSQLError):
    """A department policy matched no tables."""

    def __init__(self, dept_id: str):
        super().__init__(
            "policy_slicer",
            f"Policy '{dept_id}' matched no tables",
            recoverable=True,
            context={"dept_id": dept_id},
        )


class ValidationFailure(PackSQLError):
    """Candidate SQL failed a safety check."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(
            "validator",
            result.describe(),
            recoverable=True,
            context={"kind": result.kind.value if result.kind else None},
        )


class ExecutionFailure(PackSQLError):
    """The database rejected a statement that passed validation."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__("executor", message, recoverable=True, context=context)


class TransportFailure(PackSQLError):
    """The LLM or the database could not be reached."""

    def __init__(self, component: str, message: str, context: dict[str, Any] | None = None):
        super().__init__(component, message, recoverable=False, context=context)


class SynthesisExhausted(PackSQLError):
    """The refinement budget ran out without a validated, executed statement."""

    def __init__(
        self,
        stage: str,
        last_sql: str,
        last_error: str,
        attempts: int = 0,
        kind: SqlErrorKind | None = None,
    ):
        self.stage = stage
        self.last_sql = last_sql
        self.last_error = last_error
        self.attempts = attempts
        self.kind = kind
        super().__init__(
            "synthesis",
            f"Self-heal exhausted. Stage: {stage}\nLast SQL:\n{last_sql}\nLast error:\n{last_error}",
            recoverable=False,
            context={
                "stage": stage,
                "last_sql": last_sql,
                "last_error": last_error,
                "attempts": attempts,
                "kind": kind.value if kind else None,
            },
        )


class PackNotFound(PackSQLError):
    """No cached partition could serve the request."""

    def __init__(self, message: str, category_id: str | None = None):
        super().__init__(
            "query_service",
            message,
            recoverable=False,
            context={"category_id": category_id},
        )
