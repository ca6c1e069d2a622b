"""
Self-Healing SQL Runner

Drives one question from a first SQL candidate to an executed result:

    synthesize -> validate -> execute -> success
                     |           |
                     +-> refine <+   (while budget remains)

Every validate-or-execute pass counts as one attempt. With
`max_retries = N` at most N + 1 passes (and N refine calls) happen before
SynthesisExhausted is raised. Transport failures and cancellation are
never refined; they propagate as soon as they happen.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import NamedTuple, Protocol

from packsql.models.errors import (
    ExecutionFailure,
    SynthesisExhausted,
    TransportFailure,
    ValidationFailure,
)
from packsql.models.sql import QueryResult, SqlErrorKind, SynthesisAttempt, ValidationResult
from packsql.sql.validator import SqlValidator

logger = logging.getLogger(__name__)

STAGE_VALIDATION = "validation"
STAGE_EXECUTION = "execution"


class SqlSynthesizer(Protocol):
    async def synthesize(self, prompt: str) -> str: ...

    async def refine(
        self,
        question: str,
        previous_sql: str,
        error_message: str,
        allowed_tables: Iterable[str],
        guardrails: str | None = None,
    ) -> str: ...


class SqlExecutor(Protocol):
    async def execute(self, sql: str) -> QueryResult: ...


class StatementValidator(Protocol):
    def validate(self, sql: str | None, allowed_tables: Iterable[str] | None = None) -> ValidationResult: ...


class HealedQuery(NamedTuple):
    sql: str
    result: QueryResult


def brief_execution_error(error: BaseException, max_chars: int = 400) -> str:
    """
    Summarize an exception chain for the LLM.

    Messages of the exception and its causes are deduplicated, joined with
    " | " and cut to `max_chars` characters (plus "...").
    """
    messages: list[str] = []
    seen: set[int] = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = getattr(current, "message", None) or str(current)
        text = text.strip()
        if text and text not in messages:
            messages.append(text)
        current = current.__cause__ or current.__context__

    joined = " | ".join(messages) or error.__class__.__name__
    if len(joined) > max_chars:
        return joined[:max_chars] + "..."
    return joined


class SelfHealingSqlRunner:
    """
    Bounded validate/execute/refine loop.

    The runner holds no per-request state, so one instance can serve
    concurrent requests.

    Usage:
        runner = SelfHealingSqlRunner(llm=LLMSqlClient(provider), executor=executor)
        healed = await runner.run(prompt, question, allowed_tables, guardrails, max_retries=2)
        healed.sql, healed.result.rows
    """

    def __init__(
        self,
        llm: SqlSynthesizer,
        executor: SqlExecutor,
        validator: StatementValidator | None = None,
        max_error_chars: int = 400,
    ):
        self.llm = llm
        self.executor = executor
        self.validator = validator or SqlValidator()
        self.max_error_chars = max_error_chars

    async def run(
        self,
        prompt: str,
        question: str,
        allowed_tables: Iterable[str],
        guardrails: str | None = None,
        max_retries: int = 2,
        cancel_event: asyncio.Event | None = None,
    ) -> HealedQuery:
        """
        Produce a validated, executed statement for a question.

        Raises:
            SynthesisExhausted: Budget ran out at the validation or execution stage
            TransportFailure: LLM or database unreachable
            asyncio.CancelledError: cancel_event was set or the task was cancelled
        """
        tables = list(allowed_tables)
        max_passes = max(0, max_retries) + 1
        state = SynthesisAttempt()

        self._check_cancelled(cancel_event)
        state.sql = await self.llm.synthesize(prompt)
        self._check_cancelled(cancel_event)

        while True:
            state.attempt += 1

            validation = self.validator.validate(state.sql, tables)
            if not validation.valid:
                rejection = ValidationFailure(validation)
                state.stage = STAGE_VALIDATION
                state.last_error = rejection.message
                state.last_kind = validation.kind
                logger.info(
                    f"Attempt {state.attempt}/{max_passes} failed validation: {state.last_error}",
                    extra={"attempt": state.attempt, "stage": state.stage, "kind": validation.kind.value},
                )
                if state.attempt >= max_passes:
                    raise self._exhausted(state) from rejection
                state.sql = await self._refine(
                    question, state, f"VALIDATION ERROR: {state.last_error}", tables, guardrails, cancel_event
                )
                continue

            self._check_cancelled(cancel_event)
            try:
                result = await self.executor.execute(state.sql)
            except TransportFailure:
                raise
            except Exception as e:
                failure = e if isinstance(e, ExecutionFailure) else ExecutionFailure(str(e))
                if failure is not e:
                    failure.__cause__ = e
                state.stage = STAGE_EXECUTION
                state.last_error = brief_execution_error(failure, self.max_error_chars)
                state.last_kind = SqlErrorKind.RUNTIME_DB_ERROR
                logger.info(
                    f"Attempt {state.attempt}/{max_passes} failed execution: {state.last_error}",
                    extra={"attempt": state.attempt, "stage": state.stage},
                )
                if state.attempt >= max_passes:
                    raise self._exhausted(state) from failure
                self._check_cancelled(cancel_event)
                state.sql = await self._refine(
                    question, state, f"EXECUTION ERROR: {state.last_error}", tables, guardrails, cancel_event
                )
                continue

            self._check_cancelled(cancel_event)
            logger.info(
                f"SQL succeeded on attempt {state.attempt}",
                extra={"attempt": state.attempt, "rows": result.row_count},
            )
            return HealedQuery(sql=state.sql, result=result)

    async def _refine(
        self,
        question: str,
        state: SynthesisAttempt,
        error_message: str,
        tables: list[str],
        guardrails: str | None,
        cancel_event: asyncio.Event | None,
    ) -> str:
        self._check_cancelled(cancel_event)
        sql = await self.llm.refine(
            question=question,
            previous_sql=state.sql,
            error_message=error_message,
            allowed_tables=tables,
            guardrails=guardrails or "",
        )
        self._check_cancelled(cancel_event)
        return sql

    @staticmethod
    def _check_cancelled(cancel_event: asyncio.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise asyncio.CancelledError("SQL synthesis cancelled")

    @staticmethod
    def _exhausted(state: SynthesisAttempt) -> SynthesisExhausted:
        logger.warning(
            f"Self-heal exhausted after {state.attempt} attempts at {state.stage}",
            extra={"attempts": state.attempt, "stage": state.stage},
        )
        return SynthesisExhausted(
            stage=state.stage or STAGE_VALIDATION,
            last_sql=state.sql,
            last_error=state.last_error or "",
            attempts=state.attempt,
            kind=state.last_kind,
        )
