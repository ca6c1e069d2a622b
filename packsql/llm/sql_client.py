"""
LLM SQL Client

Implements the synthesize/refine contract used by the self-healing
runner on top of any BaseLLMProvider. Provider failures surface as
TransportFailure so the runner never mistakes an outage for bad SQL.
"""

import logging
from collections.abc import Iterable

from packsql.llm.base import BaseLLMProvider
from packsql.llm.models import LLMMessage, LLMRequest
from packsql.models.errors import TransportFailure
from packsql.sql.normalize import extract_sql, normalize_sql
from packsql.sql.prompts import PromptBuilder

logger = logging.getLogger(__name__)


class LLMSqlClient:
    """
    SQL-producing wrapper around an LLM provider.

    Usage:
        client = LLMSqlClient(LLMProviderFactory.create_default_provider(settings.llm))
        sql = await client.synthesize(prompt)
        sql = await client.refine(question, sql, "VALIDATION ERROR: ...", tables, guardrails)
    """

    def __init__(
        self,
        provider: BaseLLMProvider,
        prompt_builder: PromptBuilder | None = None,
    ):
        self.provider = provider
        self.prompt_builder = prompt_builder or PromptBuilder()

    async def synthesize(self, prompt: str) -> str:
        """Ask for a first SQL candidate."""
        system = self.prompt_builder.system_prompt(refine=False)
        return await self._complete("synthesize", system, prompt)

    async def refine(
        self,
        question: str,
        previous_sql: str,
        error_message: str,
        allowed_tables: Iterable[str],
        guardrails: str | None = None,
    ) -> str:
        """Ask for a corrected SQL candidate given the previous failure."""
        system = self.prompt_builder.system_prompt(refine=True)
        prompt = self.prompt_builder.build_refine_prompt(
            question=question,
            previous_sql=previous_sql,
            error_message=error_message,
            allowed_tables=allowed_tables,
            guardrails=guardrails,
        )
        return await self._complete("refine", system, prompt)

    async def _complete(self, operation: str, system: str, prompt: str) -> str:
        request = LLMRequest(
            messages=[
                LLMMessage(role="system", content=system),
                LLMMessage(role="user", content=prompt),
            ]
        )
        try:
            response = await self.provider.generate(request)
        except Exception as e:
            logger.error(
                f"LLM {operation} call failed: {e}",
                extra={"provider": self.provider.provider_name, "operation": operation},
            )
            raise TransportFailure(
                "llm",
                f"{self.provider.provider_name} {operation} failed: {e}",
                context={"provider": self.provider.provider_name, "operation": operation},
            ) from e

        sql = normalize_sql(extract_sql(response.content), self.prompt_builder.dialect.key)
        logger.debug(
            f"LLM {operation} returned {len(sql)} chars of SQL",
            extra={"operation": operation, "finish_reason": response.finish_reason},
        )
        return sql
