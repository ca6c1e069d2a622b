"""
Query Service

Answers a natural-language question against the active slice:

1. Read the active slice and its schema snapshot from the PackStore
2. Pick a pack (explicit category id, or the QuestionRouter)
3. Build the pack prompt and allowed table list
4. Run the self-healing loop
"""

import asyncio
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from packsql.config import HealingSettings
from packsql.healing.runner import SelfHealingSqlRunner
from packsql.models.errors import PackNotFound
from packsql.models.pack import Pack, SliceResult
from packsql.models.schema import Schema
from packsql.slicing.cache import PackStore
from packsql.slicing.router import QuestionRouter
from packsql.sql.prompts import PromptBuilder

logger = logging.getLogger(__name__)


class QueryAnswer(BaseModel):
    """Successful answer to a question."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    category_id: str = Field(..., description="Pack used to answer")
    candidates: list[str] = Field(default_factory=list, description="Runner-up packs")
    sql: str = Field(..., description="Executed SQL")
    columns: list[str] = Field(default_factory=list, description="Result columns")
    rows: list[dict[str, Any]] = Field(default_factory=list, description="Result rows")
    row_count: int = Field(default=0, description="Number of rows")


def adjacent_packs(pack: Pack, result: SliceResult) -> list[Pack]:
    """Packs reachable through the pack's bridges, in bridge order."""
    adjacent = []
    for bridge in pack.bridge_refs:
        other = result.get_pack(bridge.to_category)
        if other is not None and other.category_id != pack.category_id and other not in adjacent:
            adjacent.append(other)
    return adjacent


class QueryService:
    """
    Request-time orchestration over an injected cache and runner.

    The schema comes from the active slice; the injected one is only used
    for slices activated without a snapshot.

    Usage:
        service = QueryService(cache, schema, runner)
        answer = await service.ask("How many orders shipped late last month?")
    """

    def __init__(
        self,
        cache: PackStore,
        schema: Schema | None,
        runner: SelfHealingSqlRunner,
        router: QuestionRouter | None = None,
        prompt_builder: PromptBuilder | None = None,
        settings: HealingSettings | None = None,
    ):
        self.cache = cache
        self.schema = schema
        self.runner = runner
        self.router = router or QuestionRouter()
        self.settings = settings or HealingSettings()
        self.prompt_builder = prompt_builder or PromptBuilder(dialect=self.settings.dialect)

    def select_pack(
        self,
        question: str,
        category_id: str | None = None,
        current: SliceResult | None = None,
    ) -> tuple[Pack, list[str], SliceResult]:
        """Resolve the pack for a question from the given or the active slice."""
        if current is None:
            current = self.cache.try_get()
        if current is None or not current.packs:
            raise PackNotFound("No active slice. Slice a schema first.")

        if category_id:
            pack = current.get_pack(category_id)
            if pack is None:
                raise PackNotFound(f"Unknown category '{category_id}'", category_id=category_id)
            return pack, [pack.category_id], current

        decision = self.router.route(question, current.packs)
        return decision.selected, decision.candidates, current

    async def ask(
        self,
        question: str,
        category_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> QueryAnswer:
        active = self.cache.snapshot()
        if active is None:
            raise PackNotFound("No active slice. Slice a schema first.")
        schema = active.schema if active.schema is not None else self.schema
        if schema is None:
            raise PackNotFound("The active slice has no schema snapshot. Slice a schema first.")

        pack, candidates, current = self.select_pack(question, category_id, active.result)
        adjacent = adjacent_packs(pack, current)

        prompt = self.prompt_builder.build_for_pack(question, pack, schema, adjacent)
        allowed = self.prompt_builder.allowed_tables(pack, adjacent)

        logger.info(
            f"Answering question with pack {pack.category_id}",
            extra={
                "category_id": pack.category_id,
                "allowed_tables": len(allowed),
                "adjacent": [p.category_id for p in adjacent],
            },
        )

        healed = await self.runner.run(
            prompt=prompt,
            question=question,
            allowed_tables=allowed,
            guardrails=self.settings.guardrails,
            max_retries=self.settings.max_retries,
            cancel_event=cancel_event,
        )
        return QueryAnswer(
            category_id=pack.category_id,
            candidates=candidates,
            sql=healed.sql,
            columns=healed.result.columns,
            rows=healed.result.rows,
            row_count=healed.result.row_count,
        )
