"""
Question Router

Chooses the pack most likely to answer a question. Scoring is keyword
based: topic patterns found in the question count towards packs whose
name matches the topic, and every pack table mentioned by name adds a
fixed bonus.
"""

import logging
import re
from collections.abc import Iterable
from typing import NamedTuple

from pydantic import BaseModel, Field

from packsql.models.pack import Pack

logger = logging.getLogger(__name__)

TABLE_MENTION_BONUS = 3


class RouteTopic(BaseModel):
    """Question keywords that favour packs with a matching name."""

    question_pattern: str = Field(..., description="Regex counted over the question")
    name_pattern: str = Field(..., description="Regex over the pack name")
    weight: int = Field(default=1, ge=1, description="Points per keyword hit")


DEFAULT_TOPICS: tuple[RouteTopic, ...] = (
    RouteTopic(
        question_pattern=r"\b(orders?|sales?|revenue|amount|quantity|price|ship\w*|deliver\w*)\b",
        name_pattern=r"sales|shipping",
        weight=3,
    ),
    RouteTopic(
        question_pattern=r"\b(products?|categor(y|ies)|reviews?|ratings?|stock)\b",
        name_pattern=r"catalog",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(customers?|emails?|address(es)?|phones?)\b",
        name_pattern=r"customer",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(expenses?|invoices?|payments?|costs?)\b",
        name_pattern=r"financ|expense",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(users?|roles?|permissions?|login|auth\w*)\b",
        name_pattern=r"user|permission",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(logs?|errors?|exceptions?|notifications?|browser|ip)\b",
        name_pattern=r"operation|logging",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(marketplaces?|integrations?|api\s?keys?)\b",
        name_pattern=r"marketplace|integration",
        weight=2,
    ),
    RouteTopic(
        question_pattern=r"\b(ai|prompts?|chats?|sessions?|messages?)\b",
        name_pattern=r"\bai\b|chat",
        weight=1,
    ),
)


class RouteDecision(NamedTuple):
    selected: Pack
    candidates: list[str]
    scores: dict[str, int]


class QuestionRouter:
    """
    Keyword router over a list of packs.

    Usage:
        router = QuestionRouter()
        decision = router.route("Total order amount per shipper", result.packs)
        decision.selected.category_id  # "sales_shipping"
    """

    def __init__(self, topics: Iterable[RouteTopic] | None = None, max_candidates: int = 3):
        self.topics = list(topics) if topics is not None else list(DEFAULT_TOPICS)
        self.max_candidates = max_candidates
        self._compiled = [
            (
                re.compile(t.question_pattern, re.IGNORECASE),
                re.compile(t.name_pattern, re.IGNORECASE),
                t.weight,
            )
            for t in self.topics
        ]

    def score(self, question: str, pack: Pack) -> int:
        text = question.lower()
        total = 0
        for question_pattern, name_pattern, weight in self._compiled:
            if name_pattern.search(pack.name) or name_pattern.search(pack.category_id):
                total += len(question_pattern.findall(text)) * weight
        for table in pack.tables:
            if re.search(rf"\b{re.escape(table.lower())}\b", text):
                total += TABLE_MENTION_BONUS
        return total

    def route(self, question: str, packs: list[Pack]) -> RouteDecision:
        """Rank packs for a question; ties go to the larger pack, then by name."""
        if not packs:
            raise ValueError("Cannot route a question without packs")

        scores = {pack.category_id: self.score(question or "", pack) for pack in packs}
        ordered = sorted(
            packs,
            key=lambda p: (-scores[p.category_id], -len(p.tables), p.name.lower()),
        )
        decision = RouteDecision(
            selected=ordered[0],
            candidates=[p.category_id for p in ordered[: self.max_candidates]],
            scores=scores,
        )
        logger.debug(
            f"Routed question to {decision.selected.category_id}",
            extra={"candidates": decision.candidates, "scores": scores},
        )
        return decision
