"""Request-time question answering."""

from packsql.pipeline.service import QueryAnswer, QueryService, adjacent_packs

__all__ = ["QueryAnswer", "QueryService", "adjacent_packs"]
