"""
LLM Module

Provider abstraction plus the SQL client used by the synthesis loop.

Usage:
    from packsql.llm import LLMProviderFactory, LLMSqlClient

    provider = LLMProviderFactory.create_default_provider(settings.llm)
    client = LLMSqlClient(provider)
"""

from packsql.llm.base import BaseLLMProvider
from packsql.llm.factory import LLMProviderFactory
from packsql.llm.models import LLMMessage, LLMRequest, LLMResponse, LLMUsage
from packsql.llm.sql_client import LLMSqlClient

__all__ = [
    "BaseLLMProvider",
    "LLMMessage",
    "LLMProviderFactory",
    "LLMRequest",
    "LLMResponse",
    "LLMSqlClient",
    "LLMUsage",
]
