"""
OpenAI LLM Provider

BaseLLMProvider implementation for OpenAI chat models.
"""

import logging

import openai
from openai import AsyncOpenAI

from packsql.llm.base import BaseLLMProvider
from packsql.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseLLMProvider):
    """OpenAI chat completions provider using the async SDK client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        temperature: float = 0.0,
        max_tokens: int = 1200,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="openai",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=float(timeout),
        )

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """
        Generate completion using the OpenAI API.

        Raises:
            openai.APIError: On API errors
            openai.APITimeoutError: On timeout
        """
        request = self._apply_defaults(request)
        self._log_request(request)

        try:
            messages = [{"role": msg.role, "content": msg.content} for msg in request.messages]

            response = await self.client.chat.completions.create(
                model=request.model or self.model,
                messages=messages,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )

            usage = response.usage
            llm_response = LLMResponse(
                content=response.choices[0].message.content or "",
                model=response.model,
                usage=LLMUsage(
                    prompt_tokens=usage.prompt_tokens if usage else 0,
                    completion_tokens=usage.completion_tokens if usage else 0,
                    total_tokens=usage.total_tokens if usage else 0,
                ),
                finish_reason=self._map_finish_reason(response.choices[0].finish_reason),
                provider="openai",
                metadata={"id": response.id},
            )

            self._log_response(llm_response)
            return llm_response

        except openai.APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise
        except openai.APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map OpenAI finish reason to our standard format."""
        if reason in {"stop", "length", "content_filter"}:
            return reason
        return "stop"
