"""
Anthropic LLM Provider

BaseLLMProvider implementation for Anthropic Claude models.
"""

import logging

import anthropic
from anthropic import AsyncAnthropic

from packsql.llm.base import BaseLLMProvider
from packsql.llm.models import LLMRequest, LLMResponse, LLMUsage

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseLLMProvider):
    """Anthropic messages API provider."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float = 0.0,
        max_tokens: int = 1200,
        timeout: int = 30,
    ):
        super().__init__(
            provider_name="anthropic",
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
        )

        self.model = model
        self.client = AsyncAnthropic(api_key=api_key, timeout=float(timeout))

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate completion using the Anthropic API."""
        request = self._apply_defaults(request)
        self._log_request(request)

        # Anthropic takes the system message separately
        system_message = None
        messages = []
        for msg in request.messages:
            if msg.role == "system":
                system_message = msg.content
            else:
                messages.append({"role": msg.role, "content": msg.content})

        kwargs = {}
        if system_message:
            kwargs["system"] = system_message

        try:
            response = await self.client.messages.create(
                model=request.model or self.model,
                max_tokens=request.max_tokens,
                temperature=request.temperature,
                messages=messages,
                **kwargs,
            )
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {e}")
            raise

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        llm_response = LLMResponse(
            content=text,
            model=response.model,
            usage=LLMUsage(
                prompt_tokens=response.usage.input_tokens,
                completion_tokens=response.usage.output_tokens,
                total_tokens=response.usage.input_tokens + response.usage.output_tokens,
            ),
            finish_reason=self._map_finish_reason(response.stop_reason),
            provider="anthropic",
            metadata={"id": response.id},
        )

        self._log_response(llm_response)
        return llm_response

    def _map_finish_reason(self, reason: str | None) -> str:
        """Map Anthropic stop reason to standard format."""
        if reason == "max_tokens":
            return "length"
        return "stop"
