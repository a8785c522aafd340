"""Anthropic Claude LLM provider."""

from __future__ import annotations

import logging

import anthropic

from trendpress.llm import register_provider
from trendpress.llm.base import BaseLLMProvider, LLMResponse
from trendpress.retry import retry_async

logger = logging.getLogger(__name__)

# The Messages API has no JSON response mode.
JSON_ONLY_INSTRUCTION = "Respond with a single JSON object and nothing else."


@register_provider("anthropic")
class AnthropicProvider(BaseLLMProvider):
    """Provider for Anthropic Claude models."""

    @property
    def provider_name(self) -> str:
        return "anthropic"

    async def complete(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> LLMResponse:
        return await retry_async(
            self._do_complete,
            prompt,
            system,
            model or self.default_model,
            self.temperature if temperature is None else temperature,
            max_tokens,
            json_output,
            max_retries=self.max_retries,
        )

    async def _do_complete(
        self,
        prompt: str,
        system: str,
        model: str,
        temperature: float,
        max_tokens: int,
        json_output: bool,
    ) -> LLMResponse:
        client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)

        if json_output:
            system = f"{system}\n\n{JSON_ONLY_INSTRUCTION}".strip()

        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        response = await client.messages.create(**kwargs)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        return LLMResponse(
            text=text,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            model=model,
        )
