"""Abstract base class for LLM providers, and draft payload parsing."""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from trendpress.errors import GenerationError

logger = logging.getLogger(__name__)

DRAFT_MAX_TOKENS = 4000


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


@dataclass
class GeneratedDraft:
    title: str
    content: str
    model: str
    outline: list[str] = field(default_factory=list)


def _try_parse(text: str) -> dict | None:
    try:
        data = json.loads(text.strip())
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


def extract_json(text: str) -> dict | None:
    """Extract a JSON object from output that may carry fences or chatter."""
    result = _try_parse(text)
    if result is not None:
        return result

    fenced = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL | re.IGNORECASE)
    if fenced:
        result = _try_parse(fenced.group(1))
        if result is not None:
            return result

    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        return _try_parse(text[start:end + 1])
    return None


def parse_generated_draft(text: str, model: str) -> GeneratedDraft:
    """Turn raw model output into a draft or raise GenerationError."""
    if not text or not text.strip():
        raise GenerationError("LLM returned empty content.")

    data = extract_json(text)
    if data is None:
        raise GenerationError("LLM response is not valid JSON.")

    title = data.get("title")
    content = data.get("content")
    if not isinstance(title, str) or not title.strip() or not isinstance(content, str) \
            or not content.strip():
        raise GenerationError("LLM response is missing title/content.")

    outline = data.get("outline")
    if not isinstance(outline, list):
        outline = []
    return GeneratedDraft(
        title=title.strip(),
        content=content,
        model=model,
        outline=[item.strip() for item in outline if isinstance(item, str) and item.strip()],
    )


class BaseLLMProvider(ABC):
    """Base class for LLM providers."""

    def __init__(
        self,
        api_key: str,
        base_url: str,
        default_model: str,
        max_retries: int = 3,
        timeout: int = 120,
        temperature: float = 0.4,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.max_retries = max_retries
        self.timeout = timeout
        self.temperature = temperature

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> LLMResponse:
        """Send a completion request and return the response.

        With ``json_output`` the backend is asked to answer with a single
        JSON object.
        """
        ...

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Human-readable provider name."""
        ...

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        topic_title: str,
        account_name: str,
    ) -> GeneratedDraft:
        """Ask the model for a draft and parse its JSON answer."""
        try:
            response = await self.complete(
                user_prompt,
                system=system_prompt,
                max_tokens=DRAFT_MAX_TOKENS,
                json_output=True,
            )
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(
                f"LLM request failed ({self.provider_name}): {exc}"
            ) from exc

        logger.info(
            "Draft for '%s' (%s) generated by %s: %d in / %d out tokens",
            topic_title, account_name, response.model,
            response.input_tokens, response.output_tokens,
        )
        return parse_generated_draft(response.text, response.model)
