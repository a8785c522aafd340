"""Text-generation provider registry and task routing."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from trendpress.errors import ConfigurationError

if TYPE_CHECKING:
    from trendpress.llm.base import BaseLLMProvider

logger = logging.getLogger(__name__)

PROVIDERS: dict[str, type[BaseLLMProvider]] = {}


def register_provider(name: str):
    """Decorator to register an LLM provider."""

    def decorator(cls):
        PROVIDERS[name] = cls
        return cls

    return decorator


def get_provider_for_task(config: dict, task: str = "draft") -> BaseLLMProvider:
    """Build the configured provider for a task.

    A remote provider without an API key degrades to the offline template
    provider so drafting keeps working in development.
    """
    from trendpress.config import get_llm_task_config

    task_cfg = get_llm_task_config(config, task)
    provider_type = task_cfg["provider_name"]
    if provider_type != "template":
        provider_type = task_cfg["provider_type"]
        if not task_cfg["api_key"]:
            logger.info(
                "No API key for LLM provider '%s'; using template fallback",
                task_cfg["provider_name"],
            )
            provider_type = "template"

    if provider_type not in PROVIDERS:
        raise ConfigurationError(f"Unknown LLM provider type: {provider_type}")

    return PROVIDERS[provider_type](
        api_key=task_cfg["api_key"],
        base_url=task_cfg["base_url"],
        default_model=task_cfg["model"],
        max_retries=task_cfg["max_retries"],
        timeout=task_cfg["timeout"],
        temperature=task_cfg["temperature"],
    )


# Import implementations to trigger registration
from trendpress.llm.anthropic_provider import AnthropicProvider  # noqa: E402, F401
from trendpress.llm.openai_compat import OpenAICompatibleProvider  # noqa: E402, F401
from trendpress.llm.template import TemplateFallbackProvider  # noqa: E402, F401
