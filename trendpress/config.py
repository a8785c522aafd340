"""Load and validate configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from trendpress.errors import ConfigurationError
from trendpress.models import RiskPolicy

DEFAULT_WINDOW_HOURS = 2
MIN_WINDOW_HOURS = 1
MAX_WINDOW_HOURS = 24
DEFAULT_MIN_SCORE = 45
DEFAULT_QUALITY_THRESHOLD = 85

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            if key and key not in os.environ:
                os.environ[key] = value.strip().strip("'\"")


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    if not isinstance(value, str):
        return value

    match = _ENV_PATTERN.fullmatch(value)
    if match:
        return os.environ.get(match.group(1), "")
    return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def _as_int(value: Any, fallback: int) -> int:
    # Env substitution leaves "" behind for unset variables.
    if value in (None, ""):
        return fallback
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return fallback


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/trendpress.db")


def clamp_window_hours(hours: Any) -> int:
    """Coerce a caller-supplied window to whole hours within [1, 24]."""
    value = _as_int(hours, DEFAULT_WINDOW_HOURS)
    return min(MAX_WINDOW_HOURS, max(MIN_WINDOW_HOURS, value))


def get_window_hours(config: dict) -> int:
    return clamp_window_hours(config.get("pipeline", {}).get("window_hours"))


def get_min_opportunity_score(config: dict) -> int:
    return _as_int(
        config.get("pipeline", {}).get("min_opportunity_score"), DEFAULT_MIN_SCORE,
    )


def get_snapshot_source(config: dict) -> str:
    return config.get("pipeline", {}).get("snapshot_source", "database")


def get_keyword_config(config: dict) -> dict[str, int]:
    """Keyword-extraction thresholds; tuned for Chinese titles, not load-bearing."""
    cfg = config.get("pipeline", {}).get("keywords", {}) or {}
    return {
        "min_token_length": _as_int(cfg.get("min_token_length"), 2),
        "max_bigram_positions": _as_int(cfg.get("max_bigram_positions"), 8),
        "max_per_title": _as_int(cfg.get("max_per_title"), 6),
    }


def get_risk_policy(config: dict) -> RiskPolicy:
    """Resolve the configured risk policy, falling back to balanced."""
    from trendpress.screening.risk import resolve_risk_policy

    return resolve_risk_policy(config.get("screening", {}).get("risk_policy"))


def get_quality_threshold(config: dict) -> int:
    return _as_int(
        config.get("screening", {}).get("quality_threshold"),
        DEFAULT_QUALITY_THRESHOLD,
    )


def get_llm_task_config(config: dict, task: str) -> dict:
    """Get provider name and model for a given LLM task."""
    llm_cfg = config.get("llm", {})
    task_cfg = llm_cfg.get("tasks", {}).get(task, {})
    provider_name = task_cfg.get("provider", "template")
    provider_cfg = llm_cfg.get("providers", {}).get(provider_name, {})

    return {
        "provider_name": provider_name,
        "provider_type": provider_cfg.get("type", "openai_compatible"),
        "api_key": provider_cfg.get("api_key", ""),
        "base_url": provider_cfg.get("base_url", "https://api.openai.com/v1"),
        "model": task_cfg.get("model") or provider_cfg.get("default_model", ""),
        "max_retries": _as_int(provider_cfg.get("max_retries"), 3),
        "timeout": _as_int(provider_cfg.get("timeout"), 120),
        "temperature": float(provider_cfg.get("temperature", 0.4)),
    }


def get_publisher_config(config: dict) -> dict:
    """Get the active publisher name and its settings."""
    publish_cfg = config.get("publish", {})
    name = publish_cfg.get("provider", "wechat")
    return {"name": name, **(publish_cfg.get(name, {}) or {})}
