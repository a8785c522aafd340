"""Account writing profiles: defaults, sanitising and per-request overrides."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from trendpress.db import get_account, get_profile, insert_profile
from trendpress.errors import NotFoundError
from trendpress.models import Account, AccountProfile

logger = logging.getLogger(__name__)

MIN_LENGTH = 800
MAX_LENGTH = 3000

DEFAULT_PROFILE = AccountProfile(
    audience="关注实时热点、希望快速理解事件影响的中文读者",
    tone="专业但通俗",
    growth_goal="read",
    pain_points=["信息太碎片化", "不知道如何判断热点真伪", "缺少可执行建议"],
    content_promise="3分钟看懂热点的来龙去脉，并获得可执行建议",
    forbidden_topics=["违法违规", "仇恨言论", "明显未经证实的谣言"],
    cta_style="评论区提问+下篇预告",
    preferred_length=1800,
)


def _text(value: Any, fallback: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        return fallback
    return value.strip()[:max_length]


def _string_list(value: Any, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    cleaned = [item.strip() for item in value if isinstance(item, str) and item.strip()]
    return list(dict.fromkeys(cleaned))[:limit]


def _length(value: Any, fallback: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return fallback
    return min(MAX_LENGTH, max(MIN_LENGTH, round(value)))


def sanitize_profile(data: dict[str, Any] | None) -> AccountProfile:
    """Build a profile from loose input, filling gaps from the defaults."""
    data = data or {}
    return AccountProfile(
        audience=_text(data.get("audience"), DEFAULT_PROFILE.audience, 160),
        tone=_text(data.get("tone"), DEFAULT_PROFILE.tone, 80),
        growth_goal=_text(data.get("growth_goal"), DEFAULT_PROFILE.growth_goal, 40),
        pain_points=_string_list(data.get("pain_points"), 8),
        content_promise=_text(
            data.get("content_promise"), DEFAULT_PROFILE.content_promise, 300,
        ) or None,
        forbidden_topics=_string_list(data.get("forbidden_topics"), 10),
        cta_style=_text(data.get("cta_style"), DEFAULT_PROFILE.cta_style, 120) or None,
        preferred_length=_length(data.get("preferred_length"), DEFAULT_PROFILE.preferred_length),
    )


def merge_profile(base: AccountProfile, override: dict[str, Any] | None) -> AccountProfile:
    """Apply a per-request override on top of the stored profile."""
    if not override:
        return base
    merged = {**base.to_dict(), **override}
    for key in ("pain_points", "forbidden_topics"):
        if override.get(key) is None:
            merged[key] = getattr(base, key)
    return sanitize_profile(merged)


def build_default_profile(account: Account) -> AccountProfile:
    names = [c.name for c in account.categories]
    category_text = " / ".join(names) if names else "通用热点"
    return sanitize_profile({
        **DEFAULT_PROFILE.to_dict(),
        "audience": f"关注{category_text}并希望快速获取决策信息的读者",
        "content_promise": f"{account.name} 提供结构化热点分析、可执行建议与后续跟进视角",
    })


def get_or_create_profile(conn: sqlite3.Connection, account_id: int) -> AccountProfile:
    """The stored profile, or a category-derived default saved on first use."""
    profile = get_profile(conn, account_id)
    if profile is not None:
        return profile

    account = get_account(conn, account_id)
    if account is None:
        raise NotFoundError("account", account_id)

    profile = build_default_profile(account)
    insert_profile(conn, account_id, profile)
    logger.info("Created default profile for account #%d", account_id)
    # Re-read so a concurrently created profile wins.
    return get_profile(conn, account_id) or profile
