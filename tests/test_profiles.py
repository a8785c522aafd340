"""Tests for account profile defaults, sanitising and storage."""

from __future__ import annotations

import pytest

from trendpress.db import get_account, get_profile
from trendpress.errors import NotFoundError
from trendpress.profiles import (
    DEFAULT_PROFILE,
    build_default_profile,
    get_or_create_profile,
    merge_profile,
    sanitize_profile,
)


def test_sanitize_fills_defaults():
    profile = sanitize_profile(None)
    assert profile.audience == DEFAULT_PROFILE.audience
    assert profile.tone == DEFAULT_PROFILE.tone
    assert profile.growth_goal == "read"
    assert profile.preferred_length == 1800
    assert profile.pain_points == []


def test_sanitize_trims_and_dedupes_lists():
    profile = sanitize_profile({
        "audience": "  程序员  ",
        "pain_points": [" 加班 ", "加班", "", 42, "焦虑"],
    })
    assert profile.audience == "程序员"
    assert profile.pain_points == ["加班", "焦虑"]


def test_sanitize_clamps_preferred_length():
    assert sanitize_profile({"preferred_length": 100}).preferred_length == 800
    assert sanitize_profile({"preferred_length": 5000}).preferred_length == 3000
    assert sanitize_profile({"preferred_length": 1234.4}).preferred_length == 1234
    assert sanitize_profile({"preferred_length": "long"}).preferred_length == 1800
    assert sanitize_profile({"preferred_length": True}).preferred_length == 1800


def test_sanitize_truncates_long_text():
    profile = sanitize_profile({"tone": "犀" * 200})
    assert len(profile.tone) == 80


def test_merge_profile_overrides_fields():
    base = sanitize_profile({"pain_points": ["信息过载"], "tone": "稳重"})
    merged = merge_profile(base, {"tone": "犀利"})
    assert merged.tone == "犀利"
    assert merged.pain_points == ["信息过载"]
    assert merged.audience == base.audience


def test_merge_profile_without_override_returns_base():
    base = sanitize_profile({})
    assert merge_profile(base, None) is base
    assert merge_profile(base, {}) is base


def test_build_default_profile_uses_categories(db_conn, make_account):
    account = get_account(db_conn, make_account(name="科技观察", keywords=["芯片"]))
    profile = build_default_profile(account)
    assert profile.audience == "关注科技观察-赛道并希望快速获取决策信息的读者"
    assert profile.content_promise.startswith("科技观察 ")
    assert profile.pain_points == DEFAULT_PROFILE.pain_points


def test_build_default_profile_without_categories(db_conn, make_account):
    account = get_account(db_conn, make_account(name="杂谈"))
    assert "通用热点" in build_default_profile(account).audience


def test_get_or_create_profile_persists_once(db_conn, make_account):
    account_id = make_account(keywords=[])
    assert get_profile(db_conn, account_id) is None

    first = get_or_create_profile(db_conn, account_id)
    assert get_profile(db_conn, account_id) == first
    assert get_or_create_profile(db_conn, account_id) == first


def test_get_or_create_profile_unknown_account(db_conn):
    with pytest.raises(NotFoundError):
        get_or_create_profile(db_conn, 404)
