"""Tests for content packs, image placeholders and generation traces."""

from __future__ import annotations

from trendpress.profiles import DEFAULT_PROFILE
from trendpress.synthesize.content_pack import (
    DEFAULT_OUTLINE,
    build_content_pack,
    build_generation_trace,
    build_image_placeholders,
    normalize_image_count,
)


def test_content_pack_sections_follow_outline():
    pack = build_content_pack("折叠屏发布", "科技观察", DEFAULT_PROFILE, ["开场", "证据", "建议"])
    assert [s.title for s in pack.sections] == ["开场", "证据", "建议"]
    assert pack.sections[0].goal == "快速建立场景与阅读动机"
    assert pack.sections[-1].goal == "给出可执行建议并引导互动"
    assert pack.cta == DEFAULT_PROFILE.cta_style
    assert pack.followup_ideas[1] == "科技观察 读者最常见问题答疑"


def test_content_pack_default_outline_and_section_cap():
    assert [s.title for s in build_content_pack("t", "a", DEFAULT_PROFILE, []).sections] \
        == DEFAULT_OUTLINE
    outline = [f"第{i}节" for i in range(9)]
    assert len(build_content_pack("t", "a", DEFAULT_PROFILE, outline).sections) == 6


def test_normalize_image_count():
    assert normalize_image_count(None) == 4
    assert normalize_image_count("3") == 4
    assert normalize_image_count(1) == 3
    assert normalize_image_count(9) == 5
    assert normalize_image_count(3.5) == 4
    assert normalize_image_count(float("nan")) == 4


def test_image_placeholders_cycle_sections():
    pack = build_content_pack("话题", "账号", DEFAULT_PROFILE, ["甲", "乙"])
    images = build_image_placeholders("标题", "话题", pack, image_count=5)
    assert [i.placement_anchor for i in images] == ["甲", "乙", "甲", "乙", "甲"]
    assert images[0].alt_text == "标题 - 甲"
    assert "news-analysis风格" in images[0].prompt


def test_generation_trace():
    trace = build_generation_trace(70.4, DEFAULT_PROFILE, "正文", 90)
    assert trace.topic_score == 70
    assert trace.model_score == 83
    assert trace.account_fit == 40
    assert trace.fusion_score == 78
