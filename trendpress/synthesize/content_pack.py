"""Editorial scaffolding derived from a draft: content pack, images, trace."""

from __future__ import annotations

from typing import Any

from trendpress.models import (
    AccountProfile,
    ContentPack,
    ContentSection,
    GenerationTrace,
    ImagePlaceholder,
)
from trendpress.process.scoring import round_half_up

DEFAULT_OUTLINE = ["事件背景", "事实证据", "影响分析", "行动建议"]
MAX_SECTIONS = 6
DEFAULT_IMAGE_COUNT = 4
MIN_IMAGES = 3
MAX_IMAGES = 5
DEFAULT_STYLE = "news-analysis"


def build_content_pack(
    topic_title: str,
    account_name: str,
    profile: AccountProfile,
    outline: list[str],
) -> ContentPack:
    titles = outline[:MAX_SECTIONS] if outline else list(DEFAULT_OUTLINE)
    sections = []
    for index, title in enumerate(titles):
        if index == 0:
            goal = "快速建立场景与阅读动机"
        elif index == len(titles) - 1:
            goal = "给出可执行建议并引导互动"
        else:
            goal = "用事实和分析支撑核心观点"
        sections.append(ContentSection(title=title, goal=goal))

    return ContentPack(
        core_angle=f"{topic_title} 对 {profile.audience} 的现实影响",
        target_reader=profile.audience,
        hook=(
            f"围绕 {topic_title}，这不是“知道发生了什么”就够了，"
            "而是要看清它如何影响你的下一步。"
        ),
        sections=sections,
        cta=profile.cta_style or "在评论区留下你的判断，我们将基于高赞问题做下一篇拆解。",
        followup_ideas=[
            f"{topic_title} 的后续变量观察清单",
            f"{account_name} 读者最常见问题答疑",
            "对比历史同类事件的结果与启示",
        ],
    )


def normalize_image_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value != value:
        return DEFAULT_IMAGE_COUNT
    return min(MAX_IMAGES, max(MIN_IMAGES, round_half_up(value)))


def build_image_placeholders(
    title: str,
    topic_title: str,
    content_pack: ContentPack,
    image_count: Any = None,
    style_preset: str | None = None,
) -> list[ImagePlaceholder]:
    """One cover image plus inline images cycling through the sections."""
    count = normalize_image_count(image_count)
    style = style_preset or DEFAULT_STYLE
    sections = content_pack.sections or [ContentSection("核心观点", "强化信息表达")]

    placeholders = []
    for index in range(count):
        section = sections[index % len(sections)]
        placeholders.append(ImagePlaceholder(
            slot=index + 1,
            purpose="封面图" if index == 0 else f"内文配图-{index}",
            prompt=(
                f"为中文热点分析文章生成{style}风格插图：主题“{topic_title}”，"
                f"段落“{section.title}”，突出“{section.goal}”，信息可视化，简洁专业。"
            ),
            placement_anchor=section.title,
            alt_text=f"{title} - {section.title}",
        ))
    return placeholders


def build_generation_trace(
    topic_score: float,
    profile: AccountProfile,
    content: str,
    quality_score: int,
) -> GenerationTrace:
    """Blend the opportunity score with the draft's own quality."""
    signals = sum(
        1 for value in (profile.audience, profile.growth_goal, profile.tone)
        if value and value[:8] in content
    )
    model_score = min(100, max(20, round_half_up(quality_score * 0.92)))
    return GenerationTrace(
        topic_score=round_half_up(topic_score),
        account_fit=min(100, 40 + signals * 18),
        model_score=model_score,
        fusion_score=round_half_up(topic_score * 0.4 + model_score * 0.6),
    )
