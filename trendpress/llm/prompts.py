"""Prompt templates for draft generation."""

from __future__ import annotations

from dataclasses import dataclass, field

from trendpress.models import AccountProfile, TopicEvidence

TEMPLATE_VERSION = "wechat-v2-account-growth"
MAX_PROMPT_EVIDENCE = 10

SYSTEM_DRAFT = """你是一名资深中文内容策略编辑。
你的任务是为特定账号写一篇“能提升阅读、互动与关注转化”的热点深度稿。
必须遵守：
1) 事实与观点分离，不能捏造未给出的事实；
2) 结构必须完整：开场钩子 -> 事实证据 -> 分析拆解 -> 行动建议 -> 互动收尾；
3) 输出内容要可直接发布为 Markdown。"""

DRAFT_USER = """\
账号名称：{account_name}
账号赛道：{categories}
热点主题：{topic_title}
跨平台共振数：{resonance_count}
增长分：{growth_score:.1f}
关键词：{keywords}

账号定位：
{profile}

热点证据链：
{evidence}

生成要求：
1) 标题务必具体，不用夸张词；
2) 生成 1400-2200 字；
3) 正文需包含至少 4 个可验证事实点（来源可内隐，不必外链展示）；
4) 给出至少 2 条可执行建议；
5) 结尾包含互动问题与下篇承接。

{diversity}

请只输出 JSON：{{"title":"","outline":[""],"content":""}}"""

FIRST_DRAFT = "这是首稿，可聚焦当前最具传播价值的分析角度。"

REGENERATION = """\
这是重生稿，必须与上一个版本保持明显差异。
上稿标题：{title}
上稿大纲：{outline}
要求本稿至少在“核心观点、开场路径、段落结构”中改变两项，禁止同义改写。"""


@dataclass
class PreviousDraft:
    title: str
    outline: list[str] = field(default_factory=list)


@dataclass
class DraftPrompt:
    template_version: str
    system_prompt: str
    user_prompt: str


def _profile_block(profile: AccountProfile) -> str:
    return "\n".join([
        f"目标读者：{profile.audience}",
        f"语气风格：{profile.tone}",
        f"增长目标：{profile.growth_goal}",
        f"读者痛点：{'；'.join(profile.pain_points) or '信息噪音高'}",
        f"内容承诺：{profile.content_promise or '给出高信息密度的分析与行动建议'}",
        f"禁区：{'；'.join(profile.forbidden_topics) or '禁止编造事实'}",
        f"CTA风格：{profile.cta_style or '评论互动+下篇承接'}",
        f"目标字数：{profile.preferred_length}",
    ])


def _evidence_block(evidence: list[TopicEvidence]) -> str:
    lines = []
    for i, item in enumerate(evidence[:MAX_PROMPT_EVIDENCE], 1):
        line = (
            f"{i}. [{item.platform}] {item.title} "
            f"(rank={item.rank}, snapshot={item.captured_at.isoformat()})"
        )
        if item.url:
            line += f" url={item.url}"
        lines.append(line)
    return "\n".join(lines) or "- 暂无证据"


def build_draft_prompt(
    account_name: str,
    categories: list[str],
    topic_title: str,
    resonance_count: int,
    growth_score: float,
    keywords: list[str],
    evidence: list[TopicEvidence],
    profile: AccountProfile,
    previous: PreviousDraft | None = None,
) -> DraftPrompt:
    if previous is not None:
        diversity = REGENERATION.format(
            title=previous.title, outline=" / ".join(previous.outline) or "无",
        )
    else:
        diversity = FIRST_DRAFT

    user_prompt = DRAFT_USER.format(
        account_name=account_name,
        categories=" / ".join(categories) or "通用热点解读",
        topic_title=topic_title,
        resonance_count=resonance_count,
        growth_score=growth_score,
        keywords="、".join(keywords) or "实时热点",
        profile=_profile_block(profile),
        evidence=_evidence_block(evidence),
        diversity=diversity,
    )
    return DraftPrompt(
        template_version=TEMPLATE_VERSION,
        system_prompt=SYSTEM_DRAFT,
        user_prompt=user_prompt,
    )
