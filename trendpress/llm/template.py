"""Offline draft provider used when no model API key is configured."""

from __future__ import annotations

from trendpress.errors import GenerationError
from trendpress.llm import register_provider
from trendpress.llm.base import BaseLLMProvider, GeneratedDraft, LLMResponse

TEMPLATE_MODEL = "template-fallback"
TEMPLATE_OUTLINE = ["开场钩子", "热点事实与证据", "观点拆解", "行动建议"]


@register_provider("template")
class TemplateFallbackProvider(BaseLLMProvider):
    """Fills a fixed four-section article with the topic title."""

    @property
    def provider_name(self) -> str:
        return "template"

    async def complete(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int = 2000,
        json_output: bool = False,
    ) -> LLMResponse:
        raise GenerationError("The template provider only renders drafts.")

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        topic_title: str,
        account_name: str,
    ) -> GeneratedDraft:
        content = "\n".join([
            f"# {topic_title}",
            "",
            "## 开场钩子",
            f"今天围绕“{topic_title}”的讨论正在加速升温，值得在第一时间解释其核心影响。",
            "",
            "## 热点事实与证据",
            "- 多平台热榜出现同题信号，具备共振传播条件。",
            "- 结合时间线与排名变化，当前话题仍在上行窗口。",
            "",
            "## 观点拆解",
            "把热点拆成“发生了什么、为什么重要、普通人如何行动”三层结构，更容易形成高完读率。",
            "",
            "## 行动建议",
            "建议评论区收集读者观点，下一篇用问答形式承接，形成连续选题。",
        ])
        return GeneratedDraft(
            title=f"【{topic_title}】今天到底发生了什么？",
            content=content,
            model=TEMPLATE_MODEL,
            outline=list(TEMPLATE_OUTLINE),
        )
