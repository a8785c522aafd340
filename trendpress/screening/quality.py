"""Heuristic quality report for a generated draft, and the quality gate."""

from __future__ import annotations

import re

import numpy as np

from trendpress.models import AccountProfile, DraftStatus, QualityReport
from trendpress.process.scoring import round_half_up

DEFAULT_THRESHOLD = 85
GROWTH_SIGNALS = ("建议", "下一步", "评论区", "关注", "行动")
FIT_PREFIX_LENGTH = 8

WARN_SHORT = "内容长度偏短，建议补充分析层。"
WARN_EVIDENCE = "证据点不足，建议补充跨平台事实。"
WARN_FIT = "账号画像命中不足，建议强化受众语境。"

_WHITESPACE = re.compile(r"\s+")


def _clip(value: float, low: float, high: float) -> int:
    return int(np.clip(value, low, high))


def _fit_signals(content: str, profile: AccountProfile) -> int:
    fields = [profile.audience, profile.growth_goal, profile.content_promise or ""]
    return sum(
        1 for value in fields
        if value and value[:FIT_PREFIX_LENGTH] in content
    )


def build_quality_report(
    title: str,
    content: str,
    profile: AccountProfile,
    evidence_count: int,
    outline_count: int,
) -> QualityReport:
    text_length = len(_WHITESPACE.sub("", content))

    readability = 100 if outline_count >= 4 else 70
    length_score = _clip(
        round_half_up(100 - abs(text_length - profile.preferred_length) / 15), 35, 100,
    )
    evidence = _clip(evidence_count * 18, 20, 100)

    fit_signals = _fit_signals(content, profile)
    account_fit = _clip(45 + fit_signals * 18, 45, 100)

    growth_hits = sum(1 for signal in GROWTH_SIGNALS if signal in content)
    growth_potential = _clip(50 + growth_hits * 10, 50, 100)

    relevance = _clip(round_half_up(length_score * 0.45 + account_fit * 0.55), 40, 100)

    score = round_half_up(
        relevance * 0.24
        + evidence * 0.20
        + readability * 0.20
        + growth_potential * 0.20
        + account_fit * 0.16
    )

    warnings = []
    if text_length < 1000:
        warnings.append(WARN_SHORT)
    if evidence_count < 3:
        warnings.append(WARN_EVIDENCE)
    if fit_signals < 2:
        warnings.append(WARN_FIT)

    return QualityReport(
        score=score,
        relevance=relevance,
        evidence=evidence,
        readability=readability,
        growth_potential=growth_potential,
        account_fit=account_fit,
        length_score=length_score,
        warnings=warnings,
    )


def apply_quality_gate(
    status: DraftStatus, score: int, threshold: int = DEFAULT_THRESHOLD,
) -> DraftStatus:
    """Hold back a READY draft whose quality is under the threshold."""
    if status is DraftStatus.READY and score < threshold:
        return DraftStatus.REVIEW
    return status
