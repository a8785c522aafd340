"""Keyword-based policy risk evaluation for drafts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

from trendpress.models import DraftStatus, RiskLevel, RiskPolicy

HIGH_RISK_TERMS = ("赌博", "色情", "毒品", "暴力", "恐怖", "诈骗", "仇恨")
MEDIUM_RISK_TERMS = ("内幕", "爆料", "传闻", "谣言", "玄学", "偏方")


@dataclass
class RiskEvaluation:
    risk_level: RiskLevel
    risk_score: float
    suggested_status: DraftStatus
    reasons: list[str] = field(default_factory=list)


def resolve_risk_policy(value: Any) -> RiskPolicy:
    """Map free text to a policy; anything unrecognised means balanced."""
    if isinstance(value, RiskPolicy):
        return value
    try:
        return RiskPolicy(str(value).strip().lower())
    except ValueError:
        return RiskPolicy.BALANCED


def _count_terms(text: str, terms: tuple[str, ...]) -> int:
    return sum(1 for term in terms if term in text)


def evaluate_draft_risk(
    title: str, content: str, policy: RiskPolicy = RiskPolicy.BALANCED,
) -> RiskEvaluation:
    """Score a draft and suggest its status under the given policy.

    A single high-risk term blocks the draft under every policy. Each term
    counts once no matter how often it appears.
    """
    text = f"{title}\n{content}".casefold()
    high = _count_terms(text, HIGH_RISK_TERMS)
    medium = _count_terms(text, MEDIUM_RISK_TERMS)
    score = float(np.clip(0.2 + high * 0.45 + medium * 0.2, 0, 1))

    reasons = []
    if high:
        reasons.append(f"high-risk-term:{high}")
    if medium:
        reasons.append(f"medium-risk-term:{medium}")

    if high:
        return RiskEvaluation(RiskLevel.HIGH, score, DraftStatus.BLOCKED, reasons)

    if policy is RiskPolicy.STRICT:
        if medium or score >= 0.45:
            return RiskEvaluation(
                RiskLevel.MEDIUM, score, DraftStatus.REVIEW,
                reasons or ["strict-policy-review"],
            )
    elif policy is RiskPolicy.GROWTH:
        return RiskEvaluation(
            RiskLevel.MEDIUM if medium else RiskLevel.LOW,
            score,
            DraftStatus.REVIEW if medium > 1 else DraftStatus.READY,
            reasons,
        )

    if medium or score >= 0.5:
        return RiskEvaluation(
            RiskLevel.MEDIUM, score, DraftStatus.REVIEW,
            reasons or ["balanced-policy-review"],
        )
    return RiskEvaluation(RiskLevel.LOW, score, DraftStatus.READY, reasons)
