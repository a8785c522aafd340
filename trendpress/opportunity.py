"""Pair topic clusters with accounts and keep opportunity rows up to date."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import numpy as np

from trendpress.db import (
    expire_new_opportunities,
    get_opportunity,
    get_opportunity_by_pair,
    insert_opportunity,
    query_opportunities,
    refresh_opportunity,
    set_opportunity_status,
)
from trendpress.errors import IllegalTransitionError, NotFoundError
from trendpress.models import (
    Account,
    Opportunity,
    OpportunityStatus,
    Page,
    TopicCluster,
)
from trendpress.process.scoring import round_half_up

logger = logging.getLogger(__name__)

OPPORTUNITY_TTL = timedelta(hours=6)
FRESHNESS_HORIZON_MINUTES = 360
HIGH_RISK_PENALTY = 16
NO_KEYWORD_CATEGORY_SCORE = 10
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

HIGH_RISK_TITLE_TERMS = (
    "博彩", "赌博", "色情", "暴力", "违法",
    "谣言", "假新闻", "恐怖", "毒品", "诈骗",
)


@dataclass
class CategoryMatch:
    matched: list[str] = field(default_factory=list)
    score: float = 0.0
    should_skip: bool = False


@dataclass
class OpportunityScore:
    score: int
    reasons: list[str]


def _clip(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(np.clip(value, low, high))


def category_match(
    cluster_keywords: list[str], account_keywords: list[str],
) -> CategoryMatch:
    """Substring overlap (either direction) between cluster and account keywords."""
    if not account_keywords:
        return CategoryMatch(score=NO_KEYWORD_CATEGORY_SCORE)

    lowered = [k.lower() for k in cluster_keywords]
    matched = [
        keyword for keyword in lowered
        if any(keyword in ak or ak in keyword for ak in account_keywords)
    ]
    if not matched:
        return CategoryMatch(should_skip=True)
    return CategoryMatch(matched=matched, score=_clip(len(matched) * 6, 0, 20))


def score_opportunity(
    cluster: TopicCluster, category_score: float, now: datetime,
) -> OpportunityScore:
    """Composite 0-100 score plus the audit terms that produced it."""
    base_heat = _clip(cluster.growth_score)
    cross_source = _clip(cluster.resonance_count / 5 * 100)
    momentum = _clip(cluster.growth_score * 0.8 + cluster.persistence_score * 0.2)
    age_minutes = max(0.0, (now - cluster.latest_snapshot_at).total_seconds() / 60)
    freshness = _clip(100 * (1 - age_minutes / FRESHNESS_HORIZON_MINUTES))

    title = cluster.title.lower()
    high_risk = any(term in title for term in HIGH_RISK_TITLE_TERMS)

    raw = (
        base_heat * 0.30
        + cross_source * 0.25
        + momentum * 0.20
        + freshness * 0.15
        + cluster.persistence_score * 0.10
        + category_score
        - (HIGH_RISK_PENALTY if high_risk else 0)
    )
    reasons = [
        f"hot:{base_heat:.1f}",
        f"cross-source:{cross_source:.1f}",
        f"momentum:{momentum:.1f}",
        f"freshness:{freshness:.1f}",
        f"persistence:{cluster.persistence_score:.1f}",
        f"category:{category_score:.1f}",
    ]
    if high_risk:
        reasons.append("risk:high-risk-term")
    return OpportunityScore(score=round_half_up(_clip(raw)), reasons=reasons)


def next_status(
    current: OpportunityStatus,
    proposed: OpportunityStatus = OpportunityStatus.NEW,
) -> OpportunityStatus:
    """Status after a refresh. Anything that has left NEW stays where it is."""
    if current is OpportunityStatus.NEW:
        return proposed
    return current


def upsert_opportunity(
    conn: sqlite3.Connection,
    cluster: TopicCluster,
    account: Account,
    min_score: int,
    now: datetime,
) -> str:
    """Create or refresh the opportunity for one (cluster, account) pair.

    Returns ``"skipped"`` when categories don't match, ``"below-threshold"``
    when a new pair scores under ``min_score``, otherwise ``"created"`` or
    ``"refreshed"``.
    """
    match = category_match(cluster.keywords, account.keywords())
    if match.should_skip:
        return "skipped"

    result = score_opportunity(cluster, match.score, now)
    reasons = list(result.reasons)
    if match.matched:
        reasons.append(f"matched:{'|'.join(match.matched)}")
    expires_at = cluster.latest_snapshot_at + OPPORTUNITY_TTL

    existing = get_opportunity_by_pair(conn, cluster.id, account.id)
    if existing is None:
        if result.score < min_score:
            return "below-threshold"
        created = insert_opportunity(conn, Opportunity(
            topic_cluster_id=cluster.id,
            account_id=account.id,
            score=result.score,
            reasons=reasons,
            status=OpportunityStatus.NEW,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        ))
        if created is not None:
            return "created"
        # Lost an insert race with a concurrent sync; refresh that row instead.
        existing = get_opportunity_by_pair(conn, cluster.id, account.id)

    refresh_opportunity(
        conn,
        existing.id,
        score=result.score,
        reasons=reasons,
        status=next_status(existing.status),
        expires_at=expires_at,
        updated_at=now,
    )
    return "refreshed"


def list_opportunities(
    conn: sqlite3.Connection,
    account_id: int | None = None,
    status: OpportunityStatus | None = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Page:
    page = max(1, int(page if page is not None else 1))
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size)))
    items, total = query_opportunities(
        conn,
        account_id=account_id,
        status=status,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return Page(items=items, page=page, page_size=page_size, total=total)


def select_opportunity(
    conn: sqlite3.Connection, opportunity_id: int, now: datetime | None = None,
) -> Opportunity:
    """Mark an opportunity as chosen for drafting."""
    opp = get_opportunity(conn, opportunity_id)
    if opp is None:
        raise NotFoundError("opportunity", opportunity_id)
    if opp.status is not OpportunityStatus.SELECTED:
        set_opportunity_status(
            conn, opp.id, OpportunityStatus.SELECTED, now or datetime.utcnow(),
        )
        opp.status = OpportunityStatus.SELECTED
    return opp


def discard_opportunity(
    conn: sqlite3.Connection, opportunity_id: int, now: datetime | None = None,
) -> Opportunity:
    opp = get_opportunity(conn, opportunity_id)
    if opp is None:
        raise NotFoundError("opportunity", opportunity_id)
    if opp.status is not OpportunityStatus.NEW:
        raise IllegalTransitionError(
            f"Opportunity {opportunity_id} is {opp.status.value}; only NEW can be discarded."
        )
    set_opportunity_status(
        conn, opp.id, OpportunityStatus.DISCARDED, now or datetime.utcnow(),
    )
    opp.status = OpportunityStatus.DISCARDED
    logger.info("Discarded opportunity #%d", opp.id)
    return opp


def expire_opportunities(conn: sqlite3.Connection, now: datetime | None = None) -> int:
    """Expire every NEW opportunity whose expiry has passed."""
    count = expire_new_opportunities(conn, now or datetime.utcnow())
    if count:
        logger.info("Expired %d opportunities", count)
    return count
