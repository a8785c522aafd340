"""Tests for opportunity scoring, upserts and status changes."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from trendpress.db import get_account, get_opportunity, get_opportunity_by_pair
from trendpress.errors import IllegalTransitionError, NotFoundError
from trendpress.models import OpportunityStatus, TopicCluster
from trendpress.opportunity import (
    category_match,
    discard_opportunity,
    expire_opportunities,
    list_opportunities,
    next_status,
    score_opportunity,
    select_opportunity,
    upsert_opportunity,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def _cluster(title="平稳话题", growth=50.0, resonance=1, persistence=0.0, age_minutes=0):
    return TopicCluster(
        fingerprint="fp",
        title=title,
        latest_snapshot_at=NOW - timedelta(minutes=age_minutes),
        window_start=NOW - timedelta(hours=2),
        window_end=NOW,
        resonance_count=resonance,
        growth_score=growth,
        persistence_score=persistence,
    )


# --- category matching ---


def test_category_match_without_account_keywords():
    """Accounts with no keywords take every cluster at a flat 10."""
    match = category_match(["华为"], [])
    assert match.score == 10
    assert not match.should_skip
    assert match.matched == []


def test_category_match_substring_either_direction():
    match = category_match(["AI芯片", "发布会"], ["芯片", "发布会直播"])
    assert match.matched == ["ai芯片", "发布会"]
    assert match.score == 12
    assert not match.should_skip


def test_category_match_caps_at_twenty():
    match = category_match(["aa", "bb", "cc", "dd"], ["aa", "bb", "cc", "dd"])
    assert match.score == 20


def test_category_mismatch_skips():
    match = category_match(["马拉松"], ["芯片"])
    assert match.should_skip


# --- scoring ---


def test_score_opportunity_terms():
    result = score_opportunity(_cluster(), category_score=10, now=NOW)
    assert result.score == 53
    assert result.reasons == [
        "hot:50.0",
        "cross-source:20.0",
        "momentum:40.0",
        "freshness:100.0",
        "persistence:0.0",
        "category:10.0",
    ]


def test_score_opportunity_freshness_decays():
    """Six hours after the last snapshot freshness contributes nothing."""
    assert score_opportunity(_cluster(age_minutes=360), 10, NOW).score == 38
    assert score_opportunity(_cluster(age_minutes=720), 10, NOW).score == 38


def test_score_opportunity_high_risk_penalty():
    result = score_opportunity(_cluster(title="网络赌博案告破"), 10, NOW)
    assert result.score == 37
    assert result.reasons[-1] == "risk:high-risk-term"


def test_score_opportunity_is_clamped():
    result = score_opportunity(
        _cluster(growth=100, resonance=9, persistence=100), 20, NOW,
    )
    assert result.score == 100


def test_next_status_only_moves_from_new():
    assert next_status(OpportunityStatus.NEW) is OpportunityStatus.NEW
    assert next_status(OpportunityStatus.SELECTED) is OpportunityStatus.SELECTED
    assert next_status(OpportunityStatus.DISCARDED) is OpportunityStatus.DISCARDED
    assert next_status(OpportunityStatus.EXPIRED) is OpportunityStatus.EXPIRED
    assert next_status(
        OpportunityStatus.NEW, OpportunityStatus.SELECTED,
    ) is OpportunityStatus.SELECTED


# --- upsert ---


def test_upsert_creates_new_opportunity(db_conn, make_account, make_cluster):
    account = get_account(db_conn, make_account(keywords=[]))
    cluster = make_cluster()
    assert upsert_opportunity(db_conn, cluster, account, 45, NOW) == "created"

    opp = get_opportunity_by_pair(db_conn, cluster.id, account.id)
    assert opp.status is OpportunityStatus.NEW
    assert opp.score == 55
    assert opp.expires_at == cluster.latest_snapshot_at + timedelta(hours=6)
    assert not any(r.startswith("matched:") for r in opp.reasons)


def test_upsert_records_matched_keywords(db_conn, make_account, make_cluster):
    account = get_account(db_conn, make_account(keywords=["折叠屏"]))
    cluster = make_cluster(keywords=["华为", "折叠屏手机"])
    assert upsert_opportunity(db_conn, cluster, account, 0, NOW) == "created"

    opp = get_opportunity_by_pair(db_conn, cluster.id, account.id)
    assert opp.reasons[-1] == "matched:折叠屏手机"


def test_upsert_skips_mismatched_account(db_conn, make_account, make_cluster):
    account = get_account(db_conn, make_account(keywords=["马拉松"]))
    cluster = make_cluster()
    assert upsert_opportunity(db_conn, cluster, account, 0, NOW) == "skipped"
    assert get_opportunity_by_pair(db_conn, cluster.id, account.id) is None


def test_upsert_below_threshold_not_created(db_conn, make_account, make_cluster):
    account = get_account(db_conn, make_account(keywords=[]))
    cluster = make_cluster()
    assert upsert_opportunity(db_conn, cluster, account, 60, NOW) == "below-threshold"
    assert get_opportunity_by_pair(db_conn, cluster.id, account.id) is None


def test_upsert_below_threshold_still_refreshes_existing(
    db_conn, make_account, make_cluster, make_opportunity,
):
    """An existing row is refreshed even when its new score is under the bar."""
    account = get_account(db_conn, make_account(keywords=[]))
    cluster = make_cluster()
    opp_id = make_opportunity(cluster.id, account.id, score=70)

    assert upsert_opportunity(db_conn, cluster, account, 60, NOW) == "refreshed"
    opp = get_opportunity(db_conn, opp_id)
    assert opp.score == 55
    assert opp.status is OpportunityStatus.NEW


@pytest.mark.parametrize("status", [
    OpportunityStatus.SELECTED,
    OpportunityStatus.EXPIRED,
    OpportunityStatus.DISCARDED,
])
def test_upsert_keeps_status_once_left_new(
    db_conn, make_account, make_cluster, make_opportunity, status,
):
    """A refresh (score 70 -> 55) never moves a row back to NEW."""
    account = get_account(db_conn, make_account(keywords=[]))
    cluster = make_cluster()
    opp_id = make_opportunity(cluster.id, account.id, score=70, status=status)

    assert upsert_opportunity(db_conn, cluster, account, 45, NOW) == "refreshed"
    opp = get_opportunity(db_conn, opp_id)
    assert opp.score == 55
    assert opp.status is status


def test_upsert_is_idempotent(db_conn, make_account, make_cluster):
    account = get_account(db_conn, make_account(keywords=[]))
    cluster = make_cluster()
    upsert_opportunity(db_conn, cluster, account, 45, NOW)
    upsert_opportunity(db_conn, cluster, account, 45, NOW)
    page = list_opportunities(db_conn)
    assert page.total == 1


# --- listing ---


def test_list_orders_by_score_and_paginates(
    db_conn, make_account, make_cluster, make_opportunity,
):
    account_id = make_account(keywords=[])
    for title, score in (("话题一", 50), ("话题二", 80), ("话题三", 60)):
        make_opportunity(make_cluster(title=title).id, account_id, score=score)

    page = list_opportunities(db_conn, page=1, page_size=2)
    assert [o.score for o in page.items] == [80, 60]
    assert page.total == 3
    assert page.total_pages == 2
    assert page.has_next
    assert not page.has_prev

    page2 = list_opportunities(db_conn, page=2, page_size=2)
    assert [o.score for o in page2.items] == [50]
    assert not page2.has_next


def test_list_filters_by_status_and_account(
    db_conn, make_account, make_cluster, make_opportunity,
):
    first = make_account(name="一号", keywords=[])
    second = make_account(name="二号", keywords=[])
    cluster = make_cluster()
    make_opportunity(cluster.id, first, status=OpportunityStatus.SELECTED)
    make_opportunity(cluster.id, second)

    assert list_opportunities(db_conn, account_id=first).total == 1
    selected = list_opportunities(db_conn, status=OpportunityStatus.SELECTED)
    assert [o.account_id for o in selected.items] == [first]


def test_list_clamps_page_arguments(db_conn):
    page = list_opportunities(db_conn, page=0, page_size=500)
    assert page.page == 1
    assert page.page_size == 100
    assert list_opportunities(db_conn, page_size=0).page_size == 1
    assert list_opportunities(db_conn, page_size=None).page_size == 20


# --- status changes ---


def test_select_opportunity(db_conn, seeded_opportunity):
    opp_id, _, _ = seeded_opportunity
    assert select_opportunity(db_conn, opp_id).status is OpportunityStatus.SELECTED
    assert get_opportunity(db_conn, opp_id).status is OpportunityStatus.SELECTED


def test_discard_new_opportunity(db_conn, seeded_opportunity):
    opp_id, _, _ = seeded_opportunity
    discard_opportunity(db_conn, opp_id)
    assert get_opportunity(db_conn, opp_id).status is OpportunityStatus.DISCARDED


def test_discard_non_new_raises(db_conn, seeded_opportunity):
    opp_id, _, _ = seeded_opportunity
    select_opportunity(db_conn, opp_id)
    with pytest.raises(IllegalTransitionError):
        discard_opportunity(db_conn, opp_id)


def test_discard_unknown_raises(db_conn):
    with pytest.raises(NotFoundError, match="Opportunity not found: 999"):
        discard_opportunity(db_conn, 999)


def test_expire_only_touches_stale_new(
    db_conn, make_account, make_cluster, make_opportunity,
):
    account_id = make_account(keywords=[])
    stale = make_opportunity(
        make_cluster(title="旧话题").id, account_id, expires_at=NOW - timedelta(hours=1),
    )
    fresh = make_opportunity(
        make_cluster(title="新话题").id, account_id, expires_at=NOW + timedelta(hours=1),
    )
    chosen = make_opportunity(
        make_cluster(title="已选话题").id, account_id,
        status=OpportunityStatus.SELECTED, expires_at=NOW - timedelta(hours=1),
    )

    assert expire_opportunities(db_conn, now=NOW) == 1
    assert get_opportunity(db_conn, stale).status is OpportunityStatus.EXPIRED
    assert get_opportunity(db_conn, fresh).status is OpportunityStatus.NEW
    assert get_opportunity(db_conn, chosen).status is OpportunityStatus.SELECTED
