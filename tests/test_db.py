"""Tests for database operations."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from trendpress.db import (
    finish_run,
    get_draft,
    get_opportunity,
    get_publish_job,
    get_recent_runs,
    get_topic_cluster,
    insert_opportunity,
    insert_publish_job,
    insert_run,
    insert_snapshot,
    list_publish_jobs,
    list_snapshots,
    refresh_opportunity,
    save_publish_job,
    update_draft_metadata,
    upsert_topic_cluster,
)
from trendpress.models import (
    DeliveryStage,
    Opportunity,
    OpportunityStatus,
    PublishJob,
    PublishJobStatus,
    SyncRun,
    TrendSnapshot,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


def test_list_snapshots_window_and_order(db_conn):
    """Only snapshots inside the window come back, newest first."""
    for minutes, title in ((150, "太旧"), (90, "较早"), (10, "最新")):
        insert_snapshot(db_conn, TrendSnapshot(
            platform="weibo", title=title, rank=1,
            captured_at=NOW - timedelta(minutes=minutes),
        ))
    snapshots = list_snapshots(db_conn, NOW - timedelta(hours=2), NOW)
    assert [s.title for s in snapshots] == ["最新", "较早"]


def test_aware_timestamps_stored_as_utc(db_conn):
    aware = datetime(2026, 10, 18, 19, 30, tzinfo=timezone(timedelta(hours=8)))
    insert_snapshot(db_conn, TrendSnapshot(
        platform="douyin", title="时区", rank=1, captured_at=aware,
    ))
    snapshots = list_snapshots(db_conn, NOW - timedelta(hours=1), NOW)
    assert snapshots[0].captured_at == datetime(2026, 10, 18, 11, 30)


def test_upsert_topic_cluster_keeps_id(db_conn, make_cluster):
    """Re-upserting a fingerprint updates the row in place."""
    cluster = make_cluster(title="同一话题")
    cluster.growth_score = 88.0
    cluster.resonance_count = 3
    assert upsert_topic_cluster(db_conn, cluster) == cluster.id

    stored = get_topic_cluster(db_conn, cluster.id)
    assert stored.growth_score == 88.0
    assert stored.resonance_count == 3
    assert stored.evidence[0].platform == "weibo"


def test_insert_opportunity_duplicate_pair_returns_none(
    db_conn, make_account, make_cluster,
):
    account_id = make_account(keywords=[])
    cluster = make_cluster()
    opp = Opportunity(
        topic_cluster_id=cluster.id, account_id=account_id, score=60,
        expires_at=NOW + timedelta(hours=6),
    )
    assert insert_opportunity(db_conn, opp) is not None
    assert insert_opportunity(db_conn, opp) is None


def test_refresh_never_moves_status_off_selected(db_conn, make_account, make_cluster):
    """Even a caller proposing NEW cannot revert a SELECTED row."""
    account_id = make_account(keywords=[])
    cluster = make_cluster()
    opp_id = insert_opportunity(db_conn, Opportunity(
        topic_cluster_id=cluster.id, account_id=account_id, score=60,
        status=OpportunityStatus.SELECTED, expires_at=NOW,
    ))
    refresh_opportunity(
        db_conn, opp_id, score=40, reasons=["hot:1.0"],
        status=OpportunityStatus.NEW,
        expires_at=NOW + timedelta(hours=6), updated_at=NOW,
    )
    opp = get_opportunity(db_conn, opp_id)
    assert opp.status is OpportunityStatus.SELECTED
    assert opp.score == 40
    assert opp.reasons == ["hot:1.0"]


def test_publish_job_round_trip(db_conn, make_draft):
    draft_id = make_draft()
    job = PublishJob(draft_id=draft_id, provider="wechat", request_payload={"title": "t"})
    job.id = insert_publish_job(db_conn, job)

    job.status = PublishJobStatus.SUCCESS
    job.delivery_stage = DeliveryStage.PUBLISHED
    job.attempt = 1
    job.external_id = "mid-1"
    job.response_payload = {"mediaId": "mid-1"}
    job.finished_at = NOW
    save_publish_job(db_conn, job)

    stored = get_publish_job(db_conn, job.id)
    assert stored.status is PublishJobStatus.SUCCESS
    assert stored.delivery_stage is DeliveryStage.PUBLISHED
    assert stored.response_payload == {"mediaId": "mid-1"}
    assert stored.request_payload == {"title": "t"}
    assert stored.finished_at == NOW
    assert [j.id for j in list_publish_jobs(db_conn, draft_id)] == [job.id]


def test_update_draft_metadata(db_conn, make_draft):
    draft_id = make_draft()
    update_draft_metadata(db_conn, draft_id, {"image_placeholders": [], "note": "中文"})
    assert get_draft(db_conn, draft_id).metadata == {"image_placeholders": [], "note": "中文"}


def test_insert_and_finish_run(db_conn):
    run = SyncRun(window_start=NOW - timedelta(hours=2), window_end=NOW)
    run_id = insert_run(db_conn, run)
    assert run_id > 0

    run.status = "completed"
    run.source_count = 12
    run.clusters_upserted = 4
    run.opportunities_upserted = 3
    run.finished_at = NOW
    finish_run(db_conn, run_id, run)

    runs = get_recent_runs(db_conn)
    assert len(runs) == 1
    assert runs[0]["status"] == "completed"
    assert runs[0]["source_count"] == 12
    assert runs[0]["opportunities_upserted"] == 3
