"""Sync pass orchestrator: snapshots -> clusters -> opportunities."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from trendpress.config import (
    clamp_window_hours,
    get_db_path,
    get_min_opportunity_score,
    get_snapshot_source,
    get_window_hours,
)
from trendpress.db import (
    finish_run,
    get_connection,
    insert_account,
    insert_profile,
    insert_run,
    insert_snapshot,
    list_active_accounts,
    upsert_topic_cluster,
)
from trendpress.errors import ConfigurationError
from trendpress.fanout import FanOutResult, fan_out
from trendpress.ingest import SOURCES
from trendpress.models import (
    Account,
    Category,
    SyncResult,
    SyncRun,
    TopicCluster,
    TrendSnapshot,
)
from trendpress.opportunity import upsert_opportunity
from trendpress.process.cluster import ClusterProcessor
from trendpress.profiles import sanitize_profile

logger = logging.getLogger(__name__)


async def sync_opportunities(
    config: dict,
    window_hours: Any = None,
    now: datetime | None = None,
) -> SyncResult:
    """Cluster the recent snapshot window and upsert per-account opportunities.

    Clusters are independent, so each is saved and matched in its own
    isolated task; a failing cluster is logged and counted, never raised.
    Failing to read snapshots or accounts fails the whole pass.
    """
    hours = clamp_window_hours(
        window_hours if window_hours is not None else get_window_hours(config)
    )
    window_end = now or datetime.utcnow()
    window_start = window_end - timedelta(hours=hours)
    min_score = get_min_opportunity_score(config)

    source_name = get_snapshot_source(config)
    if source_name not in SOURCES:
        raise ConfigurationError(f"Unknown snapshot source: {source_name}")

    conn = get_connection(get_db_path(config))
    run = SyncRun(window_start=window_start, window_end=window_end)
    run_id = insert_run(conn, run)
    logger.info(
        "Sync run #%d started (window %dh, min score %d)", run_id, hours, min_score,
    )

    try:
        source = SOURCES[source_name](config)
        snapshots = await source.list_snapshots(window_start, window_end)
        accounts = list_active_accounts(conn)
        run.source_count = len(snapshots)

        clusters = ClusterProcessor(config).build_clusters(
            snapshots, window_start, window_end,
        )
        if not accounts:
            logger.warning("No active accounts; clusters saved without opportunities")

        async def _save_cluster(cluster: TopicCluster) -> tuple[int, int, int]:
            cluster.id = upsert_topic_cluster(conn, cluster)
            upserted = skipped = failed = 0
            for account in accounts:
                try:
                    outcome = upsert_opportunity(
                        conn, cluster, account, min_score, window_end,
                    )
                except Exception:
                    logger.exception(
                        "Opportunity for cluster %r and account %d failed",
                        cluster.title, account.id,
                    )
                    failed += 1
                    continue
                if outcome == "skipped":
                    skipped += 1
                elif outcome in ("created", "refreshed"):
                    upserted += 1
            return upserted, skipped, failed

        result = await fan_out(clusters, _save_cluster, label="cluster")

        run.clusters_upserted = result.success_count
        run.failed_clusters = result.fail_count
        run.opportunities_upserted = sum(u for u, _, _ in result.results)
        run.skipped_accounts = sum(s for _, s, _ in result.results)
        run.failed_opportunities = sum(f for _, _, f in result.results)
        run.status = "completed"
        run.finished_at = datetime.utcnow()
        finish_run(conn, run_id, run)
        if result.fail_count:
            logger.warning(
                "Sync run #%d: %d of %d clusters failed",
                run_id, result.fail_count, len(clusters),
            )
        if run.failed_opportunities:
            logger.warning(
                "Sync run #%d: %d opportunity writes failed",
                run_id, run.failed_opportunities,
            )
        logger.info(
            "Sync run #%d completed: %d snapshots, %d clusters, "
            "%d opportunities, %d skipped",
            run_id, run.source_count, run.clusters_upserted,
            run.opportunities_upserted, run.skipped_accounts,
        )
    except Exception:
        logger.exception("Sync run #%d failed", run_id)
        run.status = "failed"
        run.finished_at = datetime.utcnow()
        finish_run(conn, run_id, run)
        raise
    finally:
        conn.close()

    return SyncResult(
        clusters_upserted=run.clusters_upserted,
        opportunities_upserted=run.opportunities_upserted,
        skipped_accounts=run.skipped_accounts,
        source_count=run.source_count,
        window_start=window_start,
        window_end=window_end,
        failed_clusters=run.failed_clusters,
        failed_opportunities=run.failed_opportunities,
    )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def snapshot_from_record(record: dict[str, Any]) -> TrendSnapshot:
    """Build a snapshot from an import record, raising ValueError if invalid."""
    title = str(record.get("title") or "").strip()
    platform = str(record.get("platform") or "").strip()
    if not title or not platform:
        raise ValueError("snapshot needs a platform and a title")
    if "captured_at" not in record:
        raise ValueError("snapshot needs captured_at")

    heat = record.get("heat_value")
    return TrendSnapshot(
        platform=platform,
        title=title,
        rank=int(record.get("rank", 0)),
        captured_at=_parse_timestamp(record["captured_at"]),
        url=record.get("url") or None,
        heat_value=float(heat) if heat is not None else None,
    )


async def import_snapshots(config: dict, records: list[dict[str, Any]]) -> FanOutResult:
    """Store snapshot records, each insert isolated from the others."""
    conn = get_connection(get_db_path(config))

    async def _insert(record: dict[str, Any]) -> int:
        return insert_snapshot(conn, snapshot_from_record(record))

    try:
        result = await fan_out(records, _insert, label="snapshot")
    finally:
        conn.close()

    if result.fail_count:
        logger.warning(
            "Imported %d snapshots, %d failed", result.success_count, result.fail_count,
        )
    else:
        logger.info("Imported %d snapshots", result.success_count)
    return result


def import_accounts(config: dict, records: list[dict[str, Any]]) -> list[int]:
    """Create accounts with their categories and optional writing profile."""
    conn = get_connection(get_db_path(config))
    ids = []
    try:
        for record in records:
            account = Account(
                name=record["name"],
                platform=record.get("platform", "weixin"),
                is_active=bool(record.get("is_active", True)),
                categories=[
                    Category(name=c["name"], keywords=list(c.get("keywords", [])))
                    for c in record.get("categories", [])
                ],
            )
            account_id = insert_account(conn, account)
            profile = record.get("profile")
            if profile:
                insert_profile(conn, account_id, sanitize_profile(profile))
            ids.append(account_id)
    finally:
        conn.close()
    logger.info("Imported %d accounts", len(ids))
    return ids
