"""SQLite database schema, migrations, and query helpers."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from trendpress.models import (
    Account,
    AccountProfile,
    Category,
    DeliveryStage,
    Draft,
    DraftStatus,
    Opportunity,
    OpportunityStatus,
    PerformanceMetric,
    PublishJob,
    PublishJobStatus,
    QualityReport,
    RiskLevel,
    SyncRun,
    TopicCluster,
    TopicEvidence,
    TrendSnapshot,
)

SCHEMA_VERSION = 1

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    platform TEXT NOT NULL,
    title TEXT NOT NULL,
    url TEXT,
    rank INTEGER NOT NULL,
    heat_value REAL,
    captured_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    platform TEXT NOT NULL DEFAULT 'weixin',
    is_active INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    keywords TEXT NOT NULL DEFAULT '[]'
);

CREATE TABLE IF NOT EXISTS account_categories (
    account_id INTEGER NOT NULL,
    category_id INTEGER NOT NULL,
    PRIMARY KEY (account_id, category_id),
    FOREIGN KEY (account_id) REFERENCES accounts(id),
    FOREIGN KEY (category_id) REFERENCES categories(id)
);

CREATE TABLE IF NOT EXISTS account_profiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER UNIQUE NOT NULL,
    audience TEXT NOT NULL,
    tone TEXT NOT NULL,
    growth_goal TEXT NOT NULL,
    pain_points TEXT NOT NULL DEFAULT '[]',
    content_promise TEXT,
    forbidden_topics TEXT NOT NULL DEFAULT '[]',
    cta_style TEXT,
    preferred_length INTEGER NOT NULL DEFAULT 1800,
    FOREIGN KEY (account_id) REFERENCES accounts(id)
);

CREATE TABLE IF NOT EXISTS topic_clusters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    fingerprint TEXT UNIQUE NOT NULL,
    title TEXT NOT NULL,
    keywords TEXT NOT NULL DEFAULT '[]',
    evidence TEXT NOT NULL DEFAULT '[]',
    resonance_count INTEGER NOT NULL DEFAULT 0,
    growth_score REAL NOT NULL DEFAULT 0,
    momentum_score REAL NOT NULL DEFAULT 50,
    persistence_score REAL NOT NULL DEFAULT 0,
    snapshot_count INTEGER NOT NULL DEFAULT 0,
    latest_snapshot_at TEXT NOT NULL,
    window_start TEXT NOT NULL,
    window_end TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS opportunities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic_cluster_id INTEGER NOT NULL,
    account_id INTEGER NOT NULL,
    score INTEGER NOT NULL,
    reasons TEXT NOT NULL DEFAULT '[]',
    status TEXT NOT NULL DEFAULT 'NEW',
    expires_at TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (topic_cluster_id, account_id),
    FOREIGN KEY (topic_cluster_id) REFERENCES topic_clusters(id),
    FOREIGN KEY (account_id) REFERENCES accounts(id)
);

CREATE TABLE IF NOT EXISTS drafts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    opportunity_id INTEGER NOT NULL,
    account_id INTEGER NOT NULL,
    parent_draft_id INTEGER,
    regeneration_index INTEGER NOT NULL DEFAULT 0,
    title TEXT NOT NULL,
    outline TEXT NOT NULL DEFAULT '[]',
    content TEXT NOT NULL,
    risk_level TEXT NOT NULL,
    risk_score REAL NOT NULL,
    status TEXT NOT NULL,
    quality_report TEXT,
    model TEXT NOT NULL DEFAULT '',
    template_version TEXT NOT NULL DEFAULT '',
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL,
    FOREIGN KEY (opportunity_id) REFERENCES opportunities(id),
    FOREIGN KEY (parent_draft_id) REFERENCES drafts(id)
);

CREATE TABLE IF NOT EXISTS publish_jobs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    draft_id INTEGER NOT NULL,
    provider TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'QUEUED',
    delivery_stage TEXT NOT NULL DEFAULT 'draftbox',
    attempt INTEGER NOT NULL DEFAULT 0,
    external_id TEXT,
    error_message TEXT,
    request_payload TEXT NOT NULL DEFAULT '{}',
    response_payload TEXT,
    queued_at TEXT NOT NULL,
    started_at TEXT,
    finished_at TEXT,
    FOREIGN KEY (draft_id) REFERENCES drafts(id)
);

CREATE TABLE IF NOT EXISTS performance_metrics (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL,
    opportunity_id INTEGER NOT NULL,
    draft_id INTEGER NOT NULL,
    publish_job_id INTEGER NOT NULL,
    collected_at TEXT NOT NULL,
    impressions INTEGER NOT NULL DEFAULT 0,
    reads INTEGER NOT NULL DEFAULT 0,
    likes INTEGER NOT NULL DEFAULT 0,
    shares INTEGER NOT NULL DEFAULT 0,
    comments INTEGER NOT NULL DEFAULT 0,
    bookmarks INTEGER NOT NULL DEFAULT 0,
    ctr REAL NOT NULL DEFAULT 0.0,
    FOREIGN KEY (publish_job_id) REFERENCES publish_jobs(id)
);

CREATE TABLE IF NOT EXISTS sync_runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    started_at TEXT NOT NULL,
    finished_at TEXT,
    status TEXT NOT NULL DEFAULT 'running',
    window_start TEXT NOT NULL,
    window_end TEXT NOT NULL,
    source_count INTEGER NOT NULL DEFAULT 0,
    clusters_upserted INTEGER NOT NULL DEFAULT 0,
    opportunities_upserted INTEGER NOT NULL DEFAULT 0,
    skipped_accounts INTEGER NOT NULL DEFAULT 0,
    failed_clusters INTEGER NOT NULL DEFAULT 0,
    failed_opportunities INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_snapshots_captured_at ON snapshots(captured_at);
CREATE INDEX IF NOT EXISTS idx_opportunities_account ON opportunities(account_id);
CREATE INDEX IF NOT EXISTS idx_opportunities_status ON opportunities(status);
CREATE INDEX IF NOT EXISTS idx_drafts_opportunity ON drafts(opportunity_id);
CREATE INDEX IF NOT EXISTS idx_publish_jobs_draft ON publish_jobs(draft_id);
"""


def get_connection(db_path: str) -> sqlite3.Connection:
    """Get a SQLite connection with WAL mode enabled."""
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: str) -> None:
    """Create all tables and set schema version."""
    conn = get_connection(db_path)
    try:
        conn.executescript(SCHEMA_SQL)
        conn.execute(
            "INSERT OR REPLACE INTO schema_version (version) VALUES (?)",
            (SCHEMA_VERSION,),
        )
        conn.commit()
    finally:
        conn.close()


def _dt_str(dt: datetime | None) -> str | None:
    """Serialize as naive UTC so stored values compare lexically."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat()


def _parse_dt(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s)


def _json_load(raw: str | None, default: Any) -> Any:
    if raw is None or raw == "":
        return default
    return json.loads(raw)


# --- Snapshot helpers ---


def insert_snapshot(conn: sqlite3.Connection, snapshot: TrendSnapshot) -> int:
    """Insert an immutable snapshot row, returning its ID."""
    cur = conn.execute(
        """INSERT INTO snapshots (platform, title, url, rank, heat_value, captured_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            snapshot.platform,
            snapshot.title,
            snapshot.url,
            snapshot.rank,
            snapshot.heat_value,
            _dt_str(snapshot.captured_at),
        ),
    )
    conn.commit()
    return cur.lastrowid


def list_snapshots(
    conn: sqlite3.Connection, window_start: datetime, window_end: datetime,
) -> list[TrendSnapshot]:
    """Snapshots captured inside the window, newest first."""
    rows = conn.execute(
        """SELECT * FROM snapshots
           WHERE captured_at >= ? AND captured_at <= ?
           ORDER BY captured_at DESC, id DESC""",
        (_dt_str(window_start), _dt_str(window_end)),
    ).fetchall()
    return [
        TrendSnapshot(
            id=row["id"],
            platform=row["platform"],
            title=row["title"],
            url=row["url"],
            rank=row["rank"],
            heat_value=row["heat_value"],
            captured_at=_parse_dt(row["captured_at"]),
        )
        for row in rows
    ]


# --- Account helpers ---


def insert_account(conn: sqlite3.Connection, account: Account) -> int:
    """Insert an account and link its categories (created on first use)."""
    cur = conn.execute(
        "INSERT INTO accounts (name, platform, is_active) VALUES (?, ?, ?)",
        (account.name, account.platform, int(account.is_active)),
    )
    account_id = cur.lastrowid
    for category in account.categories:
        conn.execute(
            """INSERT INTO categories (name, keywords) VALUES (?, ?)
               ON CONFLICT(name) DO UPDATE SET keywords = excluded.keywords""",
            (category.name, json.dumps(category.keywords, ensure_ascii=False)),
        )
        category_id = conn.execute(
            "SELECT id FROM categories WHERE name = ?", (category.name,)
        ).fetchone()["id"]
        conn.execute(
            "INSERT OR IGNORE INTO account_categories (account_id, category_id) VALUES (?, ?)",
            (account_id, category_id),
        )
    conn.commit()
    return account_id


def _account_categories(conn: sqlite3.Connection, account_id: int) -> list[Category]:
    rows = conn.execute(
        """SELECT c.name, c.keywords FROM categories c
           JOIN account_categories ac ON ac.category_id = c.id
           WHERE ac.account_id = ?
           ORDER BY c.id""",
        (account_id,),
    ).fetchall()
    return [
        Category(name=row["name"], keywords=_json_load(row["keywords"], []))
        for row in rows
    ]


def _row_to_account(conn: sqlite3.Connection, row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        name=row["name"],
        platform=row["platform"],
        is_active=bool(row["is_active"]),
        categories=_account_categories(conn, row["id"]),
    )


def list_active_accounts(conn: sqlite3.Connection) -> list[Account]:
    """Active accounts with their nested category keyword lists."""
    rows = conn.execute(
        "SELECT * FROM accounts WHERE is_active = 1 ORDER BY id"
    ).fetchall()
    return [_row_to_account(conn, row) for row in rows]


def get_account(conn: sqlite3.Connection, account_id: int) -> Account | None:
    row = conn.execute("SELECT * FROM accounts WHERE id = ?", (account_id,)).fetchone()
    return _row_to_account(conn, row) if row else None


# --- Profile helpers ---


def get_profile(conn: sqlite3.Connection, account_id: int) -> AccountProfile | None:
    row = conn.execute(
        "SELECT * FROM account_profiles WHERE account_id = ?", (account_id,)
    ).fetchone()
    if row is None:
        return None
    return AccountProfile(
        audience=row["audience"],
        tone=row["tone"],
        growth_goal=row["growth_goal"],
        pain_points=_json_load(row["pain_points"], []),
        content_promise=row["content_promise"],
        forbidden_topics=_json_load(row["forbidden_topics"], []),
        cta_style=row["cta_style"],
        preferred_length=row["preferred_length"],
    )


def insert_profile(conn: sqlite3.Connection, account_id: int, profile: AccountProfile) -> None:
    """Store a profile; a concurrent insert for the same account is ignored."""
    conn.execute(
        """INSERT OR IGNORE INTO account_profiles
           (account_id, audience, tone, growth_goal, pain_points, content_promise,
            forbidden_topics, cta_style, preferred_length)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            account_id,
            profile.audience,
            profile.tone,
            profile.growth_goal,
            json.dumps(profile.pain_points, ensure_ascii=False),
            profile.content_promise,
            json.dumps(profile.forbidden_topics, ensure_ascii=False),
            profile.cta_style,
            profile.preferred_length,
        ),
    )
    conn.commit()


# --- Topic cluster helpers ---


def upsert_topic_cluster(conn: sqlite3.Connection, cluster: TopicCluster) -> int:
    """Insert or refresh a cluster by fingerprint, returning its stable ID."""
    conn.execute(
        """INSERT INTO topic_clusters
           (fingerprint, title, keywords, evidence, resonance_count, growth_score,
            momentum_score, persistence_score, snapshot_count, latest_snapshot_at,
            window_start, window_end)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(fingerprint) DO UPDATE SET
               title = excluded.title,
               keywords = excluded.keywords,
               evidence = excluded.evidence,
               resonance_count = excluded.resonance_count,
               growth_score = excluded.growth_score,
               momentum_score = excluded.momentum_score,
               persistence_score = excluded.persistence_score,
               snapshot_count = excluded.snapshot_count,
               latest_snapshot_at = excluded.latest_snapshot_at,
               window_start = excluded.window_start,
               window_end = excluded.window_end""",
        (
            cluster.fingerprint,
            cluster.title,
            json.dumps(cluster.keywords, ensure_ascii=False),
            json.dumps([e.to_dict() for e in cluster.evidence], ensure_ascii=False),
            cluster.resonance_count,
            cluster.growth_score,
            cluster.momentum_score,
            cluster.persistence_score,
            cluster.snapshot_count,
            _dt_str(cluster.latest_snapshot_at),
            _dt_str(cluster.window_start),
            _dt_str(cluster.window_end),
        ),
    )
    conn.commit()
    row = conn.execute(
        "SELECT id FROM topic_clusters WHERE fingerprint = ?", (cluster.fingerprint,)
    ).fetchone()
    return row["id"]


def _row_to_cluster(row: sqlite3.Row) -> TopicCluster:
    return TopicCluster(
        id=row["id"],
        fingerprint=row["fingerprint"],
        title=row["title"],
        keywords=_json_load(row["keywords"], []),
        evidence=[TopicEvidence.from_dict(e) for e in _json_load(row["evidence"], [])],
        resonance_count=row["resonance_count"],
        growth_score=row["growth_score"],
        momentum_score=row["momentum_score"],
        persistence_score=row["persistence_score"],
        snapshot_count=row["snapshot_count"],
        latest_snapshot_at=_parse_dt(row["latest_snapshot_at"]),
        window_start=_parse_dt(row["window_start"]),
        window_end=_parse_dt(row["window_end"]),
    )


def get_topic_cluster(conn: sqlite3.Connection, cluster_id: int) -> TopicCluster | None:
    row = conn.execute("SELECT * FROM topic_clusters WHERE id = ?", (cluster_id,)).fetchone()
    return _row_to_cluster(row) if row else None


def get_topic_cluster_by_fingerprint(
    conn: sqlite3.Connection, fingerprint: str,
) -> TopicCluster | None:
    row = conn.execute(
        "SELECT * FROM topic_clusters WHERE fingerprint = ?", (fingerprint,)
    ).fetchone()
    return _row_to_cluster(row) if row else None


def count_topic_clusters(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM topic_clusters").fetchone()[0]


# --- Opportunity helpers ---


def _row_to_opportunity(row: sqlite3.Row) -> Opportunity:
    return Opportunity(
        id=row["id"],
        topic_cluster_id=row["topic_cluster_id"],
        account_id=row["account_id"],
        score=row["score"],
        reasons=_json_load(row["reasons"], []),
        status=OpportunityStatus(row["status"]),
        expires_at=_parse_dt(row["expires_at"]),
        created_at=_parse_dt(row["created_at"]),
        updated_at=_parse_dt(row["updated_at"]),
    )


def get_opportunity(conn: sqlite3.Connection, opportunity_id: int) -> Opportunity | None:
    row = conn.execute(
        "SELECT * FROM opportunities WHERE id = ?", (opportunity_id,)
    ).fetchone()
    return _row_to_opportunity(row) if row else None


def get_opportunity_by_pair(
    conn: sqlite3.Connection, topic_cluster_id: int, account_id: int,
) -> Opportunity | None:
    row = conn.execute(
        "SELECT * FROM opportunities WHERE topic_cluster_id = ? AND account_id = ?",
        (topic_cluster_id, account_id),
    ).fetchone()
    return _row_to_opportunity(row) if row else None


def insert_opportunity(conn: sqlite3.Connection, opp: Opportunity) -> int | None:
    """Insert a new opportunity. Returns None if the pair already exists."""
    cur = conn.execute(
        """INSERT INTO opportunities
           (topic_cluster_id, account_id, score, reasons, status, expires_at,
            created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)
           ON CONFLICT(topic_cluster_id, account_id) DO NOTHING""",
        (
            opp.topic_cluster_id,
            opp.account_id,
            opp.score,
            json.dumps(opp.reasons, ensure_ascii=False),
            opp.status.value,
            _dt_str(opp.expires_at),
            _dt_str(opp.created_at),
            _dt_str(opp.updated_at),
        ),
    )
    conn.commit()
    return cur.lastrowid if cur.rowcount else None


def refresh_opportunity(
    conn: sqlite3.Connection,
    opportunity_id: int,
    score: int,
    reasons: list[str],
    status: OpportunityStatus,
    expires_at: datetime,
    updated_at: datetime,
) -> None:
    """Overwrite score/reasons/expiry; status only moves while still NEW."""
    # The NEW check is repeated in SQL so a status set by another writer
    # between read and write is kept.
    conn.execute(
        """UPDATE opportunities SET
           score = ?, reasons = ?, expires_at = ?, updated_at = ?,
           status = CASE WHEN status = 'NEW' THEN ? ELSE status END
           WHERE id = ?""",
        (
            score,
            json.dumps(reasons, ensure_ascii=False),
            _dt_str(expires_at),
            _dt_str(updated_at),
            status.value,
            opportunity_id,
        ),
    )
    conn.commit()


def set_opportunity_status(
    conn: sqlite3.Connection,
    opportunity_id: int,
    status: OpportunityStatus,
    updated_at: datetime,
) -> None:
    conn.execute(
        "UPDATE opportunities SET status = ?, updated_at = ? WHERE id = ?",
        (status.value, _dt_str(updated_at), opportunity_id),
    )
    conn.commit()


def expire_new_opportunities(conn: sqlite3.Connection, now: datetime) -> int:
    """Move NEW opportunities past their expiry to EXPIRED. Returns the count."""
    cur = conn.execute(
        """UPDATE opportunities SET status = 'EXPIRED', updated_at = ?
           WHERE status = 'NEW' AND expires_at < ?""",
        (_dt_str(now), _dt_str(now)),
    )
    conn.commit()
    return cur.rowcount


def query_opportunities(
    conn: sqlite3.Connection,
    account_id: int | None = None,
    status: OpportunityStatus | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Opportunity], int]:
    """Filtered page of opportunities (score desc, newest first) plus total."""
    clauses = []
    params: list[Any] = []
    if account_id is not None:
        clauses.append("account_id = ?")
        params.append(account_id)
    if status is not None:
        clauses.append("status = ?")
        params.append(status.value)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    rows = conn.execute(
        f"""SELECT * FROM opportunities {where}
            ORDER BY score DESC, created_at DESC, id DESC
            LIMIT ? OFFSET ?""",
        (*params, limit, offset),
    ).fetchall()
    total = conn.execute(
        f"SELECT COUNT(*) FROM opportunities {where}", params
    ).fetchone()[0]
    return [_row_to_opportunity(row) for row in rows], total


# --- Draft helpers ---


def insert_draft(conn: sqlite3.Connection, draft: Draft) -> int:
    cur = conn.execute(
        """INSERT INTO drafts
           (opportunity_id, account_id, parent_draft_id, regeneration_index, title,
            outline, content, risk_level, risk_score, status, quality_report, model,
            template_version, metadata, created_at)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            draft.opportunity_id,
            draft.account_id,
            draft.parent_draft_id,
            draft.regeneration_index,
            draft.title,
            json.dumps(draft.outline, ensure_ascii=False),
            draft.content,
            draft.risk_level.value,
            draft.risk_score,
            draft.status.value,
            json.dumps(draft.quality_report.to_dict(), ensure_ascii=False)
            if draft.quality_report
            else None,
            draft.model,
            draft.template_version,
            json.dumps(draft.metadata, ensure_ascii=False),
            _dt_str(draft.created_at),
        ),
    )
    conn.commit()
    return cur.lastrowid


def get_draft(conn: sqlite3.Connection, draft_id: int) -> Draft | None:
    row = conn.execute("SELECT * FROM drafts WHERE id = ?", (draft_id,)).fetchone()
    if row is None:
        return None
    quality = _json_load(row["quality_report"], None)
    return Draft(
        id=row["id"],
        opportunity_id=row["opportunity_id"],
        account_id=row["account_id"],
        parent_draft_id=row["parent_draft_id"],
        regeneration_index=row["regeneration_index"],
        title=row["title"],
        outline=_json_load(row["outline"], []),
        content=row["content"],
        risk_level=RiskLevel(row["risk_level"]),
        risk_score=row["risk_score"],
        status=DraftStatus(row["status"]),
        quality_report=QualityReport.from_dict(quality) if quality else None,
        model=row["model"],
        template_version=row["template_version"],
        metadata=_json_load(row["metadata"], {}),
        created_at=_parse_dt(row["created_at"]),
    )


def update_draft_status(conn: sqlite3.Connection, draft_id: int, status: DraftStatus) -> None:
    conn.execute("UPDATE drafts SET status = ? WHERE id = ?", (status.value, draft_id))
    conn.commit()


def update_draft_metadata(
    conn: sqlite3.Connection, draft_id: int, metadata: dict[str, Any],
) -> None:
    conn.execute(
        "UPDATE drafts SET metadata = ? WHERE id = ?",
        (json.dumps(metadata, ensure_ascii=False), draft_id),
    )
    conn.commit()


# --- Publish job helpers ---


def insert_publish_job(conn: sqlite3.Connection, job: PublishJob) -> int:
    cur = conn.execute(
        """INSERT INTO publish_jobs
           (draft_id, provider, status, delivery_stage, attempt, request_payload, queued_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (
            job.draft_id,
            job.provider,
            job.status.value,
            job.delivery_stage.value,
            job.attempt,
            json.dumps(job.request_payload, ensure_ascii=False),
            _dt_str(job.queued_at),
        ),
    )
    conn.commit()
    return cur.lastrowid


def get_publish_job(conn: sqlite3.Connection, job_id: int) -> PublishJob | None:
    row = conn.execute("SELECT * FROM publish_jobs WHERE id = ?", (job_id,)).fetchone()
    if row is None:
        return None
    return PublishJob(
        id=row["id"],
        draft_id=row["draft_id"],
        provider=row["provider"],
        status=PublishJobStatus(row["status"]),
        delivery_stage=DeliveryStage(row["delivery_stage"]),
        attempt=row["attempt"],
        external_id=row["external_id"],
        error_message=row["error_message"],
        request_payload=_json_load(row["request_payload"], {}),
        response_payload=_json_load(row["response_payload"], None),
        queued_at=_parse_dt(row["queued_at"]),
        started_at=_parse_dt(row["started_at"]),
        finished_at=_parse_dt(row["finished_at"]),
    )


def save_publish_job(conn: sqlite3.Connection, job: PublishJob) -> None:
    """Persist every mutable field of a job."""
    conn.execute(
        """UPDATE publish_jobs SET
           status = ?, delivery_stage = ?, attempt = ?, external_id = ?,
           error_message = ?, response_payload = ?, started_at = ?, finished_at = ?
           WHERE id = ?""",
        (
            job.status.value,
            job.delivery_stage.value,
            job.attempt,
            job.external_id,
            job.error_message,
            json.dumps(job.response_payload, ensure_ascii=False)
            if job.response_payload is not None
            else None,
            _dt_str(job.started_at),
            _dt_str(job.finished_at),
            job.id,
        ),
    )
    conn.commit()


def list_publish_jobs(conn: sqlite3.Connection, draft_id: int) -> list[PublishJob]:
    rows = conn.execute(
        "SELECT id FROM publish_jobs WHERE draft_id = ? ORDER BY id", (draft_id,)
    ).fetchall()
    return [get_publish_job(conn, row["id"]) for row in rows]


# --- Performance metric helpers ---


def insert_performance_metric(conn: sqlite3.Connection, metric: PerformanceMetric) -> int:
    cur = conn.execute(
        """INSERT INTO performance_metrics
           (account_id, opportunity_id, draft_id, publish_job_id, collected_at,
            impressions, reads, likes, shares, comments, bookmarks, ctr)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            metric.account_id,
            metric.opportunity_id,
            metric.draft_id,
            metric.publish_job_id,
            _dt_str(metric.collected_at),
            metric.impressions,
            metric.reads,
            metric.likes,
            metric.shares,
            metric.comments,
            metric.bookmarks,
            metric.ctr,
        ),
    )
    conn.commit()
    return cur.lastrowid


def _metric_filter(
    account_id: int | None, since: datetime | None, until: datetime | None,
) -> tuple[str, list[Any]]:
    clauses = []
    params: list[Any] = []
    if account_id is not None:
        clauses.append("account_id = ?")
        params.append(account_id)
    if since is not None:
        clauses.append("collected_at >= ?")
        params.append(_dt_str(since))
    if until is not None:
        clauses.append("collected_at <= ?")
        params.append(_dt_str(until))
    return (f"WHERE {' AND '.join(clauses)}" if clauses else ""), params


def query_performance_metrics(
    conn: sqlite3.Connection,
    account_id: int | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[PerformanceMetric], int, dict[str, float]]:
    """Page of metrics (newest first), total count, and aggregate totals."""
    where, params = _metric_filter(account_id, since, until)
    rows = conn.execute(
        f"""SELECT * FROM performance_metrics {where}
            ORDER BY collected_at DESC, id DESC LIMIT ? OFFSET ?""",
        (*params, limit, offset),
    ).fetchall()
    agg = conn.execute(
        f"""SELECT COUNT(*) AS total,
                   COALESCE(SUM(impressions), 0) AS impressions,
                   COALESCE(SUM(reads), 0) AS reads,
                   COALESCE(SUM(likes), 0) AS likes,
                   COALESCE(SUM(shares), 0) AS shares,
                   COALESCE(SUM(comments), 0) AS comments,
                   COALESCE(SUM(bookmarks), 0) AS bookmarks,
                   COALESCE(AVG(ctr), 0) AS ctr
            FROM performance_metrics {where}""",
        params,
    ).fetchone()
    metrics = [
        PerformanceMetric(
            id=row["id"],
            account_id=row["account_id"],
            opportunity_id=row["opportunity_id"],
            draft_id=row["draft_id"],
            publish_job_id=row["publish_job_id"],
            collected_at=_parse_dt(row["collected_at"]),
            impressions=row["impressions"],
            reads=row["reads"],
            likes=row["likes"],
            shares=row["shares"],
            comments=row["comments"],
            bookmarks=row["bookmarks"],
            ctr=row["ctr"],
        )
        for row in rows
    ]
    summary = {
        key: agg[key]
        for key in ("impressions", "reads", "likes", "shares", "comments", "bookmarks", "ctr")
    }
    return metrics, agg["total"], summary


# --- SyncRun helpers ---


def insert_run(conn: sqlite3.Connection, run: SyncRun) -> int:
    cur = conn.execute(
        """INSERT INTO sync_runs (started_at, status, window_start, window_end)
           VALUES (?, ?, ?, ?)""",
        (
            _dt_str(run.started_at),
            run.status,
            _dt_str(run.window_start),
            _dt_str(run.window_end),
        ),
    )
    conn.commit()
    return cur.lastrowid


def finish_run(conn: sqlite3.Connection, run_id: int, run: SyncRun) -> None:
    conn.execute(
        """UPDATE sync_runs SET
           finished_at = ?, status = ?, source_count = ?, clusters_upserted = ?,
           opportunities_upserted = ?, skipped_accounts = ?, failed_clusters = ?,
           failed_opportunities = ?
           WHERE id = ?""",
        (
            _dt_str(run.finished_at),
            run.status,
            run.source_count,
            run.clusters_upserted,
            run.opportunities_upserted,
            run.skipped_accounts,
            run.failed_clusters,
            run.failed_opportunities,
            run_id,
        ),
    )
    conn.commit()


def get_recent_runs(conn: sqlite3.Connection, limit: int = 10) -> list[dict]:
    """Fetch recent sync runs for stats display."""
    rows = conn.execute(
        "SELECT * FROM sync_runs ORDER BY started_at DESC, id DESC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(row) for row in rows]
