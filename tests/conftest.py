"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from trendpress.config import load_config
from trendpress.db import (
    get_connection,
    init_db,
    insert_account,
    insert_draft,
    insert_opportunity,
    upsert_topic_cluster,
)
from trendpress.models import (
    Account,
    Category,
    Draft,
    DraftStatus,
    Opportunity,
    OpportunityStatus,
    TopicCluster,
    TopicEvidence,
    TrendSnapshot,
)

NOW = datetime(2026, 10, 18, 12, 0, 0)


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing (no real API keys, dry-run publishing)."""
    config_text = """
llm:
  providers:
    remote:
      type: "openai_compatible"
      api_key: ""
      base_url: "http://localhost:9999/v1"
      default_model: "test-model"
  tasks:
    draft: { provider: "remote" }

pipeline:
  window_hours: 2
  min_opportunity_score: 45
  snapshot_source: "database"

screening:
  risk_policy: "balanced"
  quality_threshold: 85

publish:
  provider: "wechat"
  wechat:
    dry_run: true
    mode: "draftbox"

database:
  path: "DB_PATH_PLACEHOLDER"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("DB_PATH_PLACEHOLDER", db_path))
    return load_config(str(cfg_path))


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def sample_snapshots():
    """Two platforms carrying the same story, plus one unrelated topic."""
    return [
        TrendSnapshot(
            platform="weibo",
            title="华为发布新款折叠屏手机",
            rank=1,
            heat_value=800000,
            captured_at=NOW - timedelta(minutes=10),
            url="https://weibo.example.com/1",
        ),
        TrendSnapshot(
            platform="douyin",
            title="华为发布新款折叠屏手机！",
            rank=3,
            heat_value=500000,
            captured_at=NOW - timedelta(minutes=40),
        ),
        TrendSnapshot(
            platform="weibo",
            title="城市马拉松报名开启",
            rank=12,
            heat_value=90000,
            captured_at=NOW - timedelta(minutes=30),
        ),
    ]


@pytest.fixture
def make_account(db_conn):
    """Insert an account with one category holding ``keywords``."""

    def _make(name="科技观察", keywords=None, is_active=True):
        categories = [Category(name=f"{name}-赛道", keywords=list(keywords))] \
            if keywords is not None else []
        return insert_account(
            db_conn, Account(name=name, categories=categories, is_active=is_active),
        )

    return _make


@pytest.fixture
def make_cluster(db_conn):
    """Insert a topic cluster, returning the stored object with its id."""

    def _make(title="华为发布新款折叠屏手机", **overrides):
        fields = dict(
            fingerprint=f"fp-{title}",
            title=title,
            keywords=["华为", "折叠屏"],
            evidence=[
                TopicEvidence(
                    platform="weibo", title=title, rank=1,
                    captured_at=NOW - timedelta(minutes=10),
                ),
            ],
            resonance_count=1,
            growth_score=55.0,
            momentum_score=50.0,
            persistence_score=0.0,
            snapshot_count=1,
            latest_snapshot_at=NOW,
            window_start=NOW - timedelta(hours=2),
            window_end=NOW,
        )
        fields.update(overrides)
        cluster = TopicCluster(**fields)
        cluster.id = upsert_topic_cluster(db_conn, cluster)
        return cluster

    return _make


@pytest.fixture
def make_opportunity(db_conn):
    def _make(cluster_id, account_id, score=70, status=OpportunityStatus.NEW,
              expires_at=None):
        return insert_opportunity(db_conn, Opportunity(
            topic_cluster_id=cluster_id,
            account_id=account_id,
            score=score,
            status=status,
            reasons=["hot:55.0"],
            expires_at=expires_at or NOW + timedelta(hours=6),
            created_at=NOW,
            updated_at=NOW,
        ))

    return _make


@pytest.fixture
def seeded_opportunity(make_account, make_cluster, make_opportunity):
    """(opportunity_id, account_id, cluster) for a fresh NEW opportunity."""
    account_id = make_account(keywords=[])
    cluster = make_cluster()
    opp_id = make_opportunity(cluster.id, account_id)
    return opp_id, account_id, cluster


@pytest.fixture
def make_draft(db_conn, seeded_opportunity):
    """Insert a draft on the seeded opportunity with the given status."""
    opp_id, account_id, _ = seeded_opportunity

    def _make(status=DraftStatus.READY, title="折叠屏手机到底值不值得买"):
        return insert_draft(db_conn, Draft(
            opportunity_id=opp_id,
            account_id=account_id,
            title=title,
            content="正文内容",
            outline=["背景", "分析"],
            status=status,
        ))

    return _make
