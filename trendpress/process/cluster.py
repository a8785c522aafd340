"""Group trend snapshots into topic clusters by normalized-title fingerprint."""

from __future__ import annotations

import hashlib
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from trendpress.config import get_keyword_config
from trendpress.models import TopicCluster, TopicEvidence, TrendSnapshot
from trendpress.process.scoring import (
    blend_growth,
    score_cluster_growth,
    score_cluster_momentum,
    score_persistence,
)

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 40
MAX_EVIDENCE = 12
MAX_CLUSTER_KEYWORDS = 10

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lowercase, turn punctuation/symbols into spaces, collapse whitespace."""
    replaced = "".join(
        ch if ch.isalnum() or ch.isspace() else " " for ch in text.lower()
    )
    return _WHITESPACE.sub(" ", replaced).strip()


def create_fingerprint(title: str) -> str:
    """Stable identity for a title; differently punctuated titles collide."""
    compact = _WHITESPACE.sub("", normalize_text(title))
    if not compact:
        # Never equal to a hex digest, so an empty title can't join a cluster.
        return f"topic-{uuid.uuid1().hex}"
    return hashlib.sha256(compact.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def extract_keywords(
    title: str,
    min_token_length: int = 2,
    max_bigram_positions: int = 8,
    max_per_title: int = 6,
) -> list[str]:
    """Space-separated tokens, or character bigrams for unsegmented text."""
    normalized = normalize_text(title)
    tokens = [t for t in normalized.split(" ") if len(t) >= min_token_length]
    if tokens:
        return list(dict.fromkeys(tokens))[:max_per_title]

    compact = _WHITESPACE.sub("", normalized)
    bigrams = [
        compact[i:i + 2]
        for i in range(min(len(compact) - 1, max_bigram_positions))
    ]
    return list(dict.fromkeys(bigrams))[:max_per_title]


@dataclass
class _Group:
    title: str
    best_rank: int
    latest_snapshot_at: datetime
    keywords: dict[str, None] = field(default_factory=dict)
    platforms: set[str] = field(default_factory=set)
    items: list[TrendSnapshot] = field(default_factory=list)


class ClusterProcessor:
    """Turn a window of snapshots into scored, unsaved cluster candidates."""

    def __init__(self, config: dict):
        self.config = config
        self.keyword_cfg = get_keyword_config(config)

    def _keywords(self, title: str) -> list[str]:
        return extract_keywords(title, **self.keyword_cfg)

    def build_clusters(
        self,
        snapshots: list[TrendSnapshot],
        window_start: datetime,
        window_end: datetime,
    ) -> list[TopicCluster]:
        """Group snapshots (expected newest first) and score each group."""
        groups: dict[str, _Group] = {}
        for snapshot in snapshots:
            fingerprint = create_fingerprint(snapshot.title)
            group = groups.get(fingerprint)
            if group is None:
                group = _Group(
                    title=snapshot.title,
                    best_rank=snapshot.rank,
                    latest_snapshot_at=snapshot.captured_at,
                )
                groups[fingerprint] = group
            elif snapshot.rank < group.best_rank:
                group.title = snapshot.title
                group.best_rank = snapshot.rank

            for keyword in self._keywords(snapshot.title):
                group.keywords.setdefault(keyword, None)
            group.platforms.add(snapshot.platform)
            group.items.append(snapshot)
            if snapshot.captured_at > group.latest_snapshot_at:
                group.latest_snapshot_at = snapshot.captured_at

        clusters = [
            self._to_cluster(fingerprint, group, window_start, window_end)
            for fingerprint, group in groups.items()
        ]
        logger.info(
            "Clustered %d snapshots into %d topics", len(snapshots), len(clusters),
        )
        return clusters

    def _to_cluster(
        self,
        fingerprint: str,
        group: _Group,
        window_start: datetime,
        window_end: datetime,
    ) -> TopicCluster:
        growth = score_cluster_growth(group.items)
        momentum = score_cluster_momentum(group.items)
        resonance = len(group.platforms)
        return TopicCluster(
            fingerprint=fingerprint,
            title=group.title,
            keywords=list(group.keywords)[:MAX_CLUSTER_KEYWORDS],
            evidence=[TopicEvidence.from_snapshot(s) for s in group.items[:MAX_EVIDENCE]],
            resonance_count=resonance,
            growth_score=blend_growth(growth, momentum),
            momentum_score=momentum,
            persistence_score=score_persistence(len(group.items), resonance),
            snapshot_count=len(group.items),
            latest_snapshot_at=group.latest_snapshot_at,
            window_start=window_start,
            window_end=window_end,
        )
