"""Core data models for the trendpress pipeline."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class OpportunityStatus(str, Enum):
    NEW = "NEW"
    SELECTED = "SELECTED"
    EXPIRED = "EXPIRED"
    DISCARDED = "DISCARDED"


class DraftStatus(str, Enum):
    DRAFT = "DRAFT"
    REVIEW = "REVIEW"
    BLOCKED = "BLOCKED"
    READY = "READY"
    SUBMITTED = "SUBMITTED"
    PUBLISHED = "PUBLISHED"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskPolicy(str, Enum):
    BALANCED = "balanced"
    STRICT = "strict"
    GROWTH = "growth"


class PublishJobStatus(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    REVIEW = "REVIEW"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    CANCELED = "CANCELED"


class DeliveryStage(str, Enum):
    DRAFTBOX = "draftbox"
    PUBLISHED = "published"


@dataclass
class TrendSnapshot:
    """One row of a platform's trending list at a point in time."""

    platform: str
    title: str
    rank: int
    captured_at: datetime
    url: str | None = None
    heat_value: float | None = None
    id: int | None = None


@dataclass
class TopicEvidence:
    """A snapshot kept on a cluster as supporting evidence."""

    platform: str
    title: str
    rank: int
    captured_at: datetime
    url: str | None = None
    heat_value: float | None = None

    @classmethod
    def from_snapshot(cls, snapshot: TrendSnapshot) -> TopicEvidence:
        return cls(
            platform=snapshot.platform,
            title=snapshot.title,
            rank=snapshot.rank,
            captured_at=snapshot.captured_at,
            url=snapshot.url or None,
            heat_value=snapshot.heat_value,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["captured_at"] = self.captured_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TopicEvidence:
        return cls(
            platform=data["platform"],
            title=data["title"],
            rank=int(data.get("rank", 0)),
            captured_at=datetime.fromisoformat(data["captured_at"]),
            url=data.get("url"),
            heat_value=data.get("heat_value"),
        )


@dataclass
class TopicCluster:
    """Snapshots from one window that share a title fingerprint."""

    fingerprint: str
    title: str
    latest_snapshot_at: datetime
    window_start: datetime
    window_end: datetime
    keywords: list[str] = field(default_factory=list)
    evidence: list[TopicEvidence] = field(default_factory=list)
    resonance_count: int = 0
    growth_score: float = 0.0
    momentum_score: float = 50.0
    persistence_score: float = 0.0
    snapshot_count: int = 0
    id: int | None = None


@dataclass
class Category:
    name: str
    keywords: list[str] = field(default_factory=list)


@dataclass
class Account:
    """A publishing account and the categories it writes about."""

    name: str
    categories: list[Category] = field(default_factory=list)
    platform: str = "weixin"
    is_active: bool = True
    id: int | None = None

    def keywords(self) -> list[str]:
        """Lower-cased, de-duplicated union of category keywords."""
        seen: dict[str, None] = {}
        for category in self.categories:
            for keyword in category.keywords:
                if not isinstance(keyword, str):
                    continue
                token = keyword.strip().lower()
                if token:
                    seen.setdefault(token, None)
        return list(seen)


@dataclass
class AccountProfile:
    """Writing brief for an account: audience, tone and growth target."""

    audience: str
    tone: str
    growth_goal: str
    pain_points: list[str] = field(default_factory=list)
    content_promise: str | None = None
    forbidden_topics: list[str] = field(default_factory=list)
    cta_style: str | None = None
    preferred_length: int = 1800

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Opportunity:
    """A scored pairing of one topic cluster with one account."""

    topic_cluster_id: int
    account_id: int
    score: int
    expires_at: datetime
    reasons: list[str] = field(default_factory=list)
    status: OpportunityStatus = OpportunityStatus.NEW
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
    id: int | None = None


@dataclass
class QualityReport:
    score: int
    relevance: int
    evidence: int
    readability: int
    growth_potential: int
    account_fit: int
    length_score: int
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QualityReport:
        return cls(
            score=int(data.get("score", 0)),
            relevance=int(data.get("relevance", 0)),
            evidence=int(data.get("evidence", 0)),
            readability=int(data.get("readability", 0)),
            growth_potential=int(data.get("growth_potential", 0)),
            account_fit=int(data.get("account_fit", 0)),
            length_score=int(data.get("length_score", 0)),
            warnings=[w for w in data.get("warnings", []) if isinstance(w, str)],
        )


@dataclass
class ContentSection:
    title: str
    goal: str


@dataclass
class ContentPack:
    """Editorial plan attached to a draft: angle, hook, sections and CTA."""

    core_angle: str
    target_reader: str
    hook: str
    sections: list[ContentSection] = field(default_factory=list)
    cta: str = ""
    followup_ideas: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentPack:
        sections = [
            ContentSection(title=s.get("title", ""), goal=s.get("goal", ""))
            for s in data.get("sections", [])
            if isinstance(s, dict) and s.get("title")
        ]
        return cls(
            core_angle=data.get("core_angle", ""),
            target_reader=data.get("target_reader", ""),
            hook=data.get("hook", ""),
            sections=sections,
            cta=data.get("cta", ""),
            followup_ideas=list(data.get("followup_ideas", [])),
        )


@dataclass
class ImagePlaceholder:
    slot: int
    purpose: str
    prompt: str
    placement_anchor: str
    alt_text: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class GenerationTrace:
    topic_score: int
    account_fit: int
    model_score: int
    fusion_score: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Draft:
    """A generated article. Regeneration creates a child, never edits this."""

    opportunity_id: int
    account_id: int
    title: str
    content: str
    outline: list[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.LOW
    risk_score: float = 0.0
    status: DraftStatus = DraftStatus.DRAFT
    quality_report: QualityReport | None = None
    parent_draft_id: int | None = None
    regeneration_index: int = 0
    model: str = ""
    template_version: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.utcnow)
    id: int | None = None


@dataclass
class PublishJob:
    """One publish attempt lineage for a draft."""

    draft_id: int
    provider: str
    status: PublishJobStatus = PublishJobStatus.QUEUED
    delivery_stage: DeliveryStage = DeliveryStage.DRAFTBOX
    attempt: int = 0
    external_id: str | None = None
    error_message: str | None = None
    request_payload: dict[str, Any] = field(default_factory=dict)
    response_payload: Any = None
    queued_at: datetime = field(default_factory=datetime.utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None
    id: int | None = None


@dataclass
class PerformanceMetric:
    account_id: int
    opportunity_id: int
    draft_id: int
    publish_job_id: int
    collected_at: datetime = field(default_factory=datetime.utcnow)
    impressions: int = 0
    reads: int = 0
    likes: int = 0
    shares: int = 0
    comments: int = 0
    bookmarks: int = 0
    ctr: float = 0.0
    id: int | None = None


@dataclass
class SyncRun:
    """Record of a single sync pass."""

    window_start: datetime
    window_end: datetime
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: datetime | None = None
    status: str = "running"  # running, completed, failed
    source_count: int = 0
    clusters_upserted: int = 0
    opportunities_upserted: int = 0
    skipped_accounts: int = 0
    failed_clusters: int = 0
    failed_opportunities: int = 0
    id: int | None = None


@dataclass
class SyncResult:
    clusters_upserted: int
    opportunities_upserted: int
    skipped_accounts: int
    source_count: int
    window_start: datetime
    window_end: datetime
    failed_clusters: int = 0
    failed_opportunities: int = 0


@dataclass
class DraftGenerationResult:
    draft_id: int
    title: str
    status: DraftStatus
    risk_level: RiskLevel
    risk_score: float
    model: str
    quality_report: QualityReport
    content_pack: ContentPack
    generation_trace: GenerationTrace


@dataclass
class PublishJobResult:
    id: int
    status: PublishJobStatus
    delivery_stage: DeliveryStage
    attempt: int
    external_id: str | None = None
    error_message: str | None = None

    @classmethod
    def from_job(cls, job: PublishJob) -> PublishJobResult:
        return cls(
            id=job.id,
            status=job.status,
            delivery_stage=job.delivery_stage,
            attempt=job.attempt,
            external_id=job.external_id,
            error_message=job.error_message,
        )


@dataclass
class Page:
    """One page of a listing query."""

    items: list[Any]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return 0 if self.total == 0 else math.ceil(self.total / self.page_size)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass
class ImagePlan:
    image_plan: list[ImagePlaceholder]
    status: str = "planned"
