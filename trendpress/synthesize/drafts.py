"""Generate, regenerate and plan assets for drafts."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from trendpress.config import get_db_path, get_quality_threshold, get_risk_policy
from trendpress.db import (
    get_account,
    get_connection,
    get_draft,
    get_opportunity,
    get_topic_cluster,
    insert_draft,
    update_draft_metadata,
)
from trendpress.errors import NotFoundError
from trendpress.llm import get_provider_for_task
from trendpress.llm.prompts import PreviousDraft, build_draft_prompt
from trendpress.models import (
    ContentPack,
    Draft,
    DraftGenerationResult,
    ImagePlan,
)
from trendpress.opportunity import select_opportunity
from trendpress.profiles import DEFAULT_PROFILE, get_or_create_profile, merge_profile
from trendpress.screening.quality import apply_quality_gate, build_quality_report
from trendpress.screening.risk import evaluate_draft_risk
from trendpress.synthesize.content_pack import (
    DEFAULT_STYLE,
    build_content_pack,
    build_generation_trace,
    build_image_placeholders,
)

logger = logging.getLogger(__name__)

DIVERSITY_CHECKS = ["core-angle-shift", "hook-shift", "structure-shift"]


async def generate_draft(
    config: dict,
    opportunity_id: int,
    profile_override: dict[str, Any] | None = None,
    regenerate_from_draft_id: int | None = None,
) -> DraftGenerationResult:
    """Write a screened draft for an opportunity and mark it SELECTED.

    Generation failures propagate as GenerationError before anything is
    written, so the opportunity keeps its status.
    """
    conn = get_connection(get_db_path(config))
    try:
        opp = get_opportunity(conn, opportunity_id)
        if opp is None:
            raise NotFoundError("opportunity", opportunity_id)
        account = get_account(conn, opp.account_id)
        if account is None:
            raise NotFoundError("account", opp.account_id)
        cluster = get_topic_cluster(conn, opp.topic_cluster_id)
        if cluster is None:
            raise NotFoundError("topic cluster", opp.topic_cluster_id)

        parent = None
        if regenerate_from_draft_id is not None:
            parent = get_draft(conn, regenerate_from_draft_id)
            if parent is None:
                raise NotFoundError("draft", regenerate_from_draft_id)

        profile = merge_profile(get_or_create_profile(conn, account.id), profile_override)
        prompt = build_draft_prompt(
            account_name=account.name,
            categories=[c.name for c in account.categories],
            topic_title=cluster.title,
            resonance_count=cluster.resonance_count,
            growth_score=cluster.growth_score,
            keywords=cluster.keywords,
            evidence=cluster.evidence,
            profile=profile,
            previous=PreviousDraft(parent.title, parent.outline) if parent else None,
        )

        provider = get_provider_for_task(config, "draft")
        generated = await provider.generate(
            prompt.system_prompt, prompt.user_prompt, cluster.title, account.name,
        )

        risk = evaluate_draft_risk(generated.title, generated.content, get_risk_policy(config))
        quality = build_quality_report(
            title=generated.title,
            content=generated.content,
            profile=profile,
            evidence_count=len(cluster.evidence),
            outline_count=len(generated.outline),
        )
        status = apply_quality_gate(
            risk.suggested_status, quality.score, get_quality_threshold(config),
        )
        content_pack = build_content_pack(
            cluster.title, account.name, profile, generated.outline,
        )
        trace = build_generation_trace(opp.score, profile, generated.content, quality.score)
        images = build_image_placeholders(
            generated.title, cluster.title, content_pack, style_preset=DEFAULT_STYLE,
        )

        regeneration_index = parent.regeneration_index + 1 if parent else 0
        draft = Draft(
            opportunity_id=opp.id,
            account_id=account.id,
            parent_draft_id=parent.id if parent else None,
            regeneration_index=regeneration_index,
            title=generated.title,
            outline=generated.outline,
            content=generated.content,
            risk_level=risk.risk_level,
            risk_score=risk.risk_score,
            status=status,
            quality_report=quality,
            model=generated.model,
            template_version=prompt.template_version,
            metadata={
                "risk_reasons": risk.reasons,
                "prompt_version": prompt.template_version,
                "quality_report": quality.to_dict(),
                "content_pack": content_pack.to_dict(),
                "image_placeholders": [p.to_dict() for p in images],
                "generation_trace": trace.to_dict(),
                "profile_snapshot": profile.to_dict(),
                "regeneration": {
                    "parent_draft_id": parent.id,
                    "regeneration_index": regeneration_index,
                    "diversity_checks": list(DIVERSITY_CHECKS),
                } if parent else None,
            },
            created_at=datetime.utcnow(),
        )
        draft.id = insert_draft(conn, draft)
        select_opportunity(conn, opp.id)
    finally:
        conn.close()

    logger.info(
        "Draft #%d for opportunity #%d: %s (risk %s %.2f, quality %d, model %s)",
        draft.id, opp.id, status.value, risk.risk_level.value, risk.risk_score,
        quality.score, generated.model,
    )
    return DraftGenerationResult(
        draft_id=draft.id,
        title=draft.title,
        status=draft.status,
        risk_level=draft.risk_level,
        risk_score=draft.risk_score,
        model=draft.model,
        quality_report=quality,
        content_pack=content_pack,
        generation_trace=trace,
    )


async def regenerate_draft(config: dict, draft_id: int) -> DraftGenerationResult:
    """New draft for the same opportunity, linked to ``draft_id`` as parent."""
    conn = get_connection(get_db_path(config))
    try:
        base = get_draft(conn, draft_id)
    finally:
        conn.close()
    if base is None:
        raise NotFoundError("draft", draft_id)
    return await generate_draft(
        config, base.opportunity_id, regenerate_from_draft_id=base.id,
    )


def plan_draft_assets(
    config: dict,
    draft_id: int,
    image_count: Any = None,
    style_preset: str | None = None,
) -> ImagePlan:
    """Re-plan the image slots of a draft and store them in its metadata."""
    conn = get_connection(get_db_path(config))
    try:
        draft = get_draft(conn, draft_id)
        if draft is None:
            raise NotFoundError("draft", draft_id)
        opp = get_opportunity(conn, draft.opportunity_id)
        cluster = get_topic_cluster(conn, opp.topic_cluster_id) if opp else None
        topic_title = cluster.title if cluster else draft.title

        stored_pack = draft.metadata.get("content_pack")
        if isinstance(stored_pack, dict) and stored_pack.get("sections"):
            content_pack = ContentPack.from_dict(stored_pack)
        else:
            content_pack = build_content_pack(
                topic_title, "账号", DEFAULT_PROFILE, draft.outline,
            )

        images = build_image_placeholders(
            draft.title, topic_title, content_pack,
            image_count=image_count, style_preset=style_preset,
        )
        metadata = dict(draft.metadata)
        metadata["image_placeholders"] = [p.to_dict() for p in images]
        update_draft_metadata(conn, draft.id, metadata)
    finally:
        conn.close()

    logger.info("Planned %d images for draft #%d", len(images), draft_id)
    return ImagePlan(image_plan=images)
