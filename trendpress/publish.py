"""Publish job state machine.

    QUEUED -> RUNNING -> SUCCESS
                      -> FAILED  -> (retry) QUEUED
    QUEUED -> REVIEW             -> (retry, allow_review) QUEUED
    QUEUED/FAILED/REVIEW -> CANCELED   (external only, terminal)

A job never runs its transport while the draft is BLOCKED or in REVIEW.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from trendpress.config import get_db_path
from trendpress.db import (
    get_connection,
    get_draft,
    get_publish_job,
    insert_performance_metric,
    insert_publish_job,
    save_publish_job,
    update_draft_status,
)
from trendpress.deliver import get_publisher
from trendpress.deliver.base import BasePublisher
from trendpress.errors import IllegalTransitionError, NotFoundError, PublishError
from trendpress.models import (
    DeliveryStage,
    DraftStatus,
    PerformanceMetric,
    PublishJob,
    PublishJobResult,
    PublishJobStatus,
)

logger = logging.getLogger(__name__)

MSG_BLOCKED = "Draft is blocked by risk policy."
MSG_REVIEW = "Draft requires manual review before publish."
CANCELABLE = {PublishJobStatus.QUEUED, PublishJobStatus.FAILED, PublishJobStatus.REVIEW}


def _load_job(conn: sqlite3.Connection, job_id: int) -> PublishJob:
    job = get_publish_job(conn, job_id)
    if job is None:
        raise NotFoundError("publish job", job_id)
    return job


async def _run_job(
    conn: sqlite3.Connection, job: PublishJob, publisher: BasePublisher,
) -> PublishJob:
    if job.status in (PublishJobStatus.SUCCESS, PublishJobStatus.CANCELED):
        return job

    draft = get_draft(conn, job.draft_id)
    if draft is None:
        raise NotFoundError("draft", job.draft_id)

    if draft.status is DraftStatus.BLOCKED:
        job.status = PublishJobStatus.REVIEW
        job.error_message = MSG_BLOCKED
        job.finished_at = datetime.utcnow()
        save_publish_job(conn, job)
        logger.warning("Publish job #%d held: draft #%d is blocked", job.id, draft.id)
        return job

    if draft.status is DraftStatus.REVIEW:
        job.status = PublishJobStatus.REVIEW
        job.error_message = MSG_REVIEW
        save_publish_job(conn, job)
        logger.info("Publish job #%d held: draft #%d needs review", job.id, draft.id)
        return job

    job.attempt += 1
    job.status = PublishJobStatus.RUNNING
    job.started_at = datetime.utcnow()
    job.error_message = None
    save_publish_job(conn, job)

    try:
        outcome = await publisher.publish(draft.title, draft.content, draft.account_id)
    except PublishError as exc:
        logger.warning("Publish job #%d attempt %d failed: %s", job.id, job.attempt, exc)
        return _fail(conn, job, str(exc))
    except Exception as exc:
        logger.exception("Publish job #%d attempt %d crashed", job.id, job.attempt)
        return _fail(conn, job, str(exc) or "Unknown publish failure.")

    job.status = PublishJobStatus.SUCCESS
    job.delivery_stage = outcome.delivery_stage
    job.external_id = outcome.external_id
    job.response_payload = outcome.response
    job.finished_at = datetime.utcnow()
    save_publish_job(conn, job)

    published = outcome.delivery_stage is DeliveryStage.PUBLISHED
    update_draft_status(
        conn, draft.id, DraftStatus.PUBLISHED if published else DraftStatus.SUBMITTED,
    )
    if published:
        insert_performance_metric(conn, PerformanceMetric(
            account_id=draft.account_id,
            opportunity_id=draft.opportunity_id,
            draft_id=draft.id,
            publish_job_id=job.id,
        ))

    logger.info(
        "Publish job #%d succeeded on attempt %d (%s, %s)",
        job.id, job.attempt, job.delivery_stage.value, job.external_id,
    )
    return job


def _fail(conn: sqlite3.Connection, job: PublishJob, message: str) -> PublishJob:
    job.status = PublishJobStatus.FAILED
    job.error_message = message
    job.finished_at = datetime.utcnow()
    save_publish_job(conn, job)
    return job


async def create_publish_job(
    config: dict, draft_id: int, auto_run: bool = True,
) -> PublishJobResult:
    """Queue a publish job for a draft and, by default, run it immediately."""
    publisher = get_publisher(config)
    conn = get_connection(get_db_path(config))
    try:
        draft = get_draft(conn, draft_id)
        if draft is None:
            raise NotFoundError("draft", draft_id)
        if draft.status in (DraftStatus.SUBMITTED, DraftStatus.PUBLISHED):
            raise IllegalTransitionError(
                "Draft is already submitted/published and cannot be enqueued again."
            )

        job = PublishJob(
            draft_id=draft.id,
            provider=publisher.name,
            request_payload={"title": draft.title, "content": draft.content},
        )
        job.id = insert_publish_job(conn, job)
        logger.info("Queued publish job #%d for draft #%d", job.id, draft.id)

        if auto_run:
            job = await _run_job(conn, job, publisher)
    finally:
        conn.close()
    return PublishJobResult.from_job(job)


async def process_publish_job(config: dict, job_id: int) -> PublishJobResult:
    publisher = get_publisher(config)
    conn = get_connection(get_db_path(config))
    try:
        job = await _run_job(conn, _load_job(conn, job_id), publisher)
    finally:
        conn.close()
    return PublishJobResult.from_job(job)


async def retry_publish_job(
    config: dict, job_id: int, allow_review: bool = False,
) -> PublishJobResult:
    """Re-queue and re-run a job that has not succeeded.

    With ``allow_review`` a draft held in REVIEW is first approved (set to
    READY); a BLOCKED draft can never be retried.
    """
    publisher = get_publisher(config)
    conn = get_connection(get_db_path(config))
    try:
        job = _load_job(conn, job_id)
        if job.status is PublishJobStatus.SUCCESS:
            raise IllegalTransitionError("Publish job is already successful.")
        if job.status is PublishJobStatus.CANCELED:
            raise IllegalTransitionError("Canceled publish job cannot be retried.")

        draft = get_draft(conn, job.draft_id)
        if draft is None:
            raise NotFoundError("draft", job.draft_id)
        if draft.status is DraftStatus.BLOCKED:
            raise IllegalTransitionError("Blocked draft cannot be retried.")
        if draft.status is DraftStatus.REVIEW:
            if not allow_review:
                raise IllegalTransitionError(
                    "Draft is in review status. Pass allow_review=True to force publish retry."
                )
            update_draft_status(conn, draft.id, DraftStatus.READY)
            logger.info("Draft #%d approved for publish by retry", draft.id)

        job.status = PublishJobStatus.QUEUED
        job.error_message = None
        job.finished_at = None
        save_publish_job(conn, job)

        job = await _run_job(conn, job, publisher)
    finally:
        conn.close()
    return PublishJobResult.from_job(job)


def cancel_publish_job(config: dict, job_id: int) -> PublishJobResult:
    conn = get_connection(get_db_path(config))
    try:
        job = _load_job(conn, job_id)
        if job.status not in CANCELABLE:
            raise IllegalTransitionError(
                f"Publish job in status {job.status.value} cannot be canceled."
            )
        job.status = PublishJobStatus.CANCELED
        job.finished_at = datetime.utcnow()
        save_publish_job(conn, job)
    finally:
        conn.close()
    logger.info("Canceled publish job #%d", job_id)
    return PublishJobResult.from_job(job)
