"""Celery task that runs the inbound message pipeline for one webhook job.

Job body: ``{"integration_id": str, "platform": str, "raw_payload": dict}``.
Retry bookkeeping stays in Celery: delivery and persistence errors are
retried with exponential backoff up to ``job_max_attempts`` total attempts,
after which the job is pushed to the dead-letter list.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from functools import lru_cache
from typing import Any

import redis
from celery import Task
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from botgate.config import get_settings
from botgate.database import get_sync_session_factory, init_sync_db
from botgate.errors import DeliveryError
from botgate.redis import init_sync_redis
from botgate.services.dead_letters import build_entry, push_dead_letter
from botgate.services.pipeline import build_pipeline
from botgate.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

settings = get_settings()


@lru_cache
def _session_factory() -> sessionmaker[Session]:
    # Built lazily so each forked worker process gets its own pool
    engine = init_sync_db(settings.worker_database_url, pool_size=settings.worker_concurrency)
    return get_sync_session_factory(engine)


@lru_cache
def _redis() -> redis.Redis:
    return init_sync_redis(settings.redis_url)


def make_job(integration_id: str, platform: str, raw_payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "integration_id": integration_id,
        "platform": platform,
        "raw_payload": raw_payload,
    }


class InboundTask(Task):
    """Task base that logs retries and dead-letters final failures."""

    def on_retry(self, exc, task_id, args, kwargs, einfo) -> None:
        job = _job_from(args, kwargs)
        logger.warning(
            "Job %s for integration %s failed (attempt %d/%d), retrying: %s",
            task_id,
            job.get("integration_id"),
            self.request.retries + 1,
            self.max_retries + 1,
            exc,
        )

    def on_failure(self, exc, task_id, args, kwargs, einfo) -> None:
        job = _job_from(args, kwargs)
        attempts = self.request.retries + 1
        logger.error(
            "Job %s for integration %s failed after %d attempt(s): %s",
            task_id,
            job.get("integration_id"),
            attempts,
            exc,
        )
        entry = build_entry(job, exc, attempts, task_id=task_id)
        try:
            push_dead_letter(
                _redis(),
                settings.dead_letter_key,
                entry,
                settings.dead_letter_max_entries,
            )
        except redis.RedisError:
            logger.exception("Could not dead-letter job %s: %s", task_id, entry)


def _job_from(args: Any, kwargs: Any) -> dict[str, Any]:
    if args:
        return args[0] if isinstance(args[0], dict) else {}
    job = (kwargs or {}).get("job")
    return job if isinstance(job, dict) else {}


@celery_app.task(
    bind=True,
    base=InboundTask,
    name="botgate.process_inbound_message",
    autoretry_for=(DeliveryError, SQLAlchemyError),
    max_retries=settings.job_max_attempts - 1,
    retry_backoff=True,
    retry_backoff_max=settings.job_retry_backoff_max,
    retry_jitter=True,
    acks_late=True,
    ignore_result=True,
)
def process_inbound_message(self, job: dict) -> dict:
    """Decode one webhook payload and answer every actionable update.

    Args:
        job: Queue envelope built by ``make_job``.

    Returns:
        The ``JobOutcome`` as a dict (discarded; ``ignore_result`` is set).
    """
    with _session_factory()() as db:
        outcome = build_pipeline(db, settings).process_job(job)

    logger.info(
        "Job %s for integration %s done: updates=%d replies=%d answered_before=%d dropped=%s",
        self.request.id,
        outcome.integration_id,
        outcome.updates_seen,
        outcome.replies_sent,
        outcome.already_answered,
        outcome.dropped,
    )
    return asdict(outcome)


def enqueue_inbound(integration_id: str, platform: str, raw_payload: dict[str, Any]) -> str:
    """Publish a job to the broker. Blocking; returns the Celery task id."""
    result = process_inbound_message.delay(make_job(integration_id, platform, raw_payload))
    return result.id
