"""Celery application instance for inbound webhook processing.

Celery runs as a SEPARATE process from FastAPI. Workers are sync --
never use async code inside Celery tasks. The broker and result backend
both use the same Redis instance as the main application.

Worker startup: celery -A botgate.tasks.celery_app:celery_app worker --loglevel=info
"""

from celery import Celery, signals

from botgate.config import get_settings
from botgate.logging_config import setup_logging

settings = get_settings()

celery_app = Celery(
    "botgate",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["botgate.tasks.inbound"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    # A job whose worker died mid-run goes back on the queue
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
)


@signals.setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Replace Celery's logging setup with the application's."""
    setup_logging(settings.log_level, json_logs=settings.log_json)
