"""Celery application configuration."""

from celery import Celery

from mediahub.core.config import settings

celery_app = Celery(
    "mediahub",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    # Room for three tiers at the 30 minute encode ceiling plus transfers
    task_time_limit=4 * 60 * 60,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

celery_app.autodiscover_tasks(["mediahub.modules.transcoding"])
