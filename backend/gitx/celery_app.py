"""Celery application for on-demand indexing requested by collaborators."""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from gitx.config import settings

celery_app = Celery(
    "gitx",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["gitx.tasks.indexing"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_default_queue="indexing",
    task_routes={"gitx.tasks.indexing.*": {"queue": "indexing"}},
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    from gitx.core.logging import setup_logging

    setup_logging()
