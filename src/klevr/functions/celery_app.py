from __future__ import annotations

from celery import Celery

from klevr.config import get_settings

settings = get_settings()

celery_app = Celery(
    "klevr",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["klevr.functions.registry"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=15 * 60,
    task_soft_time_limit=12 * 60,
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=False,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=500,
)
