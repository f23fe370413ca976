"""
Celery Worker Configuration

Background processing for CWV alert notifications and raw sample retention.
"""

from celery import Celery
from celery.schedules import crontab

from vitalsman.config import settings


celery_app = Celery(
    "vitalsman",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "vitalsman.tasks.cwv_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=600,
    task_soft_time_limit=540,

    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=100,

    result_expires=86400,  # 24 hours

    task_routes={
        "vitalsman.tasks.cwv_tasks.*": {"queue": "cwv"},
    },
    task_default_queue="default",
)

celery_app.conf.beat_schedule = {
    # Drop raw samples past the retention window daily at 3 AM
    "purge-old-cwv-samples": {
        "task": "vitalsman.tasks.cwv_tasks.purge_old_cwv_samples",
        "schedule": crontab(hour=3, minute=0),
    },
}
