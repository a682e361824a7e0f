"""Celery application for background tasks (notification delivery, publish sweep)."""
from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "inkwell",
    broker=settings.CELERY_BROKER_URL,
    include=["app.workers.notifications", "app.workers.scheduler"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    beat_schedule={
        "publish-scheduled-blogs": {
            "task": "app.workers.scheduler.publish_scheduled_blogs",
            "schedule": float(settings.PUBLISH_SWEEP_INTERVAL_SECONDS),
        },
        "reconcile-counters": {
            "task": "app.workers.scheduler.reconcile_counters",
            "schedule": float(settings.RECONCILE_INTERVAL_SECONDS),
        },
    },
)
