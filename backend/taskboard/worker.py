"""Celery application and periodic schedule."""

from celery import Celery
from celery.schedules import crontab

from taskboard.config import get_settings

settings = get_settings()

celery_app = Celery(
    "taskboard",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=300,
    task_soft_time_limit=240,
    result_expires=86400,
    task_routes={"taskboard.tasks.*": {"queue": "maintenance"}},
    beat_schedule={
        "cleanup-old-notifications": {
            "task": "taskboard.tasks.cleanup_old_notifications",
            "schedule": crontab(hour=3, minute=0),
        },
        "send-deadline-reminders": {
            "task": "taskboard.tasks.send_deadline_reminders",
            "schedule": crontab(hour=8, minute=0),
        },
    },
)

celery_app.autodiscover_tasks(["taskboard"])
