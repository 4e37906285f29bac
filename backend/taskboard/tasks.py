"""Celery background tasks.

Each task opens its own database session and drives the async services
through ``asyncio.run``.
"""

import asyncio

import structlog

from taskboard.config import get_settings
from taskboard.worker import celery_app

logger = structlog.get_logger()


async def _cleanup(days_old: int) -> int:
    from taskboard.db.session import async_session_factory
    from taskboard.repositories import NotificationRepository, ProjectRepository
    from taskboard.services.notification import NotificationService

    async with async_session_factory() as db:
        service = NotificationService(NotificationRepository(db), ProjectRepository(db))
        return await service.delete_old_notifications(days_old)


async def _remind(days: int) -> int:
    from taskboard.db.session import async_session_factory
    from taskboard.repositories import (
        NotificationRepository,
        ProjectRepository,
        UserRepository,
        WorkItemLogRepository,
        WorkItemRepository,
    )
    from taskboard.services.notification import NotificationService
    from taskboard.services.work_item import WorkItemService

    async with async_session_factory() as db:
        # No realtime registry in the worker; reminders are delivered on next fetch
        notifications = NotificationService(NotificationRepository(db), ProjectRepository(db))
        service = WorkItemService(
            WorkItemRepository(db),
            WorkItemLogRepository(db),
            ProjectRepository(db),
            UserRepository(db),
            notifications,
        )
        return await service.send_deadline_reminders(days)


@celery_app.task(bind=True, name="taskboard.tasks.cleanup_old_notifications")
def cleanup_old_notifications(self, days_old: int | None = None) -> dict:
    """
    Delete notifications older than the retention window.

    Defaults to ``notification_retention_days`` from settings.
    """
    days = days_old or get_settings().notification_retention_days
    try:
        deleted = asyncio.run(_cleanup(days))
        logger.info("notification_cleanup_completed", days_old=days, deleted=deleted)
        return {"status": "success", "deleted": deleted}
    except Exception as e:
        logger.error("notification_cleanup_failed", days_old=days, error=str(e))
        return {"status": "error", "error": str(e)}


@celery_app.task(bind=True, name="taskboard.tasks.send_deadline_reminders")
def send_deadline_reminders(self, days: int | None = None) -> dict:
    """Notify assignees whose open work items fall due within ``days``."""
    days = days or get_settings().deadline_reminder_days
    try:
        sent = asyncio.run(_remind(days))
        return {"status": "success", "sent": sent}
    except Exception as e:
        logger.error("deadline_reminders_failed", days=days, error=str(e))
        return {"status": "error", "error": str(e)}
