"""Persistence layer: one repository per entity."""

from taskboard.repositories.notification import NotificationRepository
from taskboard.repositories.project import ProjectRepository
from taskboard.repositories.user import UserRepository
from taskboard.repositories.work_item import (
    WorkItemFilter,
    WorkItemLogRepository,
    WorkItemRepository,
)

__all__ = [
    "NotificationRepository",
    "ProjectRepository",
    "UserRepository",
    "WorkItemFilter",
    "WorkItemLogRepository",
    "WorkItemRepository",
]
