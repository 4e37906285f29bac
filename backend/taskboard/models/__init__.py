"""SQLAlchemy models package."""

from taskboard.models.enums import (
    NotificationType,
    Priority,
    ProjectStatus,
    UserRole,
    WorkItemLogAction,
    WorkItemStatus,
)
from taskboard.models.notification import Notification
from taskboard.models.project import (
    Project,
    WorkItem,
    WorkItemComment,
    WorkItemLog,
    project_members,
)
from taskboard.models.user import User

__all__ = [
    "Notification",
    "NotificationType",
    "Priority",
    "Project",
    "ProjectStatus",
    "User",
    "UserRole",
    "WorkItem",
    "WorkItemComment",
    "WorkItemLog",
    "WorkItemLogAction",
    "WorkItemStatus",
    "project_members",
]
