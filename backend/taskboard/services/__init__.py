"""Domain services."""

from taskboard.services.auth import AuthResult, AuthService
from taskboard.services.notification import NotificationDraft, NotificationService
from taskboard.services.project import ProjectService
from taskboard.services.realtime import ConnectionManager, GroupKey, RealtimeNotifier
from taskboard.services.work_item import WorkItemService

__all__ = [
    "AuthResult",
    "AuthService",
    "ConnectionManager",
    "GroupKey",
    "NotificationDraft",
    "NotificationService",
    "ProjectService",
    "RealtimeNotifier",
    "WorkItemService",
]
