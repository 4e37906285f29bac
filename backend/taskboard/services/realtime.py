"""Real-time delivery over WebSocket connection groups."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field

from taskboard.models.notification import Notification

logger = structlog.get_logger()

# Server -> client event names
RECEIVE_NOTIFICATION = "ReceiveNotification"
UNREAD_NOTIFICATION_COUNT = "UnreadNotificationCount"
NOTIFICATION_MARKED_AS_READ = "NotificationMarkedAsRead"
ALL_NOTIFICATIONS_MARKED_AS_READ = "AllNotificationsMarkedAsRead"
USER_STARTED_TYPING = "UserStartedTyping"
USER_STOPPED_TYPING = "UserStoppedTyping"

# WebSocket close code sent when the server shuts down
GOING_AWAY = 1001


class Connection(Protocol):
    """Anything we can push JSON to; starlette's WebSocket satisfies it."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class GroupKind(str, Enum):
    USER = "user"
    ROLE = "role"
    PROJECT = "project"


@dataclass(frozen=True)
class GroupKey:
    """Identifies a broadcast group, e.g. GroupKey.user(uid)."""

    kind: GroupKind
    id: str

    @classmethod
    def user(cls, user_id: UUID | str) -> "GroupKey":
        return cls(GroupKind.USER, str(user_id))

    @classmethod
    def role(cls, role: str) -> "GroupKey":
        return cls(GroupKind.ROLE, str(getattr(role, "value", role)))

    @classmethod
    def project(cls, project_id: UUID | str) -> "GroupKey":
        return cls(GroupKind.PROJECT, str(project_id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


class RealtimeNotification(BaseModel):
    """Shape of the ReceiveNotification payload."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID
    title: str
    message: str
    type: str = Field(validation_alias="notification_type")
    created_at: datetime
    action_url: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra_data")


def event(name: str, payload: Any = None) -> dict[str, Any]:
    return {"type": name, "payload": payload}


class ConnectionManager:
    """Tracks which connections belong to which groups.

    Sends never raise: a connection that fails is dropped from every group.
    """

    def __init__(self):
        self.groups: dict[GroupKey, set[Connection]] = {}
        # connection -> user id, for exclusion and bookkeeping
        self.connection_users: dict[Connection, str] = {}

    def register(self, connection: Connection, user_id: UUID | str) -> None:
        self.connection_users[connection] = str(user_id)

    def add_to_group(self, connection: Connection, key: GroupKey) -> None:
        self.groups.setdefault(key, set()).add(connection)

    def remove_from_group(self, connection: Connection, key: GroupKey) -> None:
        members = self.groups.get(key)
        if members is None:
            return
        members.discard(connection)
        if not members:
            del self.groups[key]

    def discard(self, connection: Connection) -> None:
        """Forget a connection entirely (on disconnect or send failure)."""
        for key in list(self.groups):
            self.remove_from_group(connection, key)
        self.connection_users.pop(connection, None)

    def members(self, key: GroupKey) -> set[Connection]:
        return set(self.groups.get(key, ()))

    def user_for(self, connection: Connection) -> str | None:
        return self.connection_users.get(connection)

    async def send(self, connection: Connection, message: dict[str, Any]) -> bool:
        try:
            await connection.send_json(message)
            return True
        except Exception as exc:
            logger.warning(
                "realtime_send_failed",
                user_id=self.user_for(connection),
                error=str(exc),
            )
            self.discard(connection)
            return False

    async def send_to_group(
        self,
        key: GroupKey,
        message: dict[str, Any],
        exclude: Connection | None = None,
    ) -> int:
        """Send to every connection in the group; returns how many succeeded."""
        delivered = 0
        for connection in self.members(key):
            if connection is exclude:
                continue
            if await self.send(connection, message):
                delivered += 1
        return delivered

    async def send_to_user(self, user_id: UUID | str, message: dict[str, Any]) -> int:
        return await self.send_to_group(GroupKey.user(user_id), message)

    async def send_to_role(self, role: str, message: dict[str, Any]) -> int:
        return await self.send_to_group(GroupKey.role(role), message)

    async def send_to_project(
        self,
        project_id: UUID | str,
        message: dict[str, Any],
        exclude: Connection | None = None,
    ) -> int:
        return await self.send_to_group(GroupKey.project(project_id), message, exclude=exclude)

    async def broadcast(self, message: dict[str, Any]) -> int:
        delivered = 0
        for connection in list(self.connection_users):
            if await self.send(connection, message):
                delivered += 1
        return delivered

    @property
    def connection_count(self) -> int:
        return len(self.connection_users)

    async def close_all(self, code: int = GOING_AWAY) -> int:
        """Close every registered connection; used on shutdown."""
        closed = 0
        for connection in list(self.connection_users):
            try:
                await connection.close(code=code)
                closed += 1
            except Exception as exc:
                logger.warning("realtime_close_failed", user_id=self.user_for(connection), error=str(exc))
            self.discard(connection)
        return closed


class RealtimeNotifier:
    """Pushes persisted notifications and unread counters to their recipients."""

    def __init__(self, manager: ConnectionManager):
        self.manager = manager

    async def push_notification(self, notification: Notification, unread_count: int) -> None:
        payload = RealtimeNotification.model_validate(notification).model_dump(mode="json")
        await self.manager.send_to_user(notification.user_id, event(RECEIVE_NOTIFICATION, payload))
        await self.push_unread_count(notification.user_id, unread_count)

    async def push_unread_count(self, user_id: UUID, count: int) -> None:
        await self.manager.send_to_user(user_id, event(UNREAD_NOTIFICATION_COUNT, count))
