"""WebSocket endpoint for real-time notifications."""

import json
from typing import Annotated, Any, Awaitable, Callable
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, ValidationError

from taskboard.api.deps import get_connection_manager, get_notification_service
from taskboard.db.session import DBSession
from taskboard.exceptions import AuthenticationError, TaskboardError
from taskboard.models.user import User
from taskboard.repositories.project import ProjectRepository
from taskboard.repositories.user import UserRepository
from taskboard.services import security
from taskboard.services.authorization import can_access_project
from taskboard.services.notification import NotificationService
from taskboard.services.realtime import (
    ALL_NOTIFICATIONS_MARKED_AS_READ,
    NOTIFICATION_MARKED_AS_READ,
    UNREAD_NOTIFICATION_COUNT,
    USER_STARTED_TYPING,
    USER_STOPPED_TYPING,
    Connection,
    ConnectionManager,
    GroupKey,
    event,
)

router = APIRouter(prefix="/ws")
logger = structlog.get_logger()

# Application-level close code for a missing or invalid token
WS_CLOSE_UNAUTHORIZED = 4401


class WebSocketMessage(BaseModel):
    """Schema for client messages."""

    type: str
    payload: dict[str, Any] = {}


class HubError(Exception):
    """Client request could not be served; reported back as an error event."""


class NotificationHub:
    """Per-connection session: group membership plus client-invoked operations."""

    def __init__(
        self,
        manager: ConnectionManager,
        connection: Connection,
        user: User,
        notifications: NotificationService,
        projects: ProjectRepository,
    ):
        self.manager = manager
        self.connection = connection
        self.user = user
        self.notifications = notifications
        self.projects = projects
        self.handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "mark_notification_as_read": self.mark_notification_as_read,
            "mark_all_notifications_as_read": self.mark_all_notifications_as_read,
            "get_unread_notification_count": self.get_unread_notification_count,
            "join_project_group": self.join_project_group,
            "leave_project_group": self.leave_project_group,
            "start_typing": self.start_typing,
            "stop_typing": self.stop_typing,
            "ping": self.ping,
        }

    async def reply(self, name: str, payload: Any = None) -> None:
        await self.manager.send(self.connection, event(name, payload))

    async def on_connect(self) -> None:
        self.manager.register(self.connection, self.user.id)
        self.manager.add_to_group(self.connection, GroupKey.user(self.user.id))
        self.manager.add_to_group(self.connection, GroupKey.role(self.user.role))
        logger.info("websocket_connected", user_id=str(self.user.id))
        await self.get_unread_notification_count({})

    async def on_disconnect(self) -> None:
        self.manager.discard(self.connection)
        logger.info("websocket_disconnected", user_id=str(self.user.id))

    async def handle_text(self, text: str) -> None:
        """Parse one text frame and dispatch it."""
        try:
            raw = json.loads(text)
        except ValueError:
            await self.reply("error", {"message": "Malformed message"})
            return
        await self.handle(raw)

    async def handle(self, raw: Any) -> None:
        """Dispatch one client message; failures become an error event."""
        try:
            message = WebSocketMessage.model_validate(raw)
        except ValidationError:
            await self.reply("error", {"message": "Malformed message"})
            return

        handler = self.handlers.get(message.type)
        if handler is None:
            await self.reply("error", {"message": f"Unknown message type: {message.type}"})
            return

        try:
            await handler(message.payload)
        except (HubError, TaskboardError) as exc:
            await self.reply(
                "error", {"type": message.type, "message": getattr(exc, "message", str(exc))}
            )

    @staticmethod
    def _uuid(payload: dict[str, Any], key: str) -> UUID:
        try:
            return UUID(str(payload[key]))
        except (KeyError, ValueError):
            raise HubError(f"'{key}' must be a valid id")

    async def mark_notification_as_read(self, payload: dict[str, Any]) -> None:
        notification_id = self._uuid(payload, "notification_id")
        # The service refreshes the unread count for every connection of this user
        await self.notifications.mark_as_read(notification_id, self.user.id)
        await self.reply(NOTIFICATION_MARKED_AS_READ, str(notification_id))

    async def mark_all_notifications_as_read(self, payload: dict[str, Any]) -> None:
        await self.notifications.mark_all_as_read(self.user.id)
        await self.reply(ALL_NOTIFICATIONS_MARKED_AS_READ)

    async def get_unread_notification_count(self, payload: dict[str, Any]) -> None:
        await self.reply(UNREAD_NOTIFICATION_COUNT, await self.notifications.get_unread_count(self.user.id))

    async def join_project_group(self, payload: dict[str, Any]) -> None:
        project_id = self._uuid(payload, "project_id")
        if await self.projects.get_by_id(project_id) is None:
            raise HubError("Project not found")
        is_member = await self.projects.is_user_in_project(project_id, self.user.id)
        if not can_access_project(self.user.role, is_member):
            raise HubError("You do not have access to this project")
        self.manager.add_to_group(self.connection, GroupKey.project(project_id))

    async def leave_project_group(self, payload: dict[str, Any]) -> None:
        self.manager.remove_from_group(self.connection, GroupKey.project(self._uuid(payload, "project_id")))

    async def _typing(self, payload: dict[str, Any], name: str, body: dict[str, Any]) -> None:
        key = GroupKey.project(self._uuid(payload, "project_id"))
        if self.connection not in self.manager.members(key):
            raise HubError("Join the project group first")
        await self.manager.send_to_group(key, event(name, body), exclude=self.connection)

    async def start_typing(self, payload: dict[str, Any]) -> None:
        await self._typing(
            payload,
            USER_STARTED_TYPING,
            {"user_id": str(self.user.id), "user_name": self.user.full_name},
        )

    async def stop_typing(self, payload: dict[str, Any]) -> None:
        await self._typing(payload, USER_STOPPED_TYPING, {"user_id": str(self.user.id)})

    async def ping(self, payload: dict[str, Any]) -> None:
        await self.reply("pong")


async def authenticate(token: str | None, users: UserRepository) -> User | None:
    if not token:
        return None
    try:
        payload = security.decode_access_token(token)
        user = await users.get_by_id(security.user_id_from_payload(payload))
    except AuthenticationError:
        return None
    if user is None or not user.is_active:
        return None
    return user


@router.websocket("/notifications")
async def notifications_socket(
    websocket: WebSocket,
    db: DBSession,
    manager: Annotated[ConnectionManager, Depends(get_connection_manager)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    token: str | None = Query(None),
):
    """
    Real-time notification channel.

    Query parameters:
    - token: Required. Access token of the connecting user.

    Client messages are {"type": ..., "payload": {...}}.
    """
    await websocket.accept()
    user = await authenticate(token, UserRepository(db))
    if user is None:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason="Unauthorized")
        return

    hub = NotificationHub(manager, websocket, user, notifications, ProjectRepository(db))
    await hub.on_connect()
    try:
        while True:
            await hub.handle_text(await websocket.receive_text())
    except WebSocketDisconnect:
        pass
    finally:
        await hub.on_disconnect()
