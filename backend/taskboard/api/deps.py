"""Dependency providers: current user and per-request service assembly."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.requests import HTTPConnection
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from taskboard.db.session import DBSession
from taskboard.exceptions import AuthenticationError, PermissionDeniedError
from taskboard.models.user import User
from taskboard.repositories import (
    NotificationRepository,
    ProjectRepository,
    UserRepository,
    WorkItemLogRepository,
    WorkItemRepository,
)
from taskboard.services import security as token_security
from taskboard.services.auth import AuthService
from taskboard.services.authorization import Permission, can_access_project, is_allowed
from taskboard.services.notification import NotificationService
from taskboard.services.project import ProjectService
from taskboard.services.realtime import ConnectionManager, RealtimeNotifier
from taskboard.services.work_item import WorkItemService

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: DBSession,
) -> User:
    """Get the current authenticated user from the bearer token."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    try:
        payload = token_security.decode_access_token(credentials.credentials)
        user_id = token_security.user_id_from_payload(payload)
    except AuthenticationError as exc:
        raise _unauthorized(exc.message)

    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        raise _unauthorized("User not found or inactive")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_permission(user: User, permission: Permission, *, owns_resource: bool = False) -> None:
    if not is_allowed(user.role, permission, owns_resource=owns_resource):
        raise PermissionDeniedError()


async def require_project_access(projects: ProjectService, project_id, user: User) -> None:
    is_member = await projects.is_user_in_project(project_id, user.id)
    if not can_access_project(user.role, is_member):
        raise PermissionDeniedError("You do not have access to this project")


def get_connection_manager(conn: HTTPConnection) -> ConnectionManager:
    return conn.app.state.connection_manager


def get_auth_service(db: DBSession) -> AuthService:
    return AuthService(UserRepository(db))


def get_notification_service(
    db: DBSession,
    manager: Annotated[ConnectionManager, Depends(get_connection_manager)],
) -> NotificationService:
    return NotificationService(
        NotificationRepository(db),
        ProjectRepository(db),
        notifier=RealtimeNotifier(manager),
    )


def get_project_service(
    db: DBSession,
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> ProjectService:
    return ProjectService(
        ProjectRepository(db),
        UserRepository(db),
        WorkItemRepository(db),
        notifications,
    )


def get_work_item_service(
    db: DBSession,
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> WorkItemService:
    return WorkItemService(
        WorkItemRepository(db),
        WorkItemLogRepository(db),
        ProjectRepository(db),
        UserRepository(db),
        notifications,
    )


AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]
ProjectServiceDep = Annotated[ProjectService, Depends(get_project_service)]
WorkItemServiceDep = Annotated[WorkItemService, Depends(get_work_item_service)]
