"""Notification endpoints."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from taskboard.api.deps import CurrentUser, NotificationServiceDep, require_permission
from taskboard.config import get_settings
from taskboard.db.session import DBSession
from taskboard.exceptions import NotFoundError
from taskboard.models.enums import NotificationType
from taskboard.models.notification import Notification
from taskboard.repositories.user import UserRepository
from taskboard.services.authorization import Permission
from taskboard.services.notification import NotificationDraft

router = APIRouter()


class NotificationCreate(BaseModel):
    """Request model for creating a notification for any user."""

    user_id: UUID
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=500)
    type: NotificationType = NotificationType.INFO
    related_entity_id: UUID | None = None
    related_entity_type: str | None = Field(default=None, max_length=50)
    action_url: str | None = Field(default=None, max_length=500)
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_draft(self) -> NotificationDraft:
        return NotificationDraft(
            user_id=self.user_id,
            title=self.title,
            message=self.message,
            notification_type=self.type,
            related_entity_id=self.related_entity_id,
            related_entity_type=self.related_entity_type,
            action_url=self.action_url,
            metadata=self.metadata,
        )


class NotificationResponse(BaseModel):
    """Response model for notification data."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    user_id: UUID
    title: str
    message: str
    type: NotificationType = Field(validation_alias=AliasChoices("notification_type", "type"))
    is_read: bool
    read_at: datetime | None
    created_at: datetime
    related_entity_id: UUID | None
    related_entity_type: str | None
    action_url: str | None
    metadata: dict[str, Any] = Field(validation_alias=AliasChoices("extra_data", "metadata"))


async def _require_recipient(db: DBSession, user_id: UUID) -> None:
    if await UserRepository(db).get_by_id(user_id) is None:
        raise NotFoundError("User", user_id)


class UnreadCountResponse(BaseModel):
    count: int


class BulkActionRequest(BaseModel):
    notification_ids: list[UUID] = Field(min_length=1)
    action: Literal["mark_as_read", "delete"]


class CountResponse(BaseModel):
    message: str
    count: int


class NotificationSummaryResponse(BaseModel):
    total: int
    unread: int
    read: int
    by_type: dict[str, int]


@router.get("/", response_model=list[NotificationResponse])
async def list_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
    notification_type: NotificationType | None = Query(None, alias="type"),
    is_read: bool | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> list[Notification]:
    """List the caller's notifications, newest first."""
    return list(
        await service.get_user_notifications(
            current_user.id,
            notification_type=notification_type,
            is_read=is_read,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
    )


@router.get("/unread", response_model=list[NotificationResponse])
async def unread_notifications(
    current_user: CurrentUser, service: NotificationServiceDep
) -> list[Notification]:
    return list(await service.get_unread_notifications(current_user.id))


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(current_user: CurrentUser, service: NotificationServiceDep) -> UnreadCountResponse:
    return UnreadCountResponse(count=await service.get_unread_count(current_user.id))


@router.get("/summary", response_model=NotificationSummaryResponse)
async def notification_summary(
    current_user: CurrentUser, service: NotificationServiceDep
) -> NotificationSummaryResponse:
    summary = await service.get_summary(current_user.id)
    return NotificationSummaryResponse(
        total=summary.total, unread=summary.unread, read=summary.read, by_type=summary.by_type
    )


@router.post("/", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    notification_in: NotificationCreate,
    current_user: CurrentUser,
    service: NotificationServiceDep,
    db: DBSession,
) -> Notification:
    require_permission(current_user, Permission.CREATE_NOTIFICATION)
    await _require_recipient(db, notification_in.user_id)
    return await service.create_notification(notification_in.to_draft())


@router.patch("/mark-all-as-read", response_model=CountResponse)
async def mark_all_as_read(current_user: CurrentUser, service: NotificationServiceDep) -> CountResponse:
    count = await service.mark_all_as_read(current_user.id)
    return CountResponse(message="All notifications marked as read", count=count)


@router.patch("/{notification_id}/mark-as-read", response_model=NotificationResponse)
async def mark_as_read(
    notification_id: UUID, current_user: CurrentUser, service: NotificationServiceDep
) -> Notification:
    return await service.mark_as_read(notification_id, current_user.id)


@router.post("/bulk-action", response_model=CountResponse)
async def bulk_action(
    request: BulkActionRequest, current_user: CurrentUser, service: NotificationServiceDep
) -> CountResponse:
    count = await service.bulk_action(request.notification_ids, request.action, current_user.id)
    return CountResponse(message=f"{count} notifications processed", count=count)


@router.delete("/cleanup", response_model=CountResponse)
async def cleanup_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
    days_old: int | None = Query(None, ge=1),
) -> CountResponse:
    """Delete notifications older than `days_old` (defaults to the retention setting)."""
    require_permission(current_user, Permission.CLEANUP_NOTIFICATIONS)
    days = days_old or get_settings().notification_retention_days
    count = await service.delete_old_notifications(days)
    return CountResponse(message=f"Notifications older than {days} days deleted", count=count)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: UUID, current_user: CurrentUser, service: NotificationServiceDep
) -> None:
    await service.delete_notification(notification_id, current_user.id)


@router.post("/test-send", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def send_test_notification(
    notification_in: NotificationCreate,
    current_user: CurrentUser,
    service: NotificationServiceDep,
    db: DBSession,
) -> Notification:
    """Create a notification and push it immediately; for checking client wiring."""
    require_permission(current_user, Permission.SEND_TEST_NOTIFICATION)
    await _require_recipient(db, notification_in.user_id)
    return await service.create_notification(notification_in.to_draft())
