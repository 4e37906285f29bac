"""Notification service: persisted records plus best-effort real-time push."""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Sequence
from uuid import UUID

import structlog

from taskboard.db.base import utcnow
from taskboard.exceptions import InvalidArgumentError, NotFoundError
from taskboard.models.enums import NotificationType
from taskboard.models.notification import Notification
from taskboard.models.project import Project, WorkItem
from taskboard.models.user import User
from taskboard.repositories.notification import NotificationRepository
from taskboard.repositories.project import ProjectRepository
from taskboard.services.realtime import RealtimeNotifier

logger = structlog.get_logger()

WORK_ITEM_ENTITY = "work_item"
PROJECT_ENTITY = "project"


@dataclass
class NotificationDraft:
    """Everything needed to create one notification."""

    user_id: UUID
    title: str
    message: str
    notification_type: NotificationType = NotificationType.INFO
    related_entity_id: UUID | None = None
    related_entity_type: str | None = None
    action_url: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class NotificationSummary:
    total: int
    unread: int
    read: int
    by_type: dict[str, int]


class NotificationService:
    """Creates notifications for domain events and manages their read state."""

    def __init__(
        self,
        notifications: NotificationRepository,
        projects: ProjectRepository,
        notifier: RealtimeNotifier | None = None,
    ):
        self.notifications = notifications
        self.projects = projects
        self.notifier = notifier

    # Queries

    async def get_user_notifications(
        self,
        user_id: UUID,
        notification_type: NotificationType | None = None,
        is_read: bool | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        return await self.notifications.get_by_user_id(
            user_id,
            notification_type=notification_type.value if notification_type else None,
            is_read=is_read,
            skip=skip,
            limit=limit,
        )

    async def get_unread_notifications(self, user_id: UUID) -> Sequence[Notification]:
        return await self.notifications.get_unread_by_user_id(user_id)

    async def get_unread_count(self, user_id: UUID) -> int:
        return await self.notifications.get_unread_count(user_id)

    async def get_summary(self, user_id: UUID) -> NotificationSummary:
        by_type = await self.notifications.counts_by_type(user_id)
        total = sum(by_type.values())
        unread = await self.notifications.get_unread_count(user_id)
        return NotificationSummary(total=total, unread=unread, read=total - unread, by_type=by_type)

    # Commands

    async def create_notification(self, draft: NotificationDraft) -> Notification:
        """Persist a notification, then push it to the recipient if connected."""
        notification = await self.notifications.create(
            Notification(
                user_id=draft.user_id,
                title=draft.title,
                message=draft.message,
                notification_type=NotificationType(draft.notification_type).value,
                related_entity_id=draft.related_entity_id,
                related_entity_type=draft.related_entity_type,
                action_url=draft.action_url,
                extra_data=_jsonable(draft.metadata),
            )
        )
        logger.info(
            "notification_created",
            notification_id=str(notification.id),
            user_id=str(draft.user_id),
            notification_type=notification.notification_type,
        )
        await self._push(notification)
        return notification

    async def _push(self, notification: Notification) -> None:
        if self.notifier is None:
            return
        # The stored record is authoritative; a failed push must not fail the caller
        try:
            unread = await self.notifications.get_unread_count(notification.user_id)
            await self.notifier.push_notification(notification, unread)
        except Exception as exc:
            logger.warning(
                "notification_push_failed",
                notification_id=str(notification.id),
                user_id=str(notification.user_id),
                error=str(exc),
            )

    async def _push_unread_count(self, user_id: UUID) -> None:
        if self.notifier is None:
            return
        try:
            unread = await self.notifications.get_unread_count(user_id)
            await self.notifier.push_unread_count(user_id, unread)
        except Exception as exc:
            logger.warning("unread_count_push_failed", user_id=str(user_id), error=str(exc))

    async def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self.notifications.get_by_id(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        notification = await self.notifications.mark_as_read(notification)
        await self._push_unread_count(user_id)
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        updated = await self.notifications.mark_all_as_read(user_id)
        logger.info("notifications_marked_read", user_id=str(user_id), count=updated)
        await self._push_unread_count(user_id)
        return updated

    async def delete_notification(self, notification_id: UUID, user_id: UUID) -> None:
        notification = await self._get_owned(notification_id, user_id)
        await self.notifications.delete(notification.id)
        if not notification.is_read:
            await self._push_unread_count(user_id)

    async def bulk_action(self, notification_ids: list[UUID], action: str, user_id: UUID) -> int:
        """Apply mark_as_read or delete to each id; returns how many succeeded."""
        if action not in ("mark_as_read", "delete"):
            raise InvalidArgumentError(f"Unsupported bulk action: {action}")

        processed = 0
        for notification_id in notification_ids:
            notification = await self.notifications.get_by_id(notification_id)
            if notification is None or notification.user_id != user_id:
                continue
            if action == "mark_as_read":
                await self.notifications.mark_as_read(notification)
            else:
                await self.notifications.delete(notification.id)
            processed += 1

        await self._push_unread_count(user_id)
        return processed

    async def delete_old_notifications(self, days_old: int = 30) -> int:
        if days_old < 1:
            raise InvalidArgumentError("days_old must be at least 1")
        cutoff = utcnow() - timedelta(days=days_old)
        deleted = await self.notifications.delete_older_than(cutoff)
        logger.info("old_notifications_deleted", days_old=days_old, count=deleted)
        return deleted

    # Domain events

    async def send_work_item_assigned(
        self, work_item: WorkItem, assignee_id: UUID, actor: User
    ) -> Notification | None:
        if assignee_id == actor.id:
            logger.debug("skipping_self_notification", user_id=str(actor.id), event="assigned")
            return None
        return await self.create_notification(
            NotificationDraft(
                user_id=assignee_id,
                title="New work item assigned",
                message=(
                    f"You have been assigned to work item: {work_item.title} "
                    f"by {actor.full_name}"
                ),
                notification_type=NotificationType.TASK_ASSIGNED,
                **_work_item_target(work_item),
                metadata={
                    "work_item_id": work_item.id,
                    "assigned_by_id": actor.id,
                    "project_id": work_item.project_id,
                },
            )
        )

    async def send_work_item_updated(self, work_item: WorkItem, actor: User) -> Notification | None:
        assignee_id = work_item.assigned_to_id
        if assignee_id is None or assignee_id == actor.id:
            return None
        return await self.create_notification(
            NotificationDraft(
                user_id=assignee_id,
                title="Work item updated",
                message=f"Work item '{work_item.title}' has been updated by {actor.full_name}",
                notification_type=NotificationType.TASK_UPDATED,
                **_work_item_target(work_item),
                metadata={
                    "work_item_id": work_item.id,
                    "updated_by_id": actor.id,
                    "project_id": work_item.project_id,
                },
            )
        )

    async def send_work_item_completed(self, work_item: WorkItem, actor: User) -> Notification | None:
        project = await self.projects.get_by_id(work_item.project_id)
        if project is None or project.manager_id == actor.id:
            return None
        return await self.create_notification(
            NotificationDraft(
                user_id=project.manager_id,
                title="Work item completed",
                message=f"Work item '{work_item.title}' has been completed by {actor.full_name}",
                notification_type=NotificationType.TASK_COMPLETED,
                **_work_item_target(work_item),
                metadata={
                    "work_item_id": work_item.id,
                    "completed_by_id": actor.id,
                    "project_id": work_item.project_id,
                },
            )
        )

    async def send_deadline_reminder(self, work_item: WorkItem) -> Notification | None:
        """Remind the assignee of an approaching due date, at most once a day."""
        if work_item.assigned_to_id is None or work_item.due_date is None:
            return None
        already_reminded = await self.notifications.exists_since(
            work_item.assigned_to_id,
            NotificationType.DEADLINE_REMINDER.value,
            work_item.id,
            utcnow() - timedelta(days=1),
        )
        if already_reminded:
            return None
        return await self.create_notification(
            NotificationDraft(
                user_id=work_item.assigned_to_id,
                title="Work item due soon",
                message=(
                    f"Work item '{work_item.title}' is due on "
                    f"{work_item.due_date:%Y-%m-%d %H:%M} UTC"
                ),
                notification_type=NotificationType.DEADLINE_REMINDER,
                **_work_item_target(work_item),
                metadata={
                    "work_item_id": work_item.id,
                    "project_id": work_item.project_id,
                    "due_date": work_item.due_date,
                },
            )
        )

    async def send_project_created(self, project: Project, actor: User) -> list[Notification]:
        sent = []
        for member_id in project.team_member_ids:
            if member_id in (actor.id, project.manager_id):
                continue
            sent.append(
                await self.create_notification(
                    NotificationDraft(
                        user_id=member_id,
                        title="Added to new project",
                        message=(
                            f"You have been added to project '{project.name}' "
                            f"by {actor.full_name}"
                        ),
                        notification_type=NotificationType.PROJECT_CREATED,
                        **_project_target(project),
                        metadata={"project_id": project.id, "created_by_id": actor.id},
                    )
                )
            )

        # Manager hears about it exactly once, whether or not they are on the team
        if project.manager_id != actor.id:
            sent.append(
                await self.create_notification(
                    NotificationDraft(
                        user_id=project.manager_id,
                        title="Assigned as project manager",
                        message=f"You have been assigned as manager for project '{project.name}'",
                        notification_type=NotificationType.PROJECT_CREATED,
                        **_project_target(project),
                        metadata={"project_id": project.id, "created_by_id": actor.id},
                    )
                )
            )
        return sent

    async def send_project_updated(self, project: Project, actor: User) -> list[Notification]:
        recipients = [m for m in project.team_member_ids if m != actor.id]
        if project.manager_id != actor.id and project.manager_id not in project.team_member_ids:
            recipients.append(project.manager_id)

        sent = []
        for user_id in recipients:
            sent.append(
                await self.create_notification(
                    NotificationDraft(
                        user_id=user_id,
                        title="Project updated",
                        message=f"Project '{project.name}' has been updated by {actor.full_name}",
                        notification_type=NotificationType.PROJECT_UPDATED,
                        **_project_target(project),
                        metadata={"project_id": project.id, "updated_by_id": actor.id},
                    )
                )
            )
        return sent

    async def send_team_member_added(
        self, project: Project, user_id: UUID, actor: User
    ) -> Notification:
        return await self.create_notification(
            NotificationDraft(
                user_id=user_id,
                title="Added to project",
                message=f"You have been added to project '{project.name}' by {actor.full_name}",
                notification_type=NotificationType.TEAM_MEMBER_ADDED,
                **_project_target(project),
                metadata={"project_id": project.id, "added_by_id": actor.id},
            )
        )

    async def send_team_member_removed(
        self, project: Project, user_id: UUID, actor: User
    ) -> Notification:
        return await self.create_notification(
            NotificationDraft(
                user_id=user_id,
                title="Removed from project",
                message=(
                    f"You have been removed from project '{project.name}' by {actor.full_name}"
                ),
                notification_type=NotificationType.TEAM_MEMBER_REMOVED,
                related_entity_id=project.id,
                related_entity_type=PROJECT_ENTITY,
                action_url="/projects",
                metadata={"project_id": project.id, "removed_by_id": actor.id},
            )
        )


def _work_item_target(work_item: WorkItem) -> dict[str, Any]:
    return {
        "related_entity_id": work_item.id,
        "related_entity_type": WORK_ITEM_ENTITY,
        "action_url": f"/work-items/{work_item.id}",
    }


def _project_target(project: Project) -> dict[str, Any]:
    return {
        "related_entity_id": project.id,
        "related_entity_type": PROJECT_ENTITY,
        "action_url": f"/projects/{project.id}",
    }


def _jsonable(metadata: dict[str, Any]) -> dict[str, Any]:
    """UUIDs and datetimes are stored as strings in the JSON column."""
    result = {}
    for key, value in metadata.items():
        if isinstance(value, UUID):
            value = str(value)
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        result[key] = value
    return result
