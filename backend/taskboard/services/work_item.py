"""Work item service: mutations, audit trail and notification side effects.

Every mutation is a sequence of independent writes (item, then audit
entry, then notification). Nothing here wraps them in a transaction, so a
failure part-way leaves the earlier writes in place.
"""

from dataclasses import dataclass
from typing import Any, Sequence
from uuid import UUID

import structlog

from taskboard.db.base import as_utc, utcnow
from taskboard.exceptions import NotFoundError, ValidationFailedError
from taskboard.models.enums import Priority, WorkItemLogAction, WorkItemStatus
from taskboard.models.project import WorkItem, WorkItemComment, WorkItemLog
from taskboard.models.user import User
from taskboard.repositories.project import ProjectRepository
from taskboard.repositories.user import UserRepository
from taskboard.repositories.work_item import (
    WorkItemFilter,
    WorkItemLogRepository,
    WorkItemRepository,
)
from taskboard.services.notification import NotificationService
from taskboard.services.validators import validate_work_item_create, validate_work_item_update

logger = structlog.get_logger()

COMMENT_MAX_LENGTH = 2000

# Order in which changes are described in the audit entry
UPDATABLE_FIELDS = (
    "title",
    "description",
    "assigned_to_id",
    "status",
    "priority",
    "due_date",
    "estimated_hours",
    "actual_hours",
    "tags",
)

# Columns that cannot be cleared; an explicit null for them means "unchanged"
NON_NULLABLE_FIELDS = frozenset({"title", "status", "priority"})

FIELD_LABELS = {
    "title": "Title",
    "description": "Description",
    "assigned_to_id": "Assignee",
    "status": "Status",
    "priority": "Priority",
    "due_date": "Due date",
    "estimated_hours": "Estimated hours",
    "actual_hours": "Actual hours",
    "tags": "Tags",
}


@dataclass
class WorkItemSummary:
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    overdue: int


def _display(value: Any) -> str:
    if value is None:
        return "none"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) or "none"
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(getattr(value, "value", value))


def _normalize(name: str, value: Any) -> Any:
    if name == "status" and value is not None:
        return WorkItemStatus(value).value
    if name == "priority" and value is not None:
        return Priority(value).value
    if name == "due_date":
        return as_utc(value)
    if name == "tags":
        return list(value or [])
    return value


def describe_change(name: str, old: Any, new: Any) -> str:
    """Human-readable one-line description of a single field change."""
    label = FIELD_LABELS.get(name, name)
    if name == "description":
        return f"{label} updated"
    if name == "assigned_to_id":
        old_text = _display(old) if old else "Unassigned"
        new_text = _display(new) if new else "Unassigned"
        return f"{label} changed from '{old_text}' to '{new_text}'"
    return f"{label} changed from '{_display(old)}' to '{_display(new)}'"


class WorkItemService:
    """Business rules for work items."""

    def __init__(
        self,
        work_items: WorkItemRepository,
        logs: WorkItemLogRepository,
        projects: ProjectRepository,
        users: UserRepository,
        notifications: NotificationService,
    ):
        self.work_items = work_items
        self.logs = logs
        self.projects = projects
        self.users = users
        self.notifications = notifications

    # Queries

    async def get_work_item(self, work_item_id: UUID) -> WorkItem:
        work_item = await self.work_items.get_by_id(work_item_id)
        if work_item is None:
            raise NotFoundError("Work item", work_item_id)
        return work_item

    async def get_all_work_items(self) -> Sequence[WorkItem]:
        return await self.work_items.get_all()

    async def filter_work_items(
        self, criteria: WorkItemFilter, skip: int = 0, limit: int | None = None
    ) -> tuple[list[WorkItem], int]:
        return await self.work_items.filter(criteria, skip=skip, limit=limit)

    async def get_work_items_by_project(self, project_id: UUID) -> Sequence[WorkItem]:
        return await self.work_items.get_by_project_id(project_id)

    async def get_work_items_by_assignee(self, user_id: UUID) -> Sequence[WorkItem]:
        return await self.work_items.get_by_assignee_id(user_id)

    async def get_work_items_by_status(self, status: WorkItemStatus) -> Sequence[WorkItem]:
        return await self.work_items.get_by_status(WorkItemStatus(status).value)

    async def get_overdue_work_items(self) -> Sequence[WorkItem]:
        return await self.work_items.get_overdue()

    async def get_due_soon_work_items(self, days: int = 3) -> Sequence[WorkItem]:
        return await self.work_items.get_due_soon(days)

    async def get_work_item_logs(self, work_item_id: UUID) -> Sequence[WorkItemLog]:
        return await self.logs.get_by_work_item_id(work_item_id)

    async def get_summary(self, project_id: UUID | None = None) -> WorkItemSummary:
        by_status = await self.work_items.counts_by_status(project_id)
        return WorkItemSummary(
            total=sum(by_status.values()),
            by_status=by_status,
            by_priority=await self.work_items.counts_by_priority(project_id),
            overdue=await self.work_items.count_overdue(project_id),
        )

    # Helpers

    async def _require_assignee(self, user_id: UUID) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError("Assignee", user_id)
        return user

    async def _log(
        self,
        work_item_id: UUID,
        actor: User,
        action: WorkItemLogAction,
        description: str,
        field_name: str | None = None,
        old_value: Any = None,
        new_value: Any = None,
        extra_data: dict[str, Any] | None = None,
    ) -> WorkItemLog:
        return await self.logs.create(
            WorkItemLog(
                work_item_id=work_item_id,
                user_id=actor.id,
                action=action.value,
                description=description,
                field_name=field_name,
                old_value=None if old_value is None else _display(old_value),
                new_value=None if new_value is None else _display(new_value),
                extra_data=extra_data or {},
            )
        )

    @staticmethod
    def _apply_status(work_item: WorkItem, status: str) -> None:
        """Set status and keep completed_at in step with it."""
        work_item.status = status
        if status == WorkItemStatus.DONE:
            work_item.completed_at = utcnow()
        else:
            work_item.completed_at = None

    # Commands

    async def create_work_item(self, data: dict[str, Any], actor: User) -> WorkItem:
        data = {**data, "due_date": as_utc(data.get("due_date"))}
        validate_work_item_create(data)

        project = await self.projects.get_by_id(data["project_id"])
        if project is None:
            raise NotFoundError("Project", data["project_id"])

        assignee_id = data.get("assigned_to_id")
        if assignee_id is not None:
            await self._require_assignee(assignee_id)

        work_item = await self.work_items.create(
            WorkItem(
                title=data["title"].strip(),
                description=data.get("description"),
                project_id=project.id,
                assigned_to_id=assignee_id,
                created_by_id=actor.id,
                status=WorkItemStatus.TODO.value,
                priority=Priority(data.get("priority") or Priority.MEDIUM).value,
                due_date=data["due_date"],
                estimated_hours=data.get("estimated_hours"),
                tags=list(data.get("tags") or []),
                attachments=[],
                comments=[],
            )
        )
        await self._log(work_item.id, actor, WorkItemLogAction.CREATED, "Work item created")
        logger.info(
            "work_item_created",
            work_item_id=str(work_item.id),
            project_id=str(project.id),
            actor_id=str(actor.id),
        )

        if assignee_id is not None:
            await self.notifications.send_work_item_assigned(work_item, assignee_id, actor)
        return work_item

    async def update_work_item(
        self, work_item_id: UUID, changes: dict[str, Any], actor: User
    ) -> WorkItem:
        """Apply a sparse update.

        Only keys present in `changes` are considered. When nothing actually
        differs from the stored item, no audit entry or notification is
        produced.
        """
        work_item = await self.get_work_item(work_item_id)
        changes = {
            k: _normalize(k, v)
            for k, v in changes.items()
            if k in UPDATABLE_FIELDS and not (v is None and k in NON_NULLABLE_FIELDS)
        }
        validate_work_item_update(changes, work_item.due_date)

        diffs: dict[str, tuple[Any, Any]] = {}
        for name in UPDATABLE_FIELDS:
            if name not in changes:
                continue
            old, new = getattr(work_item, name), changes[name]
            if old != new:
                diffs[name] = (old, new)

        if not diffs:
            return work_item

        if "assigned_to_id" in diffs and diffs["assigned_to_id"][1] is not None:
            await self._require_assignee(diffs["assigned_to_id"][1])

        old_status = work_item.status
        for name, (_, new) in diffs.items():
            if name == "status":
                self._apply_status(work_item, new)
            else:
                setattr(work_item, name, new)

        work_item = await self.work_items.update(work_item)

        descriptions = [describe_change(name, old, new) for name, (old, new) in diffs.items()]
        single = next(iter(diffs)) if len(diffs) == 1 else None
        await self._log(
            work_item.id,
            actor,
            WorkItemLogAction.UPDATED,
            ", ".join(descriptions),
            field_name=single,
            old_value=diffs[single][0] if single else None,
            new_value=diffs[single][1] if single else None,
            extra_data={
                "changes": {
                    name: {"old": _display(old), "new": _display(new)}
                    for name, (old, new) in diffs.items()
                }
            },
        )
        logger.info(
            "work_item_updated",
            work_item_id=str(work_item.id),
            fields=list(diffs),
            actor_id=str(actor.id),
        )

        completed = (
            "status" in diffs
            and work_item.status == WorkItemStatus.DONE
            and old_status != WorkItemStatus.DONE
        )
        reassigned = "assigned_to_id" in diffs and work_item.assigned_to_id is not None
        if completed:
            await self.notifications.send_work_item_completed(work_item, actor)
        if reassigned:
            await self.notifications.send_work_item_assigned(
                work_item, work_item.assigned_to_id, actor
            )
        if not completed and not reassigned:
            await self.notifications.send_work_item_updated(work_item, actor)
        return work_item

    async def update_work_item_status(
        self, work_item_id: UUID, status: WorkItemStatus, actor: User
    ) -> WorkItem:
        """Move a work item to `status`.

        Any target status is accepted here; validate_status_transition is
        not applied on this path. Moving to the current status is a no-op.
        """
        work_item = await self.get_work_item(work_item_id)
        new_status = WorkItemStatus(status).value
        old_status = work_item.status
        if old_status == new_status:
            return work_item

        self._apply_status(work_item, new_status)
        work_item = await self.work_items.update(work_item)

        await self._log(
            work_item.id,
            actor,
            WorkItemLogAction.STATUS_CHANGED,
            f"Status changed from '{old_status}' to '{new_status}'",
            field_name="status",
            old_value=old_status,
            new_value=new_status,
        )
        logger.info(
            "work_item_status_changed",
            work_item_id=str(work_item.id),
            old_status=old_status,
            new_status=new_status,
            actor_id=str(actor.id),
        )

        if new_status == WorkItemStatus.DONE:
            await self.notifications.send_work_item_completed(work_item, actor)
        else:
            await self.notifications.send_work_item_updated(work_item, actor)
        return work_item

    async def assign_work_item(self, work_item_id: UUID, assignee_id: UUID, actor: User) -> WorkItem:
        work_item = await self.get_work_item(work_item_id)
        assignee = await self._require_assignee(assignee_id)
        if work_item.assigned_to_id == assignee.id:
            return work_item

        old_assignee_id = work_item.assigned_to_id
        old_assignee = await self.users.get_by_id(old_assignee_id) if old_assignee_id else None
        work_item.assigned_to_id = assignee.id
        work_item = await self.work_items.update(work_item)

        await self._log(
            work_item.id,
            actor,
            WorkItemLogAction.ASSIGNEE_CHANGED,
            f"Assignee changed from '{old_assignee.full_name if old_assignee else 'Unassigned'}' "
            f"to '{assignee.full_name}'",
            field_name="assigned_to_id",
            old_value=old_assignee_id,
            new_value=assignee.id,
        )
        logger.info(
            "work_item_assigned",
            work_item_id=str(work_item.id),
            assignee_id=str(assignee.id),
            actor_id=str(actor.id),
        )
        await self.notifications.send_work_item_assigned(work_item, assignee.id, actor)
        return work_item

    async def add_comment(self, work_item_id: UUID, content: str, actor: User) -> WorkItemComment:
        content = (content or "").strip()
        if not content:
            raise ValidationFailedError([{"field": "content", "message": "Comment is required"}])
        if len(content) > COMMENT_MAX_LENGTH:
            raise ValidationFailedError(
                [
                    {
                        "field": "content",
                        "message": f"Comment cannot exceed {COMMENT_MAX_LENGTH} characters",
                    }
                ]
            )

        work_item = await self.get_work_item(work_item_id)
        comment = WorkItemComment(user_id=actor.id, content=content)
        work_item.comments.append(comment)
        await self.work_items.update(work_item)

        await self._log(work_item.id, actor, WorkItemLogAction.COMMENT_ADDED, "Comment added")
        logger.info("work_item_comment_added", work_item_id=str(work_item.id), actor_id=str(actor.id))
        return comment

    async def delete_work_item(self, work_item_id: UUID, actor: User) -> None:
        work_item = await self.get_work_item(work_item_id)
        # Audit entry first; it outlives the item
        await self._log(
            work_item.id,
            actor,
            WorkItemLogAction.DELETED,
            f"Work item '{work_item.title}' deleted",
        )
        await self.work_items.delete(work_item.id)
        logger.info("work_item_deleted", work_item_id=str(work_item_id), actor_id=str(actor.id))

    async def send_deadline_reminders(self, days: int = 1) -> int:
        """Remind assignees of open items due within `days`; returns reminders sent."""
        sent = 0
        for work_item in await self.work_items.get_due_soon(days):
            if await self.notifications.send_deadline_reminder(work_item):
                sent += 1
        logger.info("deadline_reminders_sent", days=days, count=sent)
        return sent
