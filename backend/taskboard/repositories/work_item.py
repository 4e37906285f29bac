"""Work item, comment and audit log queries."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, func, or_, select

from taskboard.db.base import utcnow
from taskboard.models.enums import ACTIVE_STATUSES, TERMINAL_STATUSES
from taskboard.models.project import WorkItem, WorkItemLog
from taskboard.repositories.base import BaseRepository

_ACTIVE = [s.value for s in ACTIVE_STATUSES]
_TERMINAL = [s.value for s in TERMINAL_STATUSES]


@dataclass
class WorkItemFilter:
    """Criteria accepted by WorkItemRepository.filter."""

    project_id: UUID | None = None
    project_ids: list[UUID] | None = None
    assigned_to_id: UUID | None = None
    created_by_id: UUID | None = None
    status: str | None = None
    priority: str | None = None
    due_from: datetime | None = None
    due_to: datetime | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    tags: list[str] = field(default_factory=list)
    term: str | None = None
    overdue_only: bool = False


class WorkItemRepository(BaseRepository[WorkItem]):
    model = WorkItem

    async def _all(self, query: Select) -> Sequence[WorkItem]:
        result = await self.db.execute(query)
        return result.scalars().all()

    async def get_by_project_id(self, project_id: UUID) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.project_id == project_id)
            .order_by(WorkItem.created_at.desc())
        )

    async def get_by_assignee_id(self, user_id: UUID) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.assigned_to_id == user_id)
            .order_by(WorkItem.due_date.asc().nulls_last(), WorkItem.created_at.desc())
        )

    async def get_by_created_by_id(self, user_id: UUID) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.created_by_id == user_id)
            .order_by(WorkItem.created_at.desc())
        )

    async def get_by_status(self, status: str) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem).where(WorkItem.status == status).order_by(WorkItem.created_at.desc())
        )

    async def get_by_priority(self, priority: str) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.priority == priority)
            .order_by(WorkItem.created_at.desc())
        )

    async def get_overdue(self) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.due_date < utcnow(), WorkItem.status.not_in(_TERMINAL))
            .order_by(WorkItem.due_date.asc())
        )

    async def get_due_soon(self, days: int = 3) -> Sequence[WorkItem]:
        now = utcnow()
        return await self._all(
            select(WorkItem)
            .where(
                WorkItem.due_date >= now,
                WorkItem.due_date <= now + timedelta(days=days),
                WorkItem.status.not_in(_TERMINAL),
            )
            .order_by(WorkItem.due_date.asc())
        )

    async def get_by_date_range(self, start: datetime, end: datetime) -> Sequence[WorkItem]:
        return await self._all(
            select(WorkItem)
            .where(WorkItem.created_at >= start, WorkItem.created_at <= end)
            .order_by(WorkItem.created_at.desc())
        )

    async def get_by_tags(self, tags: list[str]) -> list[WorkItem]:
        # Any-of match; done in Python so it works the same on JSON and JSONB
        wanted = {tag.lower() for tag in tags}
        items = await self._all(select(WorkItem).order_by(WorkItem.created_at.desc()))
        return [item for item in items if wanted & {t.lower() for t in item.tags or []}]

    async def search_text(self, term: str) -> Sequence[WorkItem]:
        pattern = f"%{term}%"
        return await self._all(
            select(WorkItem)
            .where(or_(WorkItem.title.ilike(pattern), WorkItem.description.ilike(pattern)))
            .order_by(WorkItem.created_at.desc())
        )

    async def count_by_project(self, project_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(WorkItem).where(WorkItem.project_id == project_id)
        )
        return result.scalar_one()

    async def count_by_status(self, status: str, project_id: UUID | None = None) -> int:
        query = select(func.count()).select_from(WorkItem).where(WorkItem.status == status)
        if project_id:
            query = query.where(WorkItem.project_id == project_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def count_overdue(self, project_id: UUID | None = None) -> int:
        query = (
            select(func.count())
            .select_from(WorkItem)
            .where(WorkItem.due_date < utcnow(), WorkItem.status.not_in(_TERMINAL))
        )
        if project_id:
            query = query.where(WorkItem.project_id == project_id)
        result = await self.db.execute(query)
        return result.scalar_one()

    async def counts_by_status(self, project_id: UUID | None = None) -> dict[str, int]:
        query = select(WorkItem.status, func.count()).group_by(WorkItem.status)
        if project_id:
            query = query.where(WorkItem.project_id == project_id)
        result = await self.db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def counts_by_priority(self, project_id: UUID | None = None) -> dict[str, int]:
        query = select(WorkItem.priority, func.count()).group_by(WorkItem.priority)
        if project_id:
            query = query.where(WorkItem.project_id == project_id)
        result = await self.db.execute(query)
        return {row[0]: row[1] for row in result.all()}

    async def has_active_work_items(self, project_id: UUID) -> bool:
        result = await self.db.execute(
            select(WorkItem.id)
            .where(WorkItem.project_id == project_id, WorkItem.status.in_(_ACTIVE))
            .limit(1)
        )
        return result.first() is not None

    async def filter(
        self,
        criteria: WorkItemFilter,
        skip: int = 0,
        limit: int | None = None,
    ) -> tuple[list[WorkItem], int]:
        """Apply criteria and return one page plus the total match count."""
        query = select(WorkItem)
        if criteria.project_id:
            query = query.where(WorkItem.project_id == criteria.project_id)
        if criteria.project_ids is not None:
            query = query.where(WorkItem.project_id.in_(criteria.project_ids))
        if criteria.assigned_to_id:
            query = query.where(WorkItem.assigned_to_id == criteria.assigned_to_id)
        if criteria.created_by_id:
            query = query.where(WorkItem.created_by_id == criteria.created_by_id)
        if criteria.status:
            query = query.where(WorkItem.status == criteria.status)
        if criteria.priority:
            query = query.where(WorkItem.priority == criteria.priority)
        if criteria.due_from:
            query = query.where(WorkItem.due_date >= criteria.due_from)
        if criteria.due_to:
            query = query.where(WorkItem.due_date <= criteria.due_to)
        if criteria.created_from:
            query = query.where(WorkItem.created_at >= criteria.created_from)
        if criteria.created_to:
            query = query.where(WorkItem.created_at <= criteria.created_to)
        if criteria.term:
            pattern = f"%{criteria.term}%"
            query = query.where(
                or_(WorkItem.title.ilike(pattern), WorkItem.description.ilike(pattern))
            )
        if criteria.overdue_only:
            query = query.where(WorkItem.due_date < utcnow(), WorkItem.status.not_in(_TERMINAL))

        items = list(await self._all(query.order_by(WorkItem.created_at.desc())))
        if criteria.tags:
            wanted = {tag.lower() for tag in criteria.tags}
            items = [i for i in items if wanted & {t.lower() for t in i.tags or []}]

        total = len(items)
        end = None if limit is None else skip + limit
        return items[skip:end], total


class WorkItemLogRepository(BaseRepository[WorkItemLog]):
    model = WorkItemLog

    async def get_by_work_item_id(self, work_item_id: UUID) -> Sequence[WorkItemLog]:
        result = await self.db.execute(
            select(WorkItemLog)
            .where(WorkItemLog.work_item_id == work_item_id)
            .order_by(WorkItemLog.created_at.desc())
        )
        return result.scalars().all()

    async def get_by_user_id(self, user_id: UUID) -> Sequence[WorkItemLog]:
        result = await self.db.execute(
            select(WorkItemLog)
            .where(WorkItemLog.user_id == user_id)
            .order_by(WorkItemLog.created_at.desc())
        )
        return result.scalars().all()

    async def get_by_action(self, action: str) -> Sequence[WorkItemLog]:
        result = await self.db.execute(
            select(WorkItemLog)
            .where(WorkItemLog.action == action)
            .order_by(WorkItemLog.created_at.desc())
        )
        return result.scalars().all()

    async def get_recent(self, count: int = 50) -> Sequence[WorkItemLog]:
        result = await self.db.execute(
            select(WorkItemLog).order_by(WorkItemLog.created_at.desc()).limit(count)
        )
        return result.scalars().all()

    async def get_by_date_range(self, start: datetime, end: datetime) -> Sequence[WorkItemLog]:
        result = await self.db.execute(
            select(WorkItemLog)
            .where(WorkItemLog.created_at >= start, WorkItemLog.created_at <= end)
            .order_by(WorkItemLog.created_at.desc())
        )
        return result.scalars().all()
