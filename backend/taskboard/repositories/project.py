"""Project queries."""

from typing import Sequence
from uuid import UUID

from sqlalchemy import exists, or_, select

from taskboard.models.enums import ACTIVE_PROJECT_STATUSES, PRIORITY_RANK, Priority
from taskboard.models.project import Project, project_members
from taskboard.repositories.base import BaseRepository


class ProjectRepository(BaseRepository[Project]):
    model = Project

    def _member_clause(self, user_id: UUID):
        return or_(
            Project.manager_id == user_id,
            exists().where(
                project_members.c.project_id == Project.id,
                project_members.c.user_id == user_id,
            ),
        )

    async def get_by_manager_id(self, manager_id: UUID) -> Sequence[Project]:
        result = await self.db.execute(
            select(Project)
            .where(Project.manager_id == manager_id)
            .order_by(Project.created_at.desc())
        )
        return result.scalars().all()

    async def get_by_team_member_id(self, user_id: UUID) -> Sequence[Project]:
        """Projects the user manages or belongs to."""
        result = await self.db.execute(
            select(Project)
            .where(self._member_clause(user_id))
            .order_by(Project.created_at.desc())
        )
        return result.scalars().all()

    async def get_by_status(self, status: str) -> Sequence[Project]:
        result = await self.db.execute(
            select(Project).where(Project.status == status).order_by(Project.created_at.desc())
        )
        return result.scalars().all()

    async def get_active_projects(self) -> list[Project]:
        result = await self.db.execute(
            select(Project)
            .where(Project.status.in_([s.value for s in ACTIVE_PROJECT_STATUSES]))
            .order_by(Project.created_at.desc())
        )
        # Priority is stored as a label, so rank it here; sort is stable on created_at
        return sorted(
            result.scalars().all(),
            key=lambda p: PRIORITY_RANK.get(Priority(p.priority), 0),
            reverse=True,
        )

    async def is_user_in_project(self, project_id: UUID, user_id: UUID) -> bool:
        result = await self.db.execute(
            select(Project.id).where(Project.id == project_id, self._member_clause(user_id))
        )
        return result.first() is not None

    async def search(
        self,
        status: str | None = None,
        priority: str | None = None,
        manager_id: UUID | None = None,
        member_id: UUID | None = None,
        term: str | None = None,
    ) -> Sequence[Project]:
        query = select(Project)
        if status:
            query = query.where(Project.status == status)
        if priority:
            query = query.where(Project.priority == priority)
        if manager_id:
            query = query.where(Project.manager_id == manager_id)
        if member_id:
            query = query.where(self._member_clause(member_id))
        if term:
            pattern = f"%{term}%"
            query = query.where(
                or_(Project.name.ilike(pattern), Project.description.ilike(pattern))
            )
        result = await self.db.execute(query.order_by(Project.created_at.desc()))
        return result.scalars().all()
