"""Project service: CRUD, team membership and deletion guards."""

from dataclasses import dataclass
from typing import Any, Sequence
from uuid import UUID

import structlog

from taskboard.db.base import as_utc
from taskboard.exceptions import BusinessRuleError, InvalidArgumentError, NotFoundError
from taskboard.models.enums import Priority, ProjectStatus, WorkItemStatus
from taskboard.models.project import Project
from taskboard.models.user import User
from taskboard.repositories.project import ProjectRepository
from taskboard.repositories.user import UserRepository
from taskboard.repositories.work_item import WorkItemRepository
from taskboard.services.notification import NotificationService

logger = structlog.get_logger()

UPDATABLE_FIELDS = ("name", "description", "start_date", "end_date", "budget", "priority", "tags")


@dataclass
class ProjectStats:
    total_work_items: int
    by_status: dict[str, int]
    overdue: int

    @property
    def completion_rate(self) -> float:
        if not self.total_work_items:
            return 0.0
        done = self.by_status.get(WorkItemStatus.DONE.value, 0)
        return round(done / self.total_work_items * 100, 1)


class ProjectService:
    """Business rules for projects and their teams."""

    def __init__(
        self,
        projects: ProjectRepository,
        users: UserRepository,
        work_items: WorkItemRepository,
        notifications: NotificationService,
    ):
        self.projects = projects
        self.users = users
        self.work_items = work_items
        self.notifications = notifications

    # Queries

    async def get_all_projects(
        self,
        status: ProjectStatus | None = None,
        priority: Priority | None = None,
        manager_id: UUID | None = None,
        member_id: UUID | None = None,
        term: str | None = None,
    ) -> Sequence[Project]:
        return await self.projects.search(
            status=status.value if status else None,
            priority=priority.value if priority else None,
            manager_id=manager_id,
            member_id=member_id,
            term=term,
        )

    async def get_project(self, project_id: UUID) -> Project:
        project = await self.projects.get_by_id(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def get_projects_by_manager(self, manager_id: UUID) -> Sequence[Project]:
        return await self.projects.get_by_manager_id(manager_id)

    async def get_projects_by_team_member(self, user_id: UUID) -> Sequence[Project]:
        return await self.projects.get_by_team_member_id(user_id)

    async def get_projects_by_status(self, status: ProjectStatus) -> Sequence[Project]:
        return await self.projects.get_by_status(status.value)

    async def get_active_projects(self) -> list[Project]:
        return await self.projects.get_active_projects()

    async def is_user_in_project(self, project_id: UUID, user_id: UUID) -> bool:
        return await self.projects.is_user_in_project(project_id, user_id)

    async def get_project_stats(self, project_id: UUID) -> ProjectStats:
        by_status = await self.work_items.counts_by_status(project_id)
        return ProjectStats(
            total_work_items=sum(by_status.values()),
            by_status=by_status,
            overdue=await self.work_items.count_overdue(project_id),
        )

    async def get_people(self, project: Project) -> dict[UUID, User]:
        """Manager and team members keyed by id, for response mapping."""
        ids = [project.manager_id, *project.team_member_ids]
        return {user.id: user for user in await self.users.get_by_ids(ids)}

    # Commands

    async def _require_active_user(self, user_id: UUID, label: str = "User") -> User:
        user = await self.users.get_by_id(user_id)
        if user is None or not user.is_active:
            raise NotFoundError(label, user_id)
        return user

    async def create_project(self, data: dict[str, Any], actor: User) -> Project:
        await self._require_active_user(data["manager_id"], "Manager")

        # The manager is tracked on the project itself, never as a team member
        member_ids = list(dict.fromkeys(
            uid for uid in data.get("team_member_ids") or [] if uid != data["manager_id"]
        ))
        members = list(await self.users.get_by_ids(member_ids))
        if len(members) != len(member_ids):
            raise InvalidArgumentError("One or more team members not found")

        start_date = as_utc(data["start_date"])
        end_date = as_utc(data.get("end_date"))
        if end_date is not None and end_date < start_date:
            raise InvalidArgumentError("End date cannot be before start date")

        project = await self.projects.create(
            Project(
                name=data["name"],
                description=data.get("description"),
                manager_id=data["manager_id"],
                status=ProjectStatus.PLANNING.value,
                priority=Priority(data.get("priority") or Priority.MEDIUM).value,
                start_date=start_date,
                end_date=end_date,
                budget=data.get("budget"),
                tags=list(data.get("tags") or []),
                team_members=members,
            )
        )
        logger.info(
            "project_created",
            project_id=str(project.id),
            manager_id=str(project.manager_id),
            actor_id=str(actor.id),
        )
        await self.notifications.send_project_created(project, actor)
        return project

    async def update_project(self, project_id: UUID, changes: dict[str, Any], actor: User) -> Project:
        project = await self.get_project(project_id)

        changed = []
        for name in UPDATABLE_FIELDS:
            if name not in changes:
                continue
            value = changes[name]
            if name == "name" and not value:
                continue
            if name == "priority":
                if value is None:
                    continue
                value = Priority(value).value
            if name == "tags":
                value = list(value or [])
            if name in ("start_date", "end_date"):
                value = as_utc(value)
                if name == "start_date" and value is None:
                    continue
            if getattr(project, name) != value:
                setattr(project, name, value)
                changed.append(name)

        if project.end_date is not None and project.end_date < project.start_date:
            raise InvalidArgumentError("End date cannot be before start date")

        if not changed:
            return project

        project = await self.projects.update(project)
        logger.info("project_updated", project_id=str(project.id), fields=changed)
        await self.notifications.send_project_updated(project, actor)
        return project

    async def update_project_status(
        self, project_id: UUID, status: ProjectStatus, actor: User
    ) -> Project:
        project = await self.get_project(project_id)
        if project.status == status:
            return project
        old_status = project.status
        project.status = ProjectStatus(status).value
        project = await self.projects.update(project)
        logger.info(
            "project_status_changed",
            project_id=str(project.id),
            old_status=old_status,
            new_status=project.status,
            actor_id=str(actor.id),
        )
        await self.notifications.send_project_updated(project, actor)
        return project

    async def delete_project(self, project_id: UUID, actor: User) -> None:
        project = await self.get_project(project_id)
        if await self.work_items.has_active_work_items(project.id):
            raise BusinessRuleError("Cannot delete project with active work items")
        await self.projects.delete(project.id)
        logger.info("project_deleted", project_id=str(project_id), actor_id=str(actor.id))

    async def add_team_member(self, project_id: UUID, user_id: UUID, actor: User) -> Project:
        project = await self.get_project(project_id)
        user = await self._require_active_user(user_id)
        if user.id == project.manager_id:
            raise BusinessRuleError("User is the project manager")
        if user.id in project.team_member_ids:
            raise BusinessRuleError("User is already a team member")

        project.team_members.append(user)
        project = await self.projects.update(project)
        logger.info("team_member_added", project_id=str(project.id), user_id=str(user.id))
        await self.notifications.send_team_member_added(project, user.id, actor)
        return project

    async def remove_team_member(self, project_id: UUID, user_id: UUID, actor: User) -> Project:
        project = await self.get_project(project_id)
        if user_id == project.manager_id:
            raise BusinessRuleError("The project manager cannot be removed from the team")
        await self._require_active_user(user_id)
        if user_id not in project.team_member_ids:
            raise BusinessRuleError("User is not a team member")

        project.team_members = [m for m in project.team_members if m.id != user_id]
        project = await self.projects.update(project)
        logger.info("team_member_removed", project_id=str(project.id), user_id=str(user_id))
        await self.notifications.send_team_member_removed(project, user_id, actor)
        return project
