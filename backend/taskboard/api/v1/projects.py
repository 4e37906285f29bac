"""Project endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from taskboard.api.deps import (
    CurrentUser,
    ProjectServiceDep,
    require_permission,
    require_project_access,
)
from taskboard.api.v1.auth import UserSummary
from taskboard.models.enums import Priority, ProjectStatus
from taskboard.models.project import Project
from taskboard.services.authorization import Permission
from taskboard.services.project import ProjectService

router = APIRouter()


class ProjectCreate(BaseModel):
    """Request model for creating a project."""

    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    manager_id: UUID
    team_member_ids: list[UUID] = Field(default_factory=list)
    start_date: datetime
    end_date: datetime | None = None
    budget: float | None = Field(default=None, ge=0)
    priority: Priority = Priority.MEDIUM
    tags: list[str] = Field(default_factory=list)


class ProjectUpdate(BaseModel):
    """Request model for updating a project; only supplied fields change."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    start_date: datetime | None = None
    end_date: datetime | None = None
    budget: float | None = Field(default=None, ge=0)
    priority: Priority | None = None
    tags: list[str] | None = None


class ProjectStatusUpdate(BaseModel):
    status: ProjectStatus


class TeamMemberAdd(BaseModel):
    user_id: UUID


class ProjectStatsResponse(BaseModel):
    total_work_items: int
    by_status: dict[str, int]
    overdue: int
    completion_rate: float


class ProjectResponse(BaseModel):
    """Response model for project data."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    manager_id: UUID
    manager: UserSummary | None = None
    team_member_ids: list[UUID]
    team_members: list[UserSummary]
    status: ProjectStatus
    priority: Priority
    start_date: datetime
    end_date: datetime | None
    budget: float | None
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class ProjectDetailResponse(ProjectResponse):
    stats: ProjectStatsResponse | None = None


class AccessResponse(BaseModel):
    has_access: bool


async def _to_response(
    service: ProjectService, project: Project, response_cls: type[ProjectResponse] = ProjectResponse
) -> ProjectResponse:
    people = await service.get_people(project)
    response = response_cls.model_validate(project)
    manager = people.get(project.manager_id)
    response.manager = UserSummary.model_validate(manager) if manager else None
    return response


async def _to_responses(service: ProjectService, projects) -> list[ProjectResponse]:
    return [await _to_response(service, project) for project in projects]


@router.get("/", response_model=list[ProjectResponse])
async def list_projects(
    current_user: CurrentUser,
    service: ProjectServiceDep,
    status_filter: ProjectStatus | None = Query(None, alias="status"),
    priority: Priority | None = Query(None),
    manager_id: UUID | None = Query(None),
    search: str | None = Query(None, max_length=100),
) -> list[ProjectResponse]:
    """List projects, with optional filters."""
    projects = await service.get_all_projects(
        status=status_filter, priority=priority, manager_id=manager_id, term=search
    )
    return await _to_responses(service, projects)


@router.get("/my-projects", response_model=list[ProjectResponse])
async def my_projects(current_user: CurrentUser, service: ProjectServiceDep) -> list[ProjectResponse]:
    """Projects the caller manages or belongs to."""
    return await _to_responses(service, await service.get_projects_by_team_member(current_user.id))


@router.get("/managed-by-me", response_model=list[ProjectResponse])
async def managed_by_me(current_user: CurrentUser, service: ProjectServiceDep) -> list[ProjectResponse]:
    return await _to_responses(service, await service.get_projects_by_manager(current_user.id))


@router.get("/active", response_model=list[ProjectResponse])
async def active_projects(current_user: CurrentUser, service: ProjectServiceDep) -> list[ProjectResponse]:
    return await _to_responses(service, await service.get_active_projects())


@router.get("/{project_id}", response_model=ProjectDetailResponse)
async def get_project(
    project_id: UUID, current_user: CurrentUser, service: ProjectServiceDep
) -> ProjectResponse:
    project = await service.get_project(project_id)
    response = await _to_response(service, project, ProjectDetailResponse)
    stats = await service.get_project_stats(project.id)
    response.stats = ProjectStatsResponse(
        total_work_items=stats.total_work_items,
        by_status=stats.by_status,
        overdue=stats.overdue,
        completion_rate=stats.completion_rate,
    )
    return response


@router.get("/{project_id}/stats", response_model=ProjectStatsResponse)
async def get_project_stats(
    project_id: UUID, current_user: CurrentUser, service: ProjectServiceDep
) -> ProjectStatsResponse:
    await service.get_project(project_id)
    await require_project_access(service, project_id, current_user)
    stats = await service.get_project_stats(project_id)
    return ProjectStatsResponse(
        total_work_items=stats.total_work_items,
        by_status=stats.by_status,
        overdue=stats.overdue,
        completion_rate=stats.completion_rate,
    )


@router.post("/", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    project_in: ProjectCreate, current_user: CurrentUser, service: ProjectServiceDep
) -> ProjectResponse:
    require_permission(current_user, Permission.CREATE_PROJECT)
    project = await service.create_project(project_in.model_dump(), current_user)
    return await _to_response(service, project)


@router.put("/{project_id}", response_model=ProjectResponse)
async def update_project(
    project_id: UUID,
    project_in: ProjectUpdate,
    current_user: CurrentUser,
    service: ProjectServiceDep,
) -> ProjectResponse:
    project = await service.get_project(project_id)
    require_permission(
        current_user,
        Permission.UPDATE_PROJECT,
        owns_resource=project.manager_id == current_user.id,
    )
    project = await service.update_project(
        project_id, project_in.model_dump(exclude_unset=True), current_user
    )
    return await _to_response(service, project)


@router.patch("/{project_id}/status", response_model=ProjectResponse)
async def update_project_status(
    project_id: UUID,
    status_in: ProjectStatusUpdate,
    current_user: CurrentUser,
    service: ProjectServiceDep,
) -> ProjectResponse:
    require_permission(current_user, Permission.CHANGE_PROJECT_STATUS)
    project = await service.update_project_status(project_id, status_in.status, current_user)
    return await _to_response(service, project)


@router.post("/{project_id}/team-members", response_model=ProjectResponse)
async def add_team_member(
    project_id: UUID,
    member_in: TeamMemberAdd,
    current_user: CurrentUser,
    service: ProjectServiceDep,
) -> ProjectResponse:
    require_permission(current_user, Permission.MANAGE_PROJECT_TEAM)
    project = await service.add_team_member(project_id, member_in.user_id, current_user)
    return await _to_response(service, project)


@router.delete("/{project_id}/team-members/{user_id}", response_model=ProjectResponse)
async def remove_team_member(
    project_id: UUID,
    user_id: UUID,
    current_user: CurrentUser,
    service: ProjectServiceDep,
) -> ProjectResponse:
    require_permission(current_user, Permission.MANAGE_PROJECT_TEAM)
    project = await service.remove_team_member(project_id, user_id, current_user)
    return await _to_response(service, project)


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_project(
    project_id: UUID, current_user: CurrentUser, service: ProjectServiceDep
) -> None:
    """Delete a project; refused while it still has open work items."""
    require_permission(current_user, Permission.DELETE_PROJECT)
    await service.delete_project(project_id, current_user)


@router.get("/{project_id}/check-access", response_model=AccessResponse)
async def check_access(
    project_id: UUID, current_user: CurrentUser, service: ProjectServiceDep
) -> AccessResponse:
    return AccessResponse(has_access=await service.is_user_in_project(project_id, current_user.id))
