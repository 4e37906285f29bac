"""Work item endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, ConfigDict, Field

from taskboard.api.deps import (
    CurrentUser,
    ProjectServiceDep,
    WorkItemServiceDep,
    require_permission,
    require_project_access,
)
from taskboard.models.enums import Priority, UserRole, WorkItemLogAction, WorkItemStatus
from taskboard.models.project import WorkItem, WorkItemComment, WorkItemLog
from taskboard.models.user import User
from taskboard.repositories.work_item import WorkItemFilter
from taskboard.services.authorization import Permission
from taskboard.services.project import ProjectService

router = APIRouter()


class WorkItemCreate(BaseModel):
    """Request model for creating a work item."""

    title: str = Field(max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    project_id: UUID
    assigned_to_id: UUID | None = None
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    estimated_hours: int | None = Field(default=None, ge=0)
    tags: list[str] = Field(default_factory=list)


class WorkItemUpdate(BaseModel):
    """Request model for updating a work item; only supplied fields are compared."""

    title: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=2000)
    assigned_to_id: UUID | None = None
    status: WorkItemStatus | None = None
    priority: Priority | None = None
    due_date: datetime | None = None
    estimated_hours: int | None = None
    actual_hours: int | None = None
    tags: list[str] | None = None


class WorkItemStatusUpdate(BaseModel):
    status: WorkItemStatus


class WorkItemAssign(BaseModel):
    assigned_to_id: UUID


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    content: str
    created_at: datetime


class WorkItemResponse(BaseModel):
    """Response model for work item data."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    description: str | None
    project_id: UUID
    assigned_to_id: UUID | None
    created_by_id: UUID
    status: WorkItemStatus
    priority: Priority
    due_date: datetime | None
    completed_at: datetime | None
    estimated_hours: int | None
    actual_hours: int | None
    tags: list[str]
    attachments: list[str]
    comments: list[CommentResponse]
    is_overdue: bool
    created_at: datetime
    updated_at: datetime


class WorkItemListResponse(BaseModel):
    """Paginated work item list response."""

    items: list[WorkItemResponse]
    total: int
    page: int
    page_size: int
    pages: int


class WorkItemLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_item_id: UUID
    user_id: UUID
    action: WorkItemLogAction
    description: str
    field_name: str | None
    old_value: str | None
    new_value: str | None
    extra_data: dict[str, Any]
    created_at: datetime


class WorkItemSummaryResponse(BaseModel):
    total: int
    by_status: dict[str, int]
    by_priority: dict[str, int]
    overdue: int


async def _visible_project_ids(projects: ProjectService, user: User) -> list[UUID] | None:
    """None means unrestricted (admin)."""
    if user.role == UserRole.ADMIN:
        return None
    return [p.id for p in await projects.get_projects_by_team_member(user.id)]


async def _filter_visible(projects: ProjectService, user: User, items) -> list[WorkItem]:
    allowed = await _visible_project_ids(projects, user)
    if allowed is None:
        return list(items)
    return [item for item in items if item.project_id in allowed]


@router.get("/", response_model=WorkItemListResponse)
async def list_work_items(
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
    project_id: UUID | None = None,
    assigned_to_id: UUID | None = None,
    status_filter: WorkItemStatus | None = Query(None, alias="status"),
    priority: Priority | None = Query(None),
    due_from: datetime | None = None,
    due_to: datetime | None = None,
    created_from: datetime | None = None,
    created_to: datetime | None = None,
    tags: list[str] | None = Query(None),
    search: str | None = Query(None, max_length=100),
    overdue: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> dict:
    """List work items with filtering, limited to projects the caller can see."""
    if project_id:
        await require_project_access(projects, project_id, current_user)

    criteria = WorkItemFilter(
        project_id=project_id,
        project_ids=await _visible_project_ids(projects, current_user),
        assigned_to_id=assigned_to_id,
        status=status_filter.value if status_filter else None,
        priority=priority.value if priority else None,
        due_from=due_from,
        due_to=due_to,
        created_from=created_from,
        created_to=created_to,
        tags=tags or [],
        term=search,
        overdue_only=overdue,
    )
    items, total = await service.filter_work_items(
        criteria, skip=(page - 1) * page_size, limit=page_size
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1) // page_size,
    }


@router.get("/summary", response_model=WorkItemSummaryResponse)
async def work_item_summary(
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
    project_id: UUID | None = None,
) -> WorkItemSummaryResponse:
    require_permission(current_user, Permission.VIEW_WORK_ITEM_SUMMARY)
    if project_id:
        await require_project_access(projects, project_id, current_user)
    summary = await service.get_summary(project_id)
    return WorkItemSummaryResponse(
        total=summary.total,
        by_status=summary.by_status,
        by_priority=summary.by_priority,
        overdue=summary.overdue,
    )


@router.get("/my", response_model=list[WorkItemResponse])
async def my_work_items(current_user: CurrentUser, service: WorkItemServiceDep) -> list[WorkItem]:
    return list(await service.get_work_items_by_assignee(current_user.id))


@router.get("/overdue", response_model=list[WorkItemResponse])
async def overdue_work_items(
    current_user: CurrentUser, service: WorkItemServiceDep, projects: ProjectServiceDep
) -> list[WorkItem]:
    return await _filter_visible(projects, current_user, await service.get_overdue_work_items())


@router.get("/due-soon", response_model=list[WorkItemResponse])
async def due_soon_work_items(
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
    days: int = Query(3, ge=1, le=90),
) -> list[WorkItem]:
    return await _filter_visible(
        projects, current_user, await service.get_due_soon_work_items(days)
    )


@router.get("/project/{project_id}", response_model=list[WorkItemResponse])
async def project_work_items(
    project_id: UUID,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> list[WorkItem]:
    await projects.get_project(project_id)
    await require_project_access(projects, project_id, current_user)
    return list(await service.get_work_items_by_project(project_id))


async def _get_accessible(
    work_item_id: UUID, user: User, service, projects: ProjectService
) -> WorkItem:
    work_item = await service.get_work_item(work_item_id)
    await require_project_access(projects, work_item.project_id, user)
    return work_item


@router.get("/{work_item_id}", response_model=WorkItemResponse)
async def get_work_item(
    work_item_id: UUID,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItem:
    return await _get_accessible(work_item_id, current_user, service, projects)


@router.post("/", response_model=WorkItemResponse, status_code=status.HTTP_201_CREATED)
async def create_work_item(
    item_in: WorkItemCreate,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItem:
    await projects.get_project(item_in.project_id)
    await require_project_access(projects, item_in.project_id, current_user)
    return await service.create_work_item(item_in.model_dump(), current_user)


@router.put("/{work_item_id}", response_model=WorkItemResponse)
async def update_work_item(
    work_item_id: UUID,
    item_in: WorkItemUpdate,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItem:
    await _get_accessible(work_item_id, current_user, service, projects)
    return await service.update_work_item(
        work_item_id, item_in.model_dump(exclude_unset=True), current_user
    )


@router.patch("/{work_item_id}/status", response_model=WorkItemResponse)
async def update_work_item_status(
    work_item_id: UUID,
    status_in: WorkItemStatusUpdate,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItem:
    await _get_accessible(work_item_id, current_user, service, projects)
    return await service.update_work_item_status(work_item_id, status_in.status, current_user)


@router.patch("/{work_item_id}/assign", response_model=WorkItemResponse)
async def assign_work_item(
    work_item_id: UUID,
    assign_in: WorkItemAssign,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItem:
    await _get_accessible(work_item_id, current_user, service, projects)
    return await service.assign_work_item(work_item_id, assign_in.assigned_to_id, current_user)


@router.post(
    "/{work_item_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_comment(
    work_item_id: UUID,
    comment_in: CommentCreate,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> WorkItemComment:
    await _get_accessible(work_item_id, current_user, service, projects)
    return await service.add_comment(work_item_id, comment_in.content, current_user)


@router.get("/{work_item_id}/logs", response_model=list[WorkItemLogResponse])
async def work_item_logs(
    work_item_id: UUID,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> list[WorkItemLog]:
    await _get_accessible(work_item_id, current_user, service, projects)
    return list(await service.get_work_item_logs(work_item_id))


@router.delete("/{work_item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_work_item(
    work_item_id: UUID,
    current_user: CurrentUser,
    service: WorkItemServiceDep,
    projects: ProjectServiceDep,
) -> None:
    require_permission(current_user, Permission.DELETE_WORK_ITEM)
    await _get_accessible(work_item_id, current_user, service, projects)
    await service.delete_work_item(work_item_id, current_user)
