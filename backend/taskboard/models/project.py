"""Project, team membership and work item models."""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Column, Float, ForeignKey, Integer, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskboard.db.base import Base, BaseModel, JSONType, UTCDateTime, utcnow
from taskboard.models.enums import TERMINAL_STATUSES, Priority, ProjectStatus, WorkItemStatus

if TYPE_CHECKING:
    from taskboard.models.user import User

# Team members of a project (the manager is tracked separately on the project)
project_members = Table(
    "project_members",
    Base.metadata,
    Column("project_id", Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Project(BaseModel):
    """Project owned by a manager with a set of team members."""

    __tablename__ = "projects"

    # Basic info
    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    manager_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Status and scope
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ProjectStatus.PLANNING.value, index=True
    )  # planning, in_progress, on_hold, completed, cancelled
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Priority.MEDIUM.value
    )  # low, medium, high, critical

    start_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    budget: Mapped[float | None] = mapped_column(Float, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Relationships
    team_members: Mapped[list["User"]] = relationship(
        "User", secondary=project_members, lazy="selectin", order_by="User.created_at"
    )

    @property
    def team_member_ids(self) -> list[UUID]:
        return [member.id for member in self.team_members]

    def has_member(self, user_id: UUID) -> bool:
        return user_id == self.manager_id or user_id in self.team_member_ids

    def __repr__(self) -> str:
        return f"<Project {self.name}>"


class WorkItem(BaseModel):
    """Trackable unit of work within a project."""

    __tablename__ = "work_items"

    # Basic info
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_to_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Status and priority
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=WorkItemStatus.TODO.value, index=True
    )  # todo, in_progress, done, cancelled
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Priority.MEDIUM.value
    )  # low, medium, high, critical

    # Dates
    due_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Effort
    estimated_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_hours: Mapped[int | None] = mapped_column(Integer, nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    attachments: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    # Relationships
    comments: Mapped[list["WorkItemComment"]] = relationship(
        "WorkItemComment",
        back_populates="work_item",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkItemComment.created_at",
    )

    @property
    def is_overdue(self) -> bool:
        return (
            self.due_date is not None
            and self.due_date < utcnow()
            and self.status not in TERMINAL_STATUSES
        )

    def __repr__(self) -> str:
        return f"<WorkItem {self.title}>"


class WorkItemComment(BaseModel):
    """Comment posted on a work item."""

    __tablename__ = "work_item_comments"

    work_item_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("work_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    work_item: Mapped["WorkItem"] = relationship("WorkItem", back_populates="comments")


class WorkItemLog(BaseModel):
    """Append-only audit entry for a single change to a work item.

    work_item_id deliberately carries no foreign key so the trail outlives
    the item it describes.
    """

    __tablename__ = "work_item_logs"

    work_item_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        index=True,
        comment="created, updated, status_changed, assignee_changed, ...",
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    field_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    extra_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
