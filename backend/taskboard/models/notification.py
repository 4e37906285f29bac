"""Notification model."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskboard.db.base import BaseModel, JSONType, UTCDateTime
from taskboard.models.enums import NotificationType


class Notification(BaseModel):
    """
    Persisted user-targeted message describing a domain event.

    The record is the durable source of truth; real-time delivery is a
    best-effort copy of it.
    """

    __tablename__ = "notifications"

    # Recipient
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Notification content
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        comment="Notification title/headline",
    )
    message: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Notification body/details",
    )
    notification_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=NotificationType.INFO.value,
        index=True,
    )

    # Read status
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Target entity (for navigation)
    related_entity_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        comment="ID of the project or work item this refers to",
    )
    related_entity_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
        comment="project or work_item",
    )
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Exposed as "metadata" over the API; the attribute name is reserved by SQLAlchemy
    extra_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
