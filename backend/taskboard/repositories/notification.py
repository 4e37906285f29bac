"""Notification queries."""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select

from taskboard.db.base import utcnow
from taskboard.models.notification import Notification
from taskboard.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    model = Notification

    async def get_by_user_id(
        self,
        user_id: UUID,
        notification_type: str | None = None,
        is_read: bool | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> Sequence[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if notification_type:
            query = query.where(Notification.notification_type == notification_type)
        if is_read is not None:
            query = query.where(Notification.is_read.is_(is_read))
        query = query.order_by(Notification.created_at.desc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return result.scalars().all()

    async def get_unread_by_user_id(self, user_id: UUID) -> Sequence[Notification]:
        return await self.get_by_user_id(user_id, is_read=False)

    async def get_by_type(self, notification_type: str) -> Sequence[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.notification_type == notification_type)
            .order_by(Notification.created_at.desc())
        )
        return result.scalars().all()

    async def get_unread_count(self, user_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return result.scalar_one()

    async def mark_as_read(self, notification: Notification) -> Notification:
        """Flag as read; read_at is stamped only on the first transition."""
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        # Loaded through the ORM so objects already in the session see the change
        result = await self.db.execute(
            select(Notification).where(
                Notification.user_id == user_id, Notification.is_read.is_(False)
            )
        )
        notifications = result.scalars().all()
        now = utcnow()
        for notification in notifications:
            notification.is_read = True
            notification.read_at = now
        await self.db.commit()
        return len(notifications)

    async def delete_older_than(self, cutoff: datetime) -> int:
        result = await self.db.execute(
            delete(Notification)
            .where(Notification.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def counts_by_type(self, user_id: UUID) -> dict[str, int]:
        result = await self.db.execute(
            select(Notification.notification_type, func.count())
            .where(Notification.user_id == user_id)
            .group_by(Notification.notification_type)
        )
        return {row[0]: row[1] for row in result.all()}

    async def exists_since(
        self,
        user_id: UUID,
        notification_type: str,
        related_entity_id: UUID,
        since: datetime,
    ) -> bool:
        result = await self.db.execute(
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.notification_type == notification_type,
                Notification.related_entity_id == related_entity_id,
                Notification.created_at >= since,
            )
            .limit(1)
        )
        return result.first() is not None
