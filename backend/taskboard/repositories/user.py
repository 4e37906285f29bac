"""User queries."""

from typing import Sequence
from uuid import UUID

from sqlalchemy import func, or_, select

from taskboard.models.user import User
from taskboard.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    model = User

    async def get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).where(func.lower(User.email) == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        return await self.get_by_email(email) is not None

    async def get_by_role(self, role: str) -> Sequence[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == role, User.is_active.is_(True))
            .order_by(User.first_name, User.last_name)
        )
        return result.scalars().all()

    async def get_active_users(self) -> Sequence[User]:
        result = await self.db.execute(
            select(User).where(User.is_active.is_(True)).order_by(User.first_name, User.last_name)
        )
        return result.scalars().all()

    async def get_by_ids(self, user_ids: list[UUID]) -> Sequence[User]:
        if not user_ids:
            return []
        result = await self.db.execute(select(User).where(User.id.in_(user_ids)))
        return result.scalars().all()

    async def search(
        self,
        role: str | None = None,
        is_active: bool | None = None,
        department: str | None = None,
        term: str | None = None,
    ) -> Sequence[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active.is_(is_active))
        if department:
            query = query.where(User.department == department)
        if term:
            pattern = f"%{term}%"
            query = query.where(
                or_(
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )
        result = await self.db.execute(query.order_by(User.first_name, User.last_name))
        return result.scalars().all()
