"""Generic async repository over a single mapped entity."""

from typing import Generic, Sequence, TypeVar
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.db.base import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


class BaseRepository(Generic[ModelT]):
    """CRUD helpers shared by every repository.

    Each write commits immediately; callers that chain several writes get
    no atomicity across them.
    """

    model: type[ModelT]

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> Sequence[ModelT]:
        result = await self.db.execute(
            select(self.model).order_by(self.model.created_at.desc())
        )
        return result.scalars().all()

    async def get_by_id(self, entity_id: UUID) -> ModelT | None:
        return await self.db.get(self.model, entity_id)

    async def create(self, entity: ModelT) -> ModelT:
        self.db.add(entity)
        await self.db.commit()
        return entity

    async def update(self, entity: ModelT) -> ModelT:
        if entity not in self.db:
            entity = await self.db.merge(entity)
        await self.db.commit()
        return entity

    async def delete(self, entity_id: UUID) -> bool:
        entity = await self.get_by_id(entity_id)
        if entity is None:
            return False
        await self.db.delete(entity)
        await self.db.commit()
        return True

    async def count(self) -> int:
        result = await self.db.execute(select(func.count()).select_from(self.model))
        return result.scalar_one()
