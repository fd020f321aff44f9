"""Base service class with common database operations."""

from typing import Any, Generic, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from emdr.core.exceptions import StorageError
from emdr.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(Generic[ModelType]):
    """Base service with common CRUD operations.

    Commit failures are rolled back and surfaced as ``StorageError``.
    """

    def __init__(self, db: AsyncSession, model: type[ModelType]):
        self.db = db
        self.model = model

    async def commit(self) -> None:
        """Commit the unit of work, rolling back on failure."""
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"{self.model.__tablename__}: commit failed: {e}")
            raise StorageError(f"Could not write {self.model.__tablename__}") from e

    async def get_by_id(self, id: Any) -> ModelType | None:
        """Get entity by primary key."""
        return await self.db.get(self.model, id)

    async def create(self, obj: ModelType) -> ModelType:
        """Create new entity."""
        self.db.add(obj)
        await self.commit()
        await self.db.refresh(obj)
        return obj

    async def delete(self, obj: ModelType) -> None:
        """Delete entity."""
        await self.db.delete(obj)
        await self.commit()
