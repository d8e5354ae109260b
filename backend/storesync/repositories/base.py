"""
Base repository shared by the model-specific repositories.
"""
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from storesync.core.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one model and one session.

    Subclasses should set the `model` class attribute to the SQLAlchemy model.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Get a single record by its primary key."""
        return await self.session.get(self.model, id)
