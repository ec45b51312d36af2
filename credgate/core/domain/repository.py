"""Base repository interface."""

from abc import ABC, abstractmethod
from typing import TypeVar

T = TypeVar("T")


class BaseRepository[T](ABC):
    """Common persistence operations shared by every aggregate repository."""

    @abstractmethod
    async def get_by_id(self, entity_id: str) -> T | None:
        """Get an entity by id."""
        pass

    @abstractmethod
    async def create(self, entity: T) -> T:
        """Persist a new entity."""
        pass

    @abstractmethod
    async def update(self, entity: T) -> T:
        """Persist changes to an existing entity."""
        pass
