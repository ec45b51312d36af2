"""User directory interface."""

from abc import ABC, abstractmethod

from credgate.modules.users.domain.entities import User


class UserDirectory(ABC):
    """Read-only lookup of principals by id."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> User | None:
        """Get a principal by id, or ``None`` when it does not exist."""
        pass
