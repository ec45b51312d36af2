"""API Key repository interfaces."""

from abc import abstractmethod
from datetime import datetime

from credgate.core.domain.repository import BaseRepository
from credgate.modules.api_keys.domain.entities import ApiKey, ApiKeyStats


class ApiKeyRepository(BaseRepository[ApiKey]):
    """API Key repository interface.

    ``create`` raises :class:`DuplicateEntityError` when the access key
    collides with an existing one (unique index).
    """

    @abstractmethod
    async def get_by_access_key(self, access_key: str) -> ApiKey | None:
        """Get a key by its public access key, active or not."""
        pass

    @abstractmethod
    async def list_by_user(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        is_active: bool | None = None,
    ) -> tuple[list[ApiKey], int]:
        """List a user's keys, newest first, with the total count."""
        pass

    @abstractmethod
    async def get_stats(self, user_id: str, now: datetime) -> ApiKeyStats:
        """Aggregate counters for a user's keys."""
        pass
