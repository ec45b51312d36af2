"""Access token repository interfaces."""

from abc import abstractmethod
from datetime import datetime

from credgate.core.domain.repository import BaseRepository
from credgate.modules.tokens.domain.entities import AccessToken


class AccessTokenRepository(BaseRepository[AccessToken]):
    """Access token repository interface.

    ``get_by_token_hash`` and ``get_by_refresh_hash`` only return active
    records; callers check expiry themselves.
    """

    @abstractmethod
    async def get_by_token_hash(self, token_hash: str) -> AccessToken | None:
        """Get an active record by access-token hash."""
        pass

    @abstractmethod
    async def find_any_by_token_hash(self, token_hash: str) -> AccessToken | None:
        """Get a record by access-token hash whether or not it is active."""
        pass

    @abstractmethod
    async def get_by_refresh_hash(self, refresh_hash: str) -> AccessToken | None:
        """Get an active record by refresh-token hash."""
        pass

    @abstractmethod
    async def find_any_by_refresh_hash(self, refresh_hash: str) -> AccessToken | None:
        """Get a record by refresh-token hash whether or not it is active."""
        pass

    @abstractmethod
    async def revoke(self, token_id: str) -> bool:
        """Deactivate a record.

        Returns True only for the call that flipped it from active to
        inactive, so two concurrent rotations of one refresh token cannot
        both succeed.
        """
        pass

    @abstractmethod
    async def list_by_user(
        self, user_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[AccessToken], int]:
        """List a principal's token records, newest first."""
        pass

    @abstractmethod
    async def revoke_all_for_api_key(self, api_key_id: str) -> int:
        """Deactivate every active record minted from a credential."""
        pass

    @abstractmethod
    async def purge_expired(self, before: datetime) -> int:
        """Delete records whose refresh token expired before *before*."""
        pass
