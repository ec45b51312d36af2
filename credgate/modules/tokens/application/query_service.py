"""Token read-side queries."""

from credgate.modules.tokens.application.token_store import hash_token
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.domain.exceptions import TokenNotFoundError
from credgate.modules.tokens.domain.repository import AccessTokenRepository


class TokenQueryService:
    def __init__(self, repository: AccessTokenRepository):
        self.repository = repository

    async def get_token_info(self, token: str) -> AccessToken:
        """Look up the active record behind a bearer token.

        Raises:
            TokenNotFoundError: No active record matches the token.
        """
        record = await self.repository.get_by_token_hash(hash_token(token))
        if record is None:
            raise TokenNotFoundError()
        return record

    async def list_tokens(
        self, user_id: str, page: int = 1, page_size: int = 20
    ) -> tuple[list[AccessToken], int]:
        return await self.repository.list_by_user(user_id, page=page, page_size=page_size)
