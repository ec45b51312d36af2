"""Token revocation service."""

from loguru import logger

from credgate.core.infrastructure.logging import BusinessEvents
from credgate.modules.tokens.application.commands import RevokeTokenCommand
from credgate.modules.tokens.application.token_store import hash_token
from credgate.modules.tokens.domain.exceptions import MissingTokenError
from credgate.modules.tokens.domain.repository import AccessTokenRepository

ACCESS_TOKEN_HINT = "access_token"


class RevocationService:
    """Revoke tokens by value, or every token of a credential.

    未知或已吊销的令牌同样返回成功，响应不暴露令牌是否存在。
    """

    def __init__(self, repository: AccessTokenRepository):
        self.repository = repository

    async def revoke(self, command: RevokeTokenCommand) -> None:
        if not command.token:
            raise MissingTokenError()

        digest = hash_token(command.token)
        # 先按 access token 匹配，hint 不是 access_token 时再按 refresh token 匹配
        record = await self.repository.get_by_token_hash(digest)
        matched_by = "access_token"
        if record is None and command.token_type_hint != ACCESS_TOKEN_HINT:
            record = await self.repository.get_by_refresh_hash(digest)
            matched_by = "refresh_token"

        if record is None:
            logger.debug("Revocation requested for unknown or inactive token")
            return

        if await self.repository.revoke(record.id):
            BusinessEvents.token_revoked(
                token_id=record.id, user_id=record.user_id, matched_by=matched_by
            )

    async def revoke_all_for_api_key(self, api_key_id: str) -> int:
        """吊销凭证签发的全部有效令牌，返回吊销数量。"""
        revoked = await self.repository.revoke_all_for_api_key(api_key_id)
        if revoked:
            logger.info(f"Revoked {revoked} tokens of api key {api_key_id}")
        return revoked
