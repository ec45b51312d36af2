"""Token verifier: authenticates a request carrying a bearer token.

Resolution is an explicit first step. A token whose digest matches a
stored record is STORE_BACKED and is judged by that record alone; any other
token is SELF_CONTAINED and must carry a valid signature. A signed token
minted by the exchange (it has an ``api_key_id`` claim) is only ever valid
through its record, so revoking the record cannot be bypassed by the
signature path.
"""

from enum import StrEnum
from typing import Any

from credgate.core.application.security import AuthContext, AuthType
from credgate.core.application.telemetry import fire_and_forget
from credgate.core.domain.base_entity import utc_now
from credgate.core.domain.ports.usage import UsageRecorder
from credgate.core.infrastructure.logging import BusinessEvents
from credgate.modules.tokens.application.token_store import hash_token
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.domain.exceptions import (
    InvalidTokenError,
    InvalidTokenTypeError,
    TokenExpiredError,
    TokenRevokedError,
)
from credgate.modules.tokens.domain.ports import TokenSigner
from credgate.modules.tokens.domain.repository import AccessTokenRepository
from credgate.modules.users.domain.entities import User
from credgate.modules.users.domain.exceptions import UserInactiveError, UserNotFoundError
from credgate.modules.users.domain.repository import UserDirectory

ACCESS_TOKEN_TYPE = "access"


class TokenResolution(StrEnum):
    """令牌解析方式：命中存储记录，或按签名自证。"""

    STORE_BACKED = "store_backed"
    SELF_CONTAINED = "self_contained"


class TokenVerifier:
    """校验 Bearer 令牌并生成 AuthContext。"""

    def __init__(
        self,
        repository: AccessTokenRepository,
        user_directory: UserDirectory,
        signer: TokenSigner,
        usage_recorder: UsageRecorder,
    ):
        self.repository = repository
        self.user_directory = user_directory
        self.signer = signer
        self.usage_recorder = usage_recorder

    async def verify(self, token: str, client_ip: str | None = None) -> AuthContext:
        # 先按摘要查记录，查到即只按记录判定
        record = await self.repository.find_any_by_token_hash(hash_token(token))
        resolution = (
            TokenResolution.STORE_BACKED if record else TokenResolution.SELF_CONTAINED
        )

        if resolution is TokenResolution.STORE_BACKED:
            return await self._verify_store_backed(record, client_ip)
        return await self._verify_self_contained(token)

    async def _verify_store_backed(
        self, record: AccessToken, client_ip: str | None
    ) -> AuthContext:
        now = utc_now()
        if not record.is_active:
            self._auth_failed("token_revoked", token_id=record.id)
            raise TokenRevokedError()
        if record.is_expired(now):
            self._auth_failed("token_expired", token_id=record.id)
            raise TokenExpiredError(record.expires_at, field="expires_at")

        await self._require_active_user(record.user_id)

        # 使用记录异步写入
        record.record_usage(client_ip, now)
        fire_and_forget(
            self.usage_recorder.record_token_usage(record.id, client_ip, now),
            operation="token_touch",
            token_id=record.id,
        )

        return AuthContext(
            principal_id=record.user_id,
            auth_type=AuthType.ACCESS_TOKEN,
            scopes=frozenset(record.scopes),
            api_key_id=record.api_key_id,
            token_id=record.id,
        )

    async def _verify_self_contained(self, token: str) -> AuthContext:
        claims = self.signer.decode(token)

        token_type = claims.get("type")
        if token_type is not None and token_type != ACCESS_TOKEN_TYPE:
            self._auth_failed("invalid_token_type")
            raise InvalidTokenTypeError(str(token_type))

        if claims.get("api_key_id"):
            # 带 api_key_id 却没有记录：已清理或伪造
            self._auth_failed("token_record_missing")
            raise InvalidTokenError()

        # 旧版会话令牌可能只有 id 声明
        subject = claims.get("sub") or claims.get("id")
        if not subject:
            raise InvalidTokenError("Invalid token payload")

        user = await self._require_active_user(str(subject))

        return AuthContext(
            principal_id=user.id,
            auth_type=AuthType.LEGACY,
            scopes=frozenset(_claimed_scopes(claims, user)),
        )

    async def _require_active_user(self, user_id: str) -> User:
        user = await self.user_directory.get_by_id(user_id)
        if user is None:
            self._auth_failed("user_not_found")
            raise UserNotFoundError()
        if not user.is_active:
            self._auth_failed("user_inactive")
            raise UserInactiveError()
        return user

    @staticmethod
    def _auth_failed(reason: str, **extra: Any) -> None:
        BusinessEvents.auth_failed(reason=reason, auth_type="bearer", **extra)


def _claimed_scopes(claims: dict[str, Any], user: User) -> list[str]:
    """scopes 声明可为列表或空格分隔字符串，缺省时取用户默认 scopes。"""
    scopes = claims.get("scopes")
    if isinstance(scopes, str):
        scopes = scopes.split()
    if isinstance(scopes, list):
        return [str(scope) for scope in scopes]
    return list(user.default_scopes)

