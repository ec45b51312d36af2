"""Token command handlers: exchange and refresh rotation."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

from loguru import logger

from credgate.core.domain.base_entity import utc_now
from credgate.core.domain.exceptions import DomainException
from credgate.core.domain.scopes import intersect_scopes, parse_scope_string
from credgate.core.infrastructure.logging import BusinessEvents
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.tokens.application.commands import (
    CLIENT_CREDENTIALS,
    SUPPORTED_GRANT_TYPES,
    ExchangeTokenCommand,
    RefreshTokenCommand,
)
from credgate.modules.tokens.application.models import TokenPair
from credgate.modules.tokens.application.token_store import (
    clamp_ttl,
    hash_token,
    issue_refresh_token,
    refresh_expires_at,
)
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.tokens.domain.exceptions import (
    CredentialScopesNarrowedError,
    InvalidRefreshTokenError,
    InvalidScopeError,
    MissingRefreshTokenError,
    RefreshTokenExpiredError,
    TokenPersistenceFailedError,
    TokenRevokedError,
    UnsupportedGrantTypeError,
)
from credgate.modules.tokens.domain.ports import TokenSigner
from credgate.modules.tokens.domain.repository import AccessTokenRepository


@asynccontextmanager
async def persistence_guard(operation: str, user_id: str) -> AsyncIterator[None]:
    """Turn storage failures into TOKEN_PERSISTENCE_FAILED.

    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except DomainException:
        raise
    except Exception as e:
        logger.exception(
            f"Token persistence failed: operation={operation}, user_id={user_id}"
        )
        raise TokenPersistenceFailedError() from e


class TokenMinter:
    """Signs a token pair and persists its record."""

    def __init__(self, repository: AccessTokenRepository, signer: TokenSigner):
        self.repository = repository
        self.signer = signer

    async def mint(
        self,
        *,
        user_id: str,
        api_key_id: str,
        scopes: list[str],
        ttl_seconds: int,
        now: datetime,
        labels: dict[str, str],
    ) -> TokenPair:
        """签发 access token 与 refresh token，并写入一条令牌记录。"""
        signed = self.signer.sign_access_token(
            subject=user_id,
            api_key_id=api_key_id,
            scopes=scopes,
            ttl_seconds=ttl_seconds,
            now=now,
        )
        # 只持久化摘要，明文仅出现在返回值中
        refresh_token, refresh_hash = issue_refresh_token()
        refresh_expiry = refresh_expires_at(now)

        record = await self.repository.create(
            AccessToken(
                token_hash=signed.token_hash,
                refresh_token_hash=refresh_hash,
                api_key_id=api_key_id,
                user_id=user_id,
                scopes=scopes,
                expires_at=signed.expires_at,
                refresh_token_expires_at=refresh_expiry,
                labels=labels,
            )
        )

        return TokenPair(
            token_id=record.id,
            access_token=signed.token,
            expires_in=ttl_seconds,
            expires_at=signed.expires_at,
            refresh_token=refresh_token,
            refresh_token_expires_at=refresh_expiry,
            scopes=scopes,
        )


class ExchangeTokenHandler:
    """Handle the client-credentials exchange (key + secret -> token pair)."""

    def __init__(self, api_key_service: ApiKeyService, minter: TokenMinter):
        self.api_key_service = api_key_service
        self.minter = minter

    async def handle(self, command: ExchangeTokenCommand) -> TokenPair:
        if command.grant_type != CLIENT_CREDENTIALS:
            raise UnsupportedGrantTypeError(command.grant_type, SUPPORTED_GRANT_TYPES)

        now = utc_now()
        authenticated = await self.api_key_service.authenticate(
            command.access_key, command.secret_key, command.ip_address, now
        )
        api_key = authenticated.api_key

        # 请求的 scopes 与凭证 scopes 取交集，保持请求顺序
        requested = parse_scope_string(command.scope)
        if requested:
            scopes = intersect_scopes(requested, api_key.scopes)
            if not scopes:
                raise InvalidScopeError(requested=requested, allowed=api_key.scopes)
        else:
            # 未指定 scope 时沿用凭证的全部 scopes（可能为空）
            scopes = list(api_key.scopes)

        async with persistence_guard("exchange", api_key.user_id):
            pair = await self.minter.mint(
                user_id=api_key.user_id,
                api_key_id=api_key.id,
                scopes=scopes,
                ttl_seconds=clamp_ttl(command.expires_in),
                now=now,
                labels={"grant_type": CLIENT_CREDENTIALS},
            )

        # 令牌写入成功后才记录凭证使用
        self.api_key_service.touch(api_key, command.ip_address, now)
        BusinessEvents.token_issued(
            user_id=api_key.user_id,
            api_key_id=api_key.id,
            token_id=pair.token_id,
            scopes=scopes,
            expires_at=pair.expires_at,
        )
        return pair


class RefreshTokenHandler:
    """Handle refresh-token rotation.

    The old record is revoked and the new one inserted in the same
    transaction, so at most one pair derived from a refresh token is ever
    live.
    """

    def __init__(
        self,
        api_key_service: ApiKeyService,
        repository: AccessTokenRepository,
        minter: TokenMinter,
    ):
        self.api_key_service = api_key_service
        self.repository = repository
        self.minter = minter

    async def handle(self, command: RefreshTokenCommand) -> TokenPair:
        if not command.refresh_token:
            raise MissingRefreshTokenError()

        now = utc_now()
        record = await self.repository.find_any_by_refresh_hash(
            hash_token(command.refresh_token)
        )
        if record is None:
            logger.warning("Access token record not found for refresh token hash")
            raise InvalidRefreshTokenError()
        if not record.is_active:
            logger.warning(
                f"Refresh of revoked token: token_id={record.id}, user_id={record.user_id}"
            )
            raise TokenRevokedError()
        if record.is_refresh_expired(now):
            raise RefreshTokenExpiredError()

        authenticated = await self.api_key_service.revalidate(record.api_key_id, now)
        api_key = authenticated.api_key

        # 新令牌 scopes = 请求 ∩ 原令牌 ∩ 凭证当前 scopes
        allowed = intersect_scopes(record.scopes, api_key.scopes)
        requested = parse_scope_string(command.scope)
        if not requested:
            if record.scopes and not allowed:
                raise CredentialScopesNarrowedError(
                    previous=list(record.scopes), allowed=allowed
                )
            scopes = allowed
        else:
            scopes = intersect_scopes(requested, allowed)
            if not scopes:
                raise InvalidScopeError(requested=requested, allowed=allowed)

        # 吊销旧记录与写入新记录在同一事务内
        async with persistence_guard("refresh", record.user_id):
            if not await self.repository.revoke(record.id):
                raise TokenRevokedError()
            pair = await self.minter.mint(
                user_id=record.user_id,
                api_key_id=record.api_key_id,
                scopes=scopes,
                ttl_seconds=clamp_ttl(command.expires_in),
                now=now,
                labels={"grant_type": "refresh_token", "rotated_from": record.id},
            )

        BusinessEvents.token_refreshed(
            user_id=record.user_id,
            old_token_id=record.id,
            new_token_id=pair.token_id,
            scopes=scopes,
        )
        return pair
