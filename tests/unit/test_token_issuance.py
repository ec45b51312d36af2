"""Tests for token exchange, refresh rotation and the lifetime policy."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from credgate.core.domain.base_entity import utc_now
from credgate.core.domain.exceptions import InvalidScopeFormatError
from credgate.core.infrastructure.security.jwt import JWTTokenSigner
from credgate.modules.api_keys.application.models import IssuedCredential
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.api_keys.domain.exceptions import (
    ApiKeyInactiveError,
    InvalidApiSecretError,
    MissingCredentialsError,
)
from credgate.modules.tokens.application.commands import (
    ExchangeTokenCommand,
    RefreshTokenCommand,
)
from credgate.modules.tokens.application.handlers import (
    ExchangeTokenHandler,
    RefreshTokenHandler,
)
from credgate.modules.tokens.application.token_store import clamp_ttl, hash_token
from credgate.modules.tokens.application.verifier import TokenVerifier
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
from credgate.modules.users.domain.exceptions import UserInactiveError
from tests.fakes import InMemoryAccessTokenRepository, InMemoryUserDirectory


@pytest.fixture
async def issued(api_key_service: ApiKeyService) -> IssuedCredential:
    return await api_key_service.create_key(
        user_id="user-1", name="Agent", scopes=["read", "write"]
    )


def _exchange(issued: IssuedCredential, **overrides) -> ExchangeTokenCommand:
    fields = {
        "grant_type": "client_credentials",
        "access_key": issued.api_key.access_key,
        "secret_key": issued.secret_key,
        "ip_address": "10.0.0.1",
    }
    fields.update(overrides)
    return ExchangeTokenCommand(**fields)


# ============================================
# Lifetime policy
# ============================================


class TestClampTtl:
    def test_default(self) -> None:
        assert clamp_ttl(None) == 3600

    @pytest.mark.parametrize(
        ("requested", "expected"),
        [(60, 300), (300, 300), (7200, 7200), (86400, 86400), (999999, 86400)],
    )
    def test_bounds(self, requested: int, expected: int) -> None:
        assert clamp_ttl(requested) == expected


# ============================================
# Exchange
# ============================================


class TestExchange:
    """client_credentials 换取令牌测试。"""

    @pytest.mark.anyio
    async def test_defaults(
        self,
        exchange_handler: ExchangeTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
        signer: JWTTokenSigner,
    ) -> None:
        pair = await exchange_handler.handle(_exchange(issued))

        assert pair.token_type == "Bearer"
        assert pair.expires_in == 3600
        assert pair.scopes == ["read", "write"]
        assert pair.scope == "read write"
        assert len(pair.refresh_token) == 64

        record = token_repo.tokens[pair.token_id]
        assert record.token_hash == hash_token(pair.access_token)
        assert record.refresh_token_hash == hash_token(pair.refresh_token)
        assert record.api_key_id == issued.api_key.id
        assert record.labels == {"grant_type": "client_credentials"}
        assert record.expires_at == pair.expires_at
        assert (
            pair.refresh_token_expires_at - utc_now() > timedelta(days=29, hours=23)
        )

        claims = signer.decode(pair.access_token)
        assert claims["sub"] == "user-1"
        assert claims["api_key_id"] == issued.api_key.id
        assert claims["scopes"] == ["read", "write"]
        assert claims["type"] == "access"
        assert claims["aud"] == "credgate"

    @pytest.mark.anyio
    async def test_requested_scope_and_ttl(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        pair = await exchange_handler.handle(
            _exchange(issued, scope="write", expires_in=7200)
        )
        assert pair.scopes == ["write"]
        assert pair.expires_in == 7200

    @pytest.mark.anyio
    async def test_partial_overlap_keeps_intersection(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        pair = await exchange_handler.handle(_exchange(issued, scope="read admin"))
        assert pair.scopes == ["read"]

    @pytest.mark.anyio
    async def test_scope_outside_grant(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        with pytest.raises(InvalidScopeError) as exc_info:
            await exchange_handler.handle(_exchange(issued, scope="admin"))
        assert exc_info.value.http_status_code == 403
        assert exc_info.value.details == {
            "requested": ["admin"],
            "allowed": ["read", "write"],
        }

    @pytest.mark.anyio
    async def test_malformed_scope(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        with pytest.raises(InvalidScopeFormatError):
            await exchange_handler.handle(_exchange(issued, scope="read wr!te"))

    @pytest.mark.anyio
    async def test_ttl_is_clamped(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        short = await exchange_handler.handle(_exchange(issued, expires_in=1))
        long = await exchange_handler.handle(_exchange(issued, expires_in=10**7))
        assert short.expires_in == 300
        assert long.expires_in == 86400

    @pytest.mark.anyio
    async def test_default_scopes_stay_within_key(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        """测试未指定 scope 时令牌 scopes 不超出凭证 scopes。"""
        pair = await exchange_handler.handle(_exchange(issued))
        assert set(pair.scopes) <= set(issued.api_key.scopes)

    @pytest.mark.anyio
    async def test_key_without_scopes_gets_none(
        self,
        exchange_handler: ExchangeTokenHandler,
        token_verifier: TokenVerifier,
        api_key_service: ApiKeyService,
    ) -> None:
        """测试没有 scopes 的凭证换取到的令牌同样没有 scopes。"""
        bare = await api_key_service.create_key(user_id="user-1", scopes=[])
        pair = await exchange_handler.handle(_exchange(bare))
        assert pair.scopes == []

        auth = await token_verifier.verify(pair.access_token)
        assert auth.scopes == frozenset()

    @pytest.mark.anyio
    @pytest.mark.parametrize("grant_type", [None, "password", "refresh_token"])
    async def test_unsupported_grant(
        self,
        exchange_handler: ExchangeTokenHandler,
        issued: IssuedCredential,
        grant_type: str | None,
    ) -> None:
        with pytest.raises(UnsupportedGrantTypeError) as exc_info:
            await exchange_handler.handle(_exchange(issued, grant_type=grant_type))
        assert exc_info.value.details == {"supported": ["client_credentials"]}

    @pytest.mark.anyio
    async def test_missing_credentials(
        self, exchange_handler: ExchangeTokenHandler
    ) -> None:
        with pytest.raises(MissingCredentialsError):
            await exchange_handler.handle(
                ExchangeTokenCommand(grant_type="client_credentials")
            )

    @pytest.mark.anyio
    async def test_wrong_secret_mints_nothing(
        self,
        exchange_handler: ExchangeTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        with pytest.raises(InvalidApiSecretError):
            await exchange_handler.handle(_exchange(issued, secret_key="sk_wrong"))
        assert token_repo.tokens == {}

    @pytest.mark.anyio
    async def test_persistence_failure(
        self,
        exchange_handler: ExchangeTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        token_repo.fail_on_create = RuntimeError("connection reset")
        with pytest.raises(TokenPersistenceFailedError) as exc_info:
            await exchange_handler.handle(_exchange(issued))
        assert exc_info.value.error_code == "TOKEN_PERSISTENCE_FAILED"
        assert exc_info.value.http_status_code == 500
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.anyio
    async def test_logs_issuance(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        with patch(
            "credgate.modules.tokens.application.handlers.BusinessEvents"
        ) as events:
            pair = await exchange_handler.handle(_exchange(issued))
        events.token_issued.assert_called_once_with(
            user_id="user-1",
            api_key_id=issued.api_key.id,
            token_id=pair.token_id,
            scopes=["read", "write"],
            expires_at=pair.expires_at,
        )

    @pytest.mark.anyio
    async def test_two_exchanges_yield_distinct_tokens(
        self, exchange_handler: ExchangeTokenHandler, issued: IssuedCredential
    ) -> None:
        first = await exchange_handler.handle(_exchange(issued))
        second = await exchange_handler.handle(_exchange(issued))
        assert first.access_token != second.access_token
        assert first.refresh_token != second.refresh_token


# ============================================
# Refresh rotation
# ============================================


class TestRefresh:
    """Tests for refresh-token rotation."""

    @pytest.mark.anyio
    async def test_rotation(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        token_verifier: TokenVerifier,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        rotated = await refresh_handler.handle(
            RefreshTokenCommand(refresh_token=original.refresh_token)
        )

        assert rotated.token_id != original.token_id
        assert rotated.refresh_token != original.refresh_token
        assert rotated.scopes == ["read", "write"]
        assert token_repo.tokens[original.token_id].is_active is False
        assert token_repo.tokens[rotated.token_id].labels == {
            "grant_type": "refresh_token",
            "rotated_from": original.token_id,
        }

        with pytest.raises(TokenRevokedError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )
        with pytest.raises(TokenRevokedError):
            await token_verifier.verify(original.access_token)

        auth = await token_verifier.verify(rotated.access_token)
        assert auth.token_id == rotated.token_id

    @pytest.mark.anyio
    async def test_narrowing(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        narrowed = await refresh_handler.handle(
            RefreshTokenCommand(
                refresh_token=original.refresh_token, scope="read", expires_in=600
            )
        )
        assert narrowed.scopes == ["read"]
        assert narrowed.expires_in == 600

    @pytest.mark.anyio
    async def test_cannot_widen(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued, scope="read"))
        with pytest.raises(InvalidScopeError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token, scope="write")
            )
        assert token_repo.tokens[original.token_id].is_active is True

    @pytest.mark.anyio
    async def test_follows_narrowed_key_scopes(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        key_repo,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        key_repo.keys[issued.api_key.id].scopes = ["read"]

        rotated = await refresh_handler.handle(
            RefreshTokenCommand(refresh_token=original.refresh_token)
        )
        assert rotated.scopes == ["read"]

    @pytest.mark.anyio
    async def test_disjoint_key_scopes_report_narrowing(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
        key_repo,
    ) -> None:
        """测试凭证 scopes 收窄到与原令牌无交集时刷新失败且旧令牌保持有效。"""
        original = await exchange_handler.handle(_exchange(issued))
        key_repo.keys[issued.api_key.id].scopes = ["admin"]

        with pytest.raises(CredentialScopesNarrowedError) as exc_info:
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )
        assert exc_info.value.error_code == "INVALID_SCOPE"
        assert "narrowed" in exc_info.value.message
        assert exc_info.value.details == {
            "requested": ["read", "write"],
            "allowed": [],
        }
        assert token_repo.tokens[original.token_id].is_active is True

    @pytest.mark.anyio
    async def test_scopeless_token_rotates(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        api_key_service: ApiKeyService,
    ) -> None:
        bare = await api_key_service.create_key(user_id="user-1", scopes=[])
        original = await exchange_handler.handle(_exchange(bare))
        rotated = await refresh_handler.handle(
            RefreshTokenCommand(refresh_token=original.refresh_token)
        )
        assert rotated.scopes == []

    @pytest.mark.anyio
    async def test_missing(self, refresh_handler: RefreshTokenHandler) -> None:
        with pytest.raises(MissingRefreshTokenError):
            await refresh_handler.handle(RefreshTokenCommand())

    @pytest.mark.anyio
    async def test_unknown(self, refresh_handler: RefreshTokenHandler) -> None:
        with pytest.raises(InvalidRefreshTokenError) as exc_info:
            await refresh_handler.handle(RefreshTokenCommand(refresh_token="nope"))
        assert exc_info.value.http_status_code == 401

    @pytest.mark.anyio
    async def test_refresh_expired(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        token_repo.tokens[original.token_id].refresh_token_expires_at = (
            utc_now() - timedelta(seconds=1)
        )
        with pytest.raises(RefreshTokenExpiredError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )

    @pytest.mark.anyio
    async def test_deactivated_key(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        key_repo,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        key_repo.keys[issued.api_key.id].is_active = False
        with pytest.raises(ApiKeyInactiveError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )

    @pytest.mark.anyio
    async def test_deactivation_through_service_revokes(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        api_key_service: ApiKeyService,
        issued: IssuedCredential,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        await api_key_service.deactivate_key("user-1", issued.api_key.id)
        with pytest.raises(TokenRevokedError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )

    @pytest.mark.anyio
    async def test_deactivated_owner(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        users: InMemoryUserDirectory,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        users.users["user-1"].is_active = False
        with pytest.raises(UserInactiveError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )

    @pytest.mark.anyio
    async def test_lost_race(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        stale = await token_repo.find_any_by_refresh_hash(
            hash_token(original.refresh_token)
        )
        # another request rotates the pair after this one read the record
        await token_repo.revoke(original.token_id)

        with patch.object(
            token_repo, "find_any_by_refresh_hash", AsyncMock(return_value=stale)
        ):
            with pytest.raises(TokenRevokedError):
                await refresh_handler.handle(
                    RefreshTokenCommand(refresh_token=original.refresh_token)
                )
        assert len(token_repo.tokens) == 1

    @pytest.mark.anyio
    async def test_persistence_failure(
        self,
        exchange_handler: ExchangeTokenHandler,
        refresh_handler: RefreshTokenHandler,
        issued: IssuedCredential,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        original = await exchange_handler.handle(_exchange(issued))
        token_repo.fail_on_create = ConnectionError("db gone")
        with pytest.raises(TokenPersistenceFailedError):
            await refresh_handler.handle(
                RefreshTokenCommand(refresh_token=original.refresh_token)
            )
