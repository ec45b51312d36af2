"""Tests for the API Key module: entity, credential store, service and verifier."""

from __future__ import annotations

import hashlib
import re
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from credgate.core.application.security import AuthType
from credgate.core.application.telemetry import drain_pending
from credgate.core.domain.exceptions import InvalidScopeFormatError
from credgate.modules.api_keys.application import credential_store
from credgate.modules.api_keys.application.credential_store import GeneratedCredentials
from credgate.modules.api_keys.application.models import ApiKeyChanges
from credgate.modules.api_keys.application.service import ApiKeyService
from credgate.modules.api_keys.application.verifier import CredentialVerifier
from credgate.modules.api_keys.domain.entities import ApiKey
from credgate.modules.api_keys.domain.exceptions import (
    ApiKeyExpiredError,
    ApiKeyInactiveError,
    ApiKeyNotFoundError,
    CredentialGenerationError,
    InvalidApiKeyError,
    InvalidApiSecretError,
    IpNotAllowedError,
    MissingCredentialsError,
)
from credgate.modules.tokens.domain.entities import AccessToken
from credgate.modules.users.domain.entities import User
from credgate.modules.users.domain.exceptions import UserInactiveError
from tests.fakes import (
    InMemoryAccessTokenRepository,
    InMemoryApiKeyRepository,
    InMemoryUserDirectory,
    RecordingUsageRecorder,
)


def _key(**overrides) -> ApiKey:
    fields = {
        "user_id": "user-1",
        "name": "Test Key",
        "access_key": "ak_" + "0" * 32,
        "secret_key_hash": "abc123hash",
        "scopes": ["read"],
    }
    fields.update(overrides)
    return ApiKey(**fields)


# ============================================
# Domain Entity Tests
# ============================================


class TestApiKeyEntity:
    """Tests for the ApiKey domain entity."""

    def test_defaults(self) -> None:
        key = _key()
        assert key.is_active is True
        assert key.allowed_ips == []
        assert key.rate_limit == 1000
        assert key.expires_at is None
        assert key.labels == {}

    def test_is_expired(self) -> None:
        now = datetime.now(UTC)
        assert _key().is_expired(now) is False
        assert _key(expires_at=now + timedelta(days=1)).is_expired(now) is False
        assert _key(expires_at=now - timedelta(seconds=1)).is_expired(now) is True

    def test_empty_allow_list_admits_anyone(self) -> None:
        key = _key()
        assert key.is_ip_allowed("10.0.0.1") is True
        assert key.is_ip_allowed(None) is True

    def test_allow_list(self) -> None:
        key = _key(allowed_ips=["10.0.0.2"])
        assert key.is_ip_allowed("10.0.0.2") is True
        assert key.is_ip_allowed("10.0.0.1") is False
        assert key.is_ip_allowed(None) is False

    def test_deactivate_is_idempotent(self) -> None:
        key = _key()
        key.deactivate()
        stamp = key.updated_at
        key.deactivate()
        assert key.is_active is False
        assert key.updated_at == stamp

    def test_access_key_prefix(self) -> None:
        assert _key(access_key="ak_0123456789abcdef").access_key_prefix == "ak_01234567"


# ============================================
# Credential Store Tests
# ============================================


class TestCredentialStore:
    """凭证生成与 secret 校验测试。"""

    def test_generated_formats(self) -> None:
        generated = credential_store.generate_credentials()
        assert re.fullmatch(r"ak_[0-9a-f]{32}", generated.access_key)
        assert re.fullmatch(r"sk_[0-9a-f]{64}", generated.secret_key)
        assert generated.secret_key_hash == hashlib.sha256(
            generated.secret_key.encode()
        ).hexdigest()

    def test_generated_values_differ(self) -> None:
        first = credential_store.generate_credentials()
        second = credential_store.generate_credentials()
        assert first.access_key != second.access_key
        assert first.secret_key != second.secret_key

    def test_verify_secret(self) -> None:
        secret, secret_hash = credential_store.generate_secret()
        assert credential_store.verify_secret(secret, secret_hash) is True
        assert credential_store.verify_secret(secret + "x", secret_hash) is False

    @pytest.mark.anyio
    async def test_touch_schedules_write(self, recorder: RecordingUsageRecorder) -> None:
        key = _key()
        now = datetime.now(UTC)
        credential_store.touch(recorder, key, "10.0.0.1", now)
        await drain_pending()
        assert recorder.api_key_usage == [(key.id, "10.0.0.1", now)]
        assert key.last_used_at == now

    @pytest.mark.anyio
    async def test_touch_failure_never_reaches_caller(self) -> None:
        failing = RecordingUsageRecorder(fail_with=RuntimeError("db down"))
        credential_store.touch(failing, _key(), None, datetime.now(UTC))
        await drain_pending()


# ============================================
# Authentication Tests
# ============================================


class TestAuthenticate:
    """Tests for the ordered credential checks."""

    @pytest.mark.anyio
    async def test_success(
        self, api_key_service: ApiKeyService, user: User
    ) -> None:
        issued = await api_key_service.create_key(user_id=user.id, name="Agent")
        result = await api_key_service.authenticate(
            issued.api_key.access_key, issued.secret_key, "10.0.0.1"
        )
        assert result.api_key.id == issued.api_key.id
        assert result.user.id == user.id

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("access_key", "secret"), [(None, "sk_x"), ("ak_x", None), ("", "")]
    )
    async def test_missing_credentials(
        self, api_key_service: ApiKeyService, access_key, secret
    ) -> None:
        with pytest.raises(MissingCredentialsError) as exc_info:
            await api_key_service.authenticate(access_key, secret, None)
        assert exc_info.value.http_status_code == 400

    @pytest.mark.anyio
    async def test_unknown_key(self, api_key_service: ApiKeyService) -> None:
        with pytest.raises(InvalidApiKeyError):
            await api_key_service.authenticate("ak_unknown", "sk_x", None)

    @pytest.mark.anyio
    async def test_inactive_checked_before_secret(
        self, api_key_service: ApiKeyService, key_repo: InMemoryApiKeyRepository
    ) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        key_repo.keys[issued.api_key.id].is_active = False
        with pytest.raises(ApiKeyInactiveError):
            await api_key_service.authenticate(issued.api_key.access_key, "wrong", None)

    @pytest.mark.anyio
    async def test_expired_checked_before_secret(
        self, api_key_service: ApiKeyService
    ) -> None:
        issued = await api_key_service.create_key(
            user_id="user-1", expires_at=datetime.now(UTC) - timedelta(minutes=1)
        )
        with pytest.raises(ApiKeyExpiredError) as exc_info:
            await api_key_service.authenticate(issued.api_key.access_key, "wrong", None)
        assert exc_info.value.http_status_code == 403

    @pytest.mark.anyio
    async def test_wrong_secret(self, api_key_service: ApiKeyService) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        with pytest.raises(InvalidApiSecretError) as exc_info:
            await api_key_service.authenticate(
                issued.api_key.access_key, "sk_" + "f" * 64, None
            )
        assert exc_info.value.http_status_code == 401

    @pytest.mark.anyio
    async def test_ip_not_allowed(self, api_key_service: ApiKeyService) -> None:
        issued = await api_key_service.create_key(
            user_id="user-1", allowed_ips=["10.0.0.2"]
        )
        with pytest.raises(IpNotAllowedError) as exc_info:
            await api_key_service.authenticate(
                issued.api_key.access_key, issued.secret_key, "10.0.0.1"
            )
        assert exc_info.value.error_code == "IP_NOT_ALLOWED"

    @pytest.mark.anyio
    async def test_inactive_owner(
        self, api_key_service: ApiKeyService, users: InMemoryUserDirectory
    ) -> None:
        users.add(User(id="user-2", is_active=False))
        issued = await api_key_service.create_key(user_id="user-2")
        with pytest.raises(UserInactiveError):
            await api_key_service.authenticate(
                issued.api_key.access_key, issued.secret_key, None
            )

    @pytest.mark.anyio
    async def test_missing_owner(self, api_key_service: ApiKeyService) -> None:
        issued = await api_key_service.create_key(user_id="ghost")
        with pytest.raises(UserInactiveError):
            await api_key_service.authenticate(
                issued.api_key.access_key, issued.secret_key, None
            )

    @pytest.mark.anyio
    async def test_revalidate_missing_key_is_inactive(
        self, api_key_service: ApiKeyService
    ) -> None:
        with pytest.raises(ApiKeyInactiveError):
            await api_key_service.revalidate("no-such-key")


# ============================================
# Management Tests
# ============================================


class TestManagement:
    """API Key 管理操作测试。"""

    @pytest.mark.anyio
    async def test_create_defaults(
        self, api_key_service: ApiKeyService, key_repo: InMemoryApiKeyRepository
    ) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        key = issued.api_key

        assert key.scopes == ["read", "write"]
        assert key.rate_limit == 1000
        assert key.name.startswith("API Key ")
        stored = key_repo.keys[key.id]
        assert stored.secret_key_hash != issued.secret_key
        assert credential_store.verify_secret(issued.secret_key, stored.secret_key_hash)

    @pytest.mark.anyio
    async def test_create_rejects_bad_scope(self, api_key_service: ApiKeyService) -> None:
        with pytest.raises(InvalidScopeFormatError):
            await api_key_service.create_key(user_id="user-1", scopes=["read", "a b"])

    @pytest.mark.anyio
    async def test_create_retries_on_collision(
        self, api_key_service: ApiKeyService, key_repo: InMemoryApiKeyRepository
    ) -> None:
        existing = await api_key_service.create_key(user_id="user-1")
        colliding = GeneratedCredentials(
            access_key=existing.api_key.access_key,
            secret_key="sk_collide",
            secret_key_hash=credential_store.hash_secret("sk_collide"),
        )
        fresh = credential_store.generate_credentials()

        with patch.object(
            credential_store, "generate_credentials", side_effect=[colliding, fresh]
        ):
            issued = await api_key_service.create_key(user_id="user-1")

        assert issued.api_key.access_key == fresh.access_key
        assert issued.secret_key == fresh.secret_key
        assert len(key_repo.keys) == 2

    @pytest.mark.anyio
    async def test_create_gives_up_after_attempts(
        self, api_key_service: ApiKeyService
    ) -> None:
        existing = await api_key_service.create_key(user_id="user-1")
        colliding = GeneratedCredentials(
            access_key=existing.api_key.access_key,
            secret_key="sk_collide",
            secret_key_hash="hash",
        )
        with patch.object(
            credential_store, "generate_credentials", return_value=colliding
        ) as generate:
            with pytest.raises(CredentialGenerationError) as exc_info:
                await api_key_service.create_key(user_id="user-1")

        assert generate.call_count == 5
        assert exc_info.value.http_status_code == 500

    @pytest.mark.anyio
    async def test_get_foreign_key_is_not_found(
        self, api_key_service: ApiKeyService
    ) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        with pytest.raises(ApiKeyNotFoundError):
            await api_key_service.get_key("user-2", issued.api_key.id)
        admin_view = await api_key_service.get_key(
            "user-2", issued.api_key.id, as_admin=True
        )
        assert admin_view.id == issued.api_key.id

    @pytest.mark.anyio
    async def test_list_keys_filters_and_paginates(
        self, api_key_service: ApiKeyService
    ) -> None:
        for _ in range(3):
            await api_key_service.create_key(user_id="user-1")
        inactive = await api_key_service.create_key(user_id="user-1")
        await api_key_service.deactivate_key("user-1", inactive.api_key.id)
        await api_key_service.create_key(user_id="user-2")

        keys, total = await api_key_service.list_keys("user-1", page=1, page_size=2)
        assert total == 4
        assert len(keys) == 2

        active, active_total = await api_key_service.list_keys("user-1", is_active=True)
        assert active_total == 3
        assert all(key.is_active for key in active)

    @pytest.mark.anyio
    async def test_update_policy(
        self, api_key_service: ApiKeyService, key_repo: InMemoryApiKeyRepository
    ) -> None:
        issued = await api_key_service.create_key(
            user_id="user-1", expires_at=datetime.now(UTC) + timedelta(days=1)
        )
        updated = await api_key_service.update_key(
            "user-1",
            issued.api_key.id,
            ApiKeyChanges(
                name="Renamed",
                scopes=["billing.read"],
                allowed_ips=["10.0.0.2"],
                rate_limit=50,
                labels={"team": "billing"},
                clear_expiry=True,
            ),
        )
        assert updated.name == "Renamed"
        assert updated.scopes == ["billing.read"]
        assert updated.allowed_ips == ["10.0.0.2"]
        assert updated.rate_limit == 50
        assert updated.labels == {"team": "billing"}
        assert updated.expires_at is None
        assert key_repo.keys[issued.api_key.id].name == "Renamed"

    @pytest.mark.anyio
    async def test_update_rejects_bad_scope(self, api_key_service: ApiKeyService) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        with pytest.raises(InvalidScopeFormatError):
            await api_key_service.update_key(
                "user-1", issued.api_key.id, ApiKeyChanges(scopes=["bad scope"])
            )

    @pytest.mark.anyio
    async def test_regenerate_secret(self, api_key_service: ApiKeyService) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        regenerated = await api_key_service.regenerate_secret("user-1", issued.api_key.id)

        assert regenerated.secret_key != issued.secret_key
        with pytest.raises(InvalidApiSecretError):
            await api_key_service.authenticate(
                issued.api_key.access_key, issued.secret_key, None
            )
        result = await api_key_service.authenticate(
            issued.api_key.access_key, regenerated.secret_key, None
        )
        assert result.api_key.id == issued.api_key.id

    @pytest.mark.anyio
    async def test_deactivate_revokes_live_tokens(
        self,
        api_key_service: ApiKeyService,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        now = datetime.now(UTC)
        for index in range(2):
            await token_repo.create(
                AccessToken(
                    token_hash=f"t{index}",
                    refresh_token_hash=f"r{index}",
                    api_key_id=issued.api_key.id,
                    user_id="user-1",
                    scopes=["read"],
                    expires_at=now + timedelta(hours=1),
                    refresh_token_expires_at=now + timedelta(days=30),
                )
            )

        with patch(
            "credgate.modules.api_keys.application.service.BusinessEvents"
        ) as events:
            deactivated = await api_key_service.deactivate_key("user-1", issued.api_key.id)

        assert deactivated.is_active is False
        assert all(not token.is_active for token in token_repo.tokens.values())
        events.api_key_deactivated.assert_called_once_with(
            user_id="user-1", key_id=issued.api_key.id, revoked_tokens=2
        )

    @pytest.mark.anyio
    async def test_update_is_active_false_goes_through_deactivation(
        self,
        api_key_service: ApiKeyService,
        token_repo: InMemoryAccessTokenRepository,
    ) -> None:
        issued = await api_key_service.create_key(user_id="user-1")
        now = datetime.now(UTC)
        await token_repo.create(
            AccessToken(
                token_hash="t",
                refresh_token_hash="r",
                api_key_id=issued.api_key.id,
                user_id="user-1",
                expires_at=now + timedelta(hours=1),
                refresh_token_expires_at=now + timedelta(days=30),
            )
        )
        updated = await api_key_service.update_key(
            "user-1", issued.api_key.id, ApiKeyChanges(is_active=False)
        )
        assert updated.is_active is False
        assert not next(iter(token_repo.tokens.values())).is_active

    @pytest.mark.anyio
    async def test_stats(
        self, api_key_service: ApiKeyService, key_repo: InMemoryApiKeyRepository
    ) -> None:
        await api_key_service.create_key(user_id="user-1")
        expired = await api_key_service.create_key(
            user_id="user-1", expires_at=datetime.now(UTC) - timedelta(days=1)
        )
        inactive = await api_key_service.create_key(user_id="user-1")
        await api_key_service.deactivate_key("user-1", inactive.api_key.id)
        used_at = datetime.now(UTC)
        key_repo.keys[expired.api_key.id].last_used_at = used_at

        stats = await api_key_service.get_stats("user-1")
        assert stats.total == 3
        assert stats.active == 2
        assert stats.inactive == 1
        assert stats.expired == 1
        assert stats.last_used_at == used_at


# ============================================
# Credential Verifier Tests
# ============================================


class TestCredentialVerifier:
    """Tests for the credential verifier."""

    @pytest.mark.anyio
    async def test_builds_api_key_context_and_touches(
        self,
        api_key_service: ApiKeyService,
        credential_verifier: CredentialVerifier,
        recorder: RecordingUsageRecorder,
    ) -> None:
        issued = await api_key_service.create_key(
            user_id="user-1", scopes=["marketplace.read"]
        )
        auth = await credential_verifier.verify(
            issued.api_key.access_key, issued.secret_key, "10.0.0.9"
        )
        await drain_pending()

        assert auth.auth_type is AuthType.API_KEY
        assert auth.principal_id == "user-1"
        assert auth.scopes == frozenset({"marketplace.read"})
        assert auth.api_key_id == issued.api_key.id
        assert auth.token_id is None
        assert recorder.api_key_usage[0][:2] == (issued.api_key.id, "10.0.0.9")

    @pytest.mark.anyio
    async def test_failure_propagates(self, credential_verifier: CredentialVerifier) -> None:
        with pytest.raises(InvalidApiKeyError):
            await credential_verifier.verify("ak_nope", "sk_nope", None)


@pytest.mark.anyio
async def test_deactivate_without_token_revoker(user: User) -> None:
    service = ApiKeyService(
        repository=InMemoryApiKeyRepository(),
        user_directory=InMemoryUserDirectory(user),
        usage_recorder=RecordingUsageRecorder(),
    )
    issued = await service.create_key(user_id=user.id)
    deactivated = await service.deactivate_key(user.id, issued.api_key.id)
    assert deactivated.is_active is False
