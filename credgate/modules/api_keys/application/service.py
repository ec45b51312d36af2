"""API Key application service."""

from datetime import datetime

from loguru import logger

from credgate.core.config import settings
from credgate.core.domain.base_entity import utc_now
from credgate.core.domain.exceptions import DuplicateEntityError
from credgate.core.domain.ports.usage import UsageRecorder
from credgate.core.domain.scopes import validate_scopes
from credgate.core.infrastructure.logging import BusinessEvents
from credgate.modules.api_keys.application import credential_store
from credgate.modules.api_keys.application.models import (
    ApiKeyChanges,
    AuthenticatedCredential,
    IssuedCredential,
)
from credgate.modules.api_keys.domain.entities import ApiKey, ApiKeyStats
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
from credgate.modules.api_keys.domain.ports import TokenRevoker
from credgate.modules.api_keys.domain.repository import ApiKeyRepository
from credgate.modules.users.domain.entities import User
from credgate.modules.users.domain.exceptions import UserInactiveError
from credgate.modules.users.domain.repository import UserDirectory


class ApiKeyService:
    """Application service for API Key authentication and management."""

    def __init__(
        self,
        repository: ApiKeyRepository,
        user_directory: UserDirectory,
        usage_recorder: UsageRecorder,
        token_revoker: TokenRevoker | None = None,
    ) -> None:
        self._repo = repository
        self._users = user_directory
        self._usage = usage_recorder
        self._token_revoker = token_revoker

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(
        self,
        access_key: str | None,
        secret_key: str | None,
        client_ip: str | None,
        now: datetime | None = None,
    ) -> AuthenticatedCredential:
        """Authenticate an access key / secret pair.

        Checks run in a fixed order so that the error a caller sees does
        not depend on which of several problems is checked first.

        Raises:
            MissingCredentialsError: Key or secret absent.
            InvalidApiKeyError: Unknown access key.
            ApiKeyInactiveError: Key deactivated.
            ApiKeyExpiredError: Key past its expiry.
            InvalidApiSecretError: Secret mismatch.
            IpNotAllowedError: Caller IP outside the allow-list.
            UserInactiveError: Owner missing or deactivated.
        """
        if not access_key or not secret_key:
            raise MissingCredentialsError()

        now = now or utc_now()
        prefix = access_key[:11]

        # 1. 查找凭证（任意状态）
        api_key = await self._repo.get_by_access_key(access_key)
        if api_key is None:
            self._auth_failed("key_not_found", access_key_prefix=prefix)
            raise InvalidApiKeyError()

        # 2. 状态与有效期
        if not api_key.is_active:
            self._auth_failed("key_inactive", key_id=api_key.id)
            raise ApiKeyInactiveError()

        if api_key.is_expired(now):
            self._auth_failed("key_expired", key_id=api_key.id)
            raise ApiKeyExpiredError()

        # 3. 常量时间比较 secret 摘要
        if not credential_store.verify_secret(secret_key, api_key.secret_key_hash):
            self._auth_failed("secret_mismatch", key_id=api_key.id)
            raise InvalidApiSecretError()

        # 4. IP 白名单（为空时不限制）
        if not api_key.is_ip_allowed(client_ip):
            self._auth_failed("ip_not_allowed", key_id=api_key.id, client_ip=client_ip)
            raise IpNotAllowedError()

        # 5. 所属用户必须存在且启用
        user = await self._require_active_owner(api_key)
        return AuthenticatedCredential(api_key=api_key, user=user)

    async def revalidate(
        self, api_key_id: str, now: datetime | None = None
    ) -> AuthenticatedCredential:
        """刷新令牌时重新校验凭证及其所属用户（不需要 secret）。"""
        now = now or utc_now()
        api_key = await self._repo.get_by_id(api_key_id)
        if api_key is None or not api_key.is_active:
            self._auth_failed("key_inactive", key_id=api_key_id)
            raise ApiKeyInactiveError()
        if api_key.is_expired(now):
            self._auth_failed("key_expired", key_id=api_key_id)
            raise ApiKeyExpiredError()

        user = await self._require_active_owner(api_key)
        return AuthenticatedCredential(api_key=api_key, user=user)

    def touch(
        self, api_key: ApiKey, client_ip: str | None, now: datetime | None = None
    ) -> None:
        """异步记录 last_used_at / last_used_ip，写入失败不影响调用方。"""
        credential_store.touch(self._usage, api_key, client_ip, now or utc_now())

    async def _require_active_owner(self, api_key: ApiKey) -> User:
        user = await self._users.get_by_id(api_key.user_id)
        if user is None or not user.is_active:
            self._auth_failed("user_inactive", key_id=api_key.id)
            raise UserInactiveError()
        return user

    @staticmethod
    def _auth_failed(reason: str, **extra: object) -> None:
        BusinessEvents.auth_failed(reason=reason, auth_type="api_key", **extra)

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    async def create_key(
        self,
        user_id: str,
        name: str | None = None,
        description: str | None = None,
        scopes: list[str] | None = None,
        allowed_ips: list[str] | None = None,
        rate_limit: int | None = None,
        expires_at: datetime | None = None,
        labels: dict[str, str] | None = None,
    ) -> IssuedCredential:
        """Create a new API key.

        The plaintext secret is only available in the returned value.

        Raises:
            InvalidScopeFormatError: A scope violates the scope grammar.
            CredentialGenerationError: No unique access key after retries.
        """
        granted = validate_scopes(
            scopes if scopes is not None else settings.API_KEY_DEFAULT_SCOPES
        )
        now = utc_now()

        # access_key 冲突时重新生成，由唯一索引兜底

        for attempt in range(1, settings.API_KEY_GENERATION_ATTEMPTS + 1):
            generated = credential_store.generate_credentials()
            api_key = ApiKey(
                user_id=user_id,
                name=name or f"API Key {now.isoformat()}",
                description=description,
                access_key=generated.access_key,
                secret_key_hash=generated.secret_key_hash,
                scopes=granted,
                allowed_ips=list(allowed_ips or []),
                rate_limit=(
                    rate_limit
                    if rate_limit is not None
                    else settings.API_KEY_DEFAULT_RATE_LIMIT
                ),
                expires_at=expires_at,
                labels=dict(labels or {}),
            )
            try:
                created = await self._repo.create(api_key)
            except DuplicateEntityError:
                logger.warning(
                    f"Access key collision on attempt {attempt} for user {user_id}"
                )
                continue
            break
        else:
            logger.error(f"Could not generate a unique access key for user {user_id}")
            raise CredentialGenerationError()

        BusinessEvents.api_key_created(
            user_id=user_id,
            key_id=created.id,
            access_key_prefix=created.access_key_prefix,
            scopes=created.scopes,
        )
        return IssuedCredential(api_key=created, secret_key=generated.secret_key)

    async def list_keys(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        is_active: bool | None = None,
    ) -> tuple[list[ApiKey], int]:
        """分页列出用户的 API Key，按创建时间倒序。"""
        return await self._repo.list_by_user(
            user_id, page=page, page_size=page_size, is_active=is_active
        )

    async def get_key(self, user_id: str, key_id: str, *, as_admin: bool = False) -> ApiKey:
        """Get one key.

        Raises:
            ApiKeyNotFoundError: If the key doesn't exist or doesn't belong to the user.
        """
        api_key = await self._repo.get_by_id(key_id)
        if api_key is None or (api_key.user_id != user_id and not as_admin):
            raise ApiKeyNotFoundError(key_id)
        return api_key

    async def update_key(
        self,
        user_id: str,
        key_id: str,
        changes: ApiKeyChanges,
        *,
        as_admin: bool = False,
    ) -> ApiKey:
        """Apply a policy change.

        Setting ``is_active`` to false goes through :meth:`deactivate_key`
        so the key's live tokens are revoked as well.
        """
        api_key = await self.get_key(user_id, key_id, as_admin=as_admin)
        changed: list[str] = []

        if changes.name is not None:
            api_key.name = changes.name
            changed.append("name")
        if changes.description is not None:
            api_key.description = changes.description
            changed.append("description")
        if changes.rate_limit is not None:
            api_key.rate_limit = changes.rate_limit
            changed.append("rate_limit")
        if changes.allowed_ips is not None:
            api_key.allowed_ips = list(changes.allowed_ips)
            changed.append("allowed_ips")
        if changes.scopes is not None:
            api_key.scopes = validate_scopes(changes.scopes)
            changed.append("scopes")
        if changes.labels is not None:
            api_key.labels = dict(changes.labels)
            changed.append("metadata")
        if changes.clear_expiry:
            api_key.expires_at = None
            changed.append("expires_at")
        elif changes.expires_at is not None:
            api_key.expires_at = changes.expires_at
            changed.append("expires_at")
        if changes.is_active is True and not api_key.is_active:
            api_key.is_active = True
            changed.append("is_active")

        if changed:
            api_key.mark_changed()
            api_key = await self._repo.update(api_key)
            BusinessEvents.api_key_updated(
                user_id=api_key.user_id, key_id=api_key.id, fields=changed
            )

        if changes.is_active is False and api_key.is_active:
            api_key = await self._deactivate(api_key)

        return api_key

    async def regenerate_secret(
        self, user_id: str, key_id: str, *, as_admin: bool = False
    ) -> IssuedCredential:
        """Replace the key's secret; the previous secret stops working at once."""
        api_key = await self.get_key(user_id, key_id, as_admin=as_admin)
        secret, secret_hash = credential_store.generate_secret()
        api_key.replace_secret(secret_hash)
        updated = await self._repo.update(api_key)

        BusinessEvents.api_key_secret_regenerated(
            user_id=updated.user_id, key_id=updated.id
        )
        return IssuedCredential(api_key=updated, secret_key=secret)

    async def deactivate_key(
        self, user_id: str, key_id: str, *, as_admin: bool = False
    ) -> ApiKey:
        """Deactivate a key and revoke every live token minted from it."""
        api_key = await self.get_key(user_id, key_id, as_admin=as_admin)
        return await self._deactivate(api_key)

    async def _deactivate(self, api_key: ApiKey) -> ApiKey:
        """停用凭证并吊销其签发的全部有效令牌。"""
        api_key.deactivate()
        updated = await self._repo.update(api_key)

        revoked = 0
        if self._token_revoker is not None:
            revoked = await self._token_revoker.revoke_all_for_api_key(updated.id)

        BusinessEvents.api_key_deactivated(
            user_id=updated.user_id, key_id=updated.id, revoked_tokens=revoked
        )
        return updated

    async def get_stats(self, user_id: str) -> ApiKeyStats:
        """统计用户的 API Key 数量及最近使用时间。"""
        return await self._repo.get_stats(user_id, utc_now())
