"""API Key application result models."""

from dataclasses import dataclass
from datetime import datetime

from credgate.modules.api_keys.domain.entities import ApiKey
from credgate.modules.users.domain.entities import User


@dataclass(frozen=True)
class AuthenticatedCredential:
    """A credential that passed every authentication check, with its owner."""

    api_key: ApiKey
    user: User


@dataclass(frozen=True)
class IssuedCredential:
    """A stored credential together with its one-time plaintext secret."""

    api_key: ApiKey
    secret_key: str


@dataclass
class ApiKeyChanges:
    """Policy fields to change; ``None`` leaves a field untouched.

    ``clear_expiry`` removes an existing expiry, since ``expires_at=None``
    means "unchanged".
    """

    name: str | None = None
    description: str | None = None
    is_active: bool | None = None
    rate_limit: int | None = None
    allowed_ips: list[str] | None = None
    scopes: list[str] | None = None
    labels: dict[str, str] | None = None
    expires_at: datetime | None = None
    clear_expiry: bool = False
