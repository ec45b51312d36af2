"""API Key domain entities."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import Field

from credgate.core.domain.base_entity import BaseEntity, utc_now


class ApiKey(BaseEntity):
    """Long-lived machine credential (public access key + hashed secret)."""

    user_id: str = Field(..., description="Owning principal id")
    name: str = Field(..., description="Human label")
    description: str | None = Field(default=None, description="Free-form description")
    access_key: str = Field(..., description="Public, globally unique key id")
    secret_key_hash: str = Field(..., description="SHA-256 hex of the secret")
    scopes: list[str] = Field(default_factory=list, description="Maximal token grant")
    allowed_ips: list[str] = Field(
        default_factory=list, description="Allowed client IPs, empty means any"
    )
    rate_limit: int = Field(default=1000, ge=0, description="Advisory requests/hour")
    expires_at: datetime | None = Field(default=None, description="Expiry instant")
    last_used_at: datetime | None = Field(default=None, description="Last use")
    last_used_ip: str | None = Field(default=None, description="Last client IP")
    is_active: bool = Field(default=True, description="Deactivation flag")
    labels: dict[str, str] = Field(default_factory=dict, description="Owner labels")

    @property
    def access_key_prefix(self) -> str:
        """Short, loggable form of the access key."""
        return self.access_key[:11]

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check if the key has expired."""
        if self.expires_at is None:
            return False
        return (now or utc_now()) > self.expires_at

    def is_ip_allowed(self, ip_address: str | None) -> bool:
        """An empty allow-list admits every caller."""
        if not self.allowed_ips:
            return True
        return ip_address is not None and ip_address in self.allowed_ips

    def deactivate(self) -> None:
        if not self.is_active:
            return
        self.is_active = False
        self._update_timestamp()

    def replace_secret(self, secret_key_hash: str) -> None:
        """Swap in a newly generated secret; the old one stops working."""
        self.secret_key_hash = secret_key_hash
        self._update_timestamp()

    def mark_changed(self) -> None:
        """Stamp a policy change made through direct field assignment."""
        self._update_timestamp()

    def record_usage(self, ip_address: str | None, used_at: datetime) -> None:
        self.last_used_at = used_at
        self.last_used_ip = ip_address


@dataclass(frozen=True)
class ApiKeyStats:
    """Per-owner credential counters."""

    total: int
    active: int
    expired: int
    last_used_at: datetime | None

    @property
    def inactive(self) -> int:
        return self.total - self.active
