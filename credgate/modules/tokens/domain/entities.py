"""Access token domain entities."""

from datetime import datetime

from pydantic import Field

from credgate.core.domain.base_entity import BaseEntity, utc_now


class AccessToken(BaseEntity):
    """Stored record of one issued access/refresh token pair.

    Only digests are kept; the plaintext tokens leave the system once, in
    the issuance response. Scopes and expiries never change after
    issuance, and ``is_active`` only ever goes from true to false.
    """

    token_hash: str = Field(..., description="SHA-256 hex of the access token")
    refresh_token_hash: str = Field(..., description="SHA-256 hex of the refresh token")
    api_key_id: str = Field(..., description="Issuing credential")
    user_id: str = Field(..., description="Principal the token acts for")
    scopes: list[str] = Field(default_factory=list, description="Granted scopes")
    is_active: bool = Field(default=True, description="False once revoked")
    expires_at: datetime = Field(..., description="Access token expiry")
    refresh_token_expires_at: datetime = Field(..., description="Refresh token expiry")
    last_used_at: datetime | None = Field(default=None, description="Last use")
    last_used_ip: str | None = Field(default=None, description="Last client IP")
    labels: dict[str, str] = Field(default_factory=dict, description="Issuance labels")

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) > self.expires_at

    def is_refresh_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) > self.refresh_token_expires_at

    def revoke(self) -> bool:
        """Mark the record inactive. Returns False when it already was."""
        if not self.is_active:
            return False
        self.is_active = False
        self._update_timestamp()
        return True

    def record_usage(self, ip_address: str | None, used_at: datetime) -> None:
        self.last_used_at = used_at
        self.last_used_ip = ip_address
