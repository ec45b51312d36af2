"""Token API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class TokenRequest(BaseModel):
    """Client-credentials exchange request.

    ``client_id`` / ``client_secret`` are only read when the X-API-Key /
    X-API-Secret headers are absent.
    """

    grant_type: str | None = Field(default=None, description="Must be client_credentials")
    client_id: str | None = Field(default=None, description="API access key")
    client_secret: str | None = Field(default=None, description="API secret")
    scope: str | None = Field(default=None, description="Space separated scopes")
    expires_in: int | None = Field(
        default=None, description="Requested lifetime in seconds (clamped to 300..86400)"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "grant_type": "client_credentials",
                "scope": "read write",
                "expires_in": 3600,
            }
        }


class RefreshRequest(BaseModel):
    refresh_token: str | None = Field(default=None, description="Opaque refresh token")
    scope: str | None = Field(default=None, description="Optional narrower scope")
    expires_in: int | None = Field(default=None, description="Requested lifetime in seconds")


class RevokeRequest(BaseModel):
    token: str | None = Field(default=None, description="Access or refresh token")
    token_type_hint: str | None = Field(
        default=None, description="access_token or refresh_token"
    )


class TokenResponse(BaseModel):
    """Issued token pair. The plaintext tokens are shown only here."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = Field(..., description="Access token lifetime in seconds")
    expires_at: datetime
    refresh_token: str
    scope: str = Field(..., description="Granted scopes, space separated")


class TokenInfoResponse(BaseModel):
    scopes: list[str]
    expires_at: datetime
    created_at: datetime
    last_used_at: datetime | None = None


class TokenSummaryResponse(BaseModel):
    """Token record as listed to its owner (no digests)."""

    id: str
    api_key_id: str
    scopes: list[str]
    is_active: bool
    expires_at: datetime
    refresh_token_expires_at: datetime
    last_used_at: datetime | None = None
    last_used_ip: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime
