"""API Key API schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class CreateApiKeyRequest(BaseModel):
    """Create API key request."""

    name: str | None = Field(
        default=None, min_length=1, max_length=100, description="Key name"
    )
    description: str | None = Field(default=None, max_length=500)
    scopes: list[str] | None = Field(
        default=None, description="Granted scopes (defaults to read, write)"
    )
    allowed_ips: list[str] = Field(
        default_factory=list, description="Allowed client IPs; empty allows any"
    )
    rate_limit: int | None = Field(default=None, ge=0, description="Requests per hour")
    expires_at: datetime | None = Field(default=None, description="Expiry instant")
    metadata: dict[str, str] = Field(default_factory=dict, description="Free-form labels")

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Billing exporter",
                "scopes": ["billing.read", "marketplace.*"],
                "allowed_ips": ["10.0.0.2"],
            }
        }


class UpdateApiKeyRequest(BaseModel):
    """Policy change. Omitted fields stay unchanged; ``expires_at: null``
    removes the expiry."""

    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None
    rate_limit: int | None = Field(default=None, ge=0)
    allowed_ips: list[str] | None = None
    scopes: list[str] | None = None
    metadata: dict[str, str] | None = None
    expires_at: datetime | None = None


class ApiKeyResponse(BaseModel):
    """API key response (without the secret or its hash)."""

    id: str = Field(..., description="Key ID")
    name: str
    description: str | None = None
    access_key: str = Field(..., description="Public access key")
    scopes: list[str]
    allowed_ips: list[str]
    rate_limit: int
    is_active: bool
    expires_at: datetime | None = None
    last_used_at: datetime | None = None
    last_used_ip: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ApiKeyCreatedResponse(BaseModel):
    """Response carrying a plaintext secret (creation or regeneration)."""

    key: ApiKeyResponse
    secret_key: str = Field(
        ..., description="Plaintext secret; shown only once, store it now"
    )


class ApiKeyStatsResponse(BaseModel):
    total: int
    active: int
    inactive: int
    expired: int
    last_used_at: datetime | None = None
