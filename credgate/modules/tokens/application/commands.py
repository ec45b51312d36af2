"""Token application commands."""

from pydantic import BaseModel

CLIENT_CREDENTIALS = "client_credentials"
SUPPORTED_GRANT_TYPES = [CLIENT_CREDENTIALS]


class ExchangeTokenCommand(BaseModel):
    """Exchange an API key + secret for a token pair."""

    grant_type: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    scope: str | None = None
    expires_in: int | None = None
    ip_address: str | None = None


class RefreshTokenCommand(BaseModel):
    """Rotate a refresh token into a new token pair."""

    refresh_token: str | None = None
    scope: str | None = None
    expires_in: int | None = None
    ip_address: str | None = None


class RevokeTokenCommand(BaseModel):
    """Revoke an access or refresh token."""

    token: str | None = None
    token_type_hint: str | None = None
