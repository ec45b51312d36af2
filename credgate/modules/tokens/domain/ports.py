"""Token module ports."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True)
class SignedToken:
    """A freshly signed access token and its storage digest."""

    token: str
    token_hash: str
    expires_at: datetime


class TokenSigner(Protocol):
    """Signs and decodes self-describing access tokens."""

    def sign_access_token(
        self,
        subject: str,
        api_key_id: str,
        scopes: list[str],
        ttl_seconds: int,
        now: datetime,
    ) -> SignedToken: ...

    def decode(self, token: str) -> dict[str, Any]:
        """Verify signature and expiry and return the claims.

        Raises TokenExpiredError or InvalidTokenError.
        """
        ...
