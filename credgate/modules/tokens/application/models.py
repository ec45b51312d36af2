"""Token application result models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TokenPair:
    """Issued access + refresh token, returned to interfaces exactly once."""

    token_id: str
    access_token: str
    expires_in: int
    expires_at: datetime
    refresh_token: str
    refresh_token_expires_at: datetime
    scopes: list[str]
    token_type: str = "Bearer"

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)
