"""Token digests, refresh-token generation and lifetime policy."""

import hashlib
import secrets
from datetime import datetime, timedelta

from credgate.core.config import settings


def hash_token(token: str) -> str:
    """Compute the SHA-256 storage digest of an access or refresh token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_refresh_token() -> tuple[str, str]:
    """Return a new opaque refresh token and its digest.

    Refresh tokens carry no claims; everything about them lives in the
    stored record.
    """
    token = secrets.token_hex(settings.REFRESH_TOKEN_BYTES)
    return token, hash_token(token)


def clamp_ttl(ttl_seconds: int | None) -> int:
    """将请求的有效期限制在 [MIN, MAX] 秒之间，未指定时使用默认值。"""
    if ttl_seconds is None:
        ttl_seconds = settings.ACCESS_TOKEN_DEFAULT_TTL_SECONDS
    return max(
        settings.ACCESS_TOKEN_MIN_TTL_SECONDS,
        min(ttl_seconds, settings.ACCESS_TOKEN_MAX_TTL_SECONDS),
    )


def refresh_expires_at(now: datetime) -> datetime:
    """refresh token 固定有效期，从签发时刻起算。"""
    return now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
