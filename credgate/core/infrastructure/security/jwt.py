"""JWT access token signing and decoding."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt
from loguru import logger

from credgate.core.config import settings
from credgate.modules.tokens.application.token_store import hash_token
from credgate.modules.tokens.domain.exceptions import InvalidTokenError, TokenExpiredError
from credgate.modules.tokens.domain.ports import SignedToken


def _exp_to_datetime(exp: Any) -> datetime | None:
    """exp 声明转为 UTC 时间，非数值时返回 None。"""
    if isinstance(exp, int | float):
        return datetime.fromtimestamp(exp, UTC)
    return None


class JWTTokenSigner:
    """TokenSigner implementation using PyJWT (HS256 by default).

    Minted claims: ``sub``, ``api_key_id``, ``scopes``, ``type`` ("access"),
    ``iss``, ``aud``, ``iat``, ``exp`` and a random ``jti`` so two tokens
    issued in the same second never share a digest.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        issuer: str | None = None,
        audience: str | None = None,
    ):
        self.secret_key = secret_key or settings.SECRET_KEY
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self.issuer = issuer or settings.JWT_ISSUER
        self.audience = audience or settings.JWT_AUDIENCE

    def sign_access_token(
        self,
        subject: str,
        api_key_id: str,
        scopes: list[str],
        ttl_seconds: int,
        now: datetime,
    ) -> SignedToken:
        """签发 access token，返回令牌、摘要和过期时间。"""
        expires_at = now + timedelta(seconds=ttl_seconds)
        to_encode = {
            "sub": subject,
            "api_key_id": api_key_id,
            "scopes": scopes,
            "type": "access",
            "iss": self.issuer,
            "aud": self.audience,
            "iat": now,
            "exp": expires_at,
            "jti": uuid4().hex,
        }
        token = jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)
        # exp is serialized with second precision
        expires_at = expires_at.replace(microsecond=0)
        return SignedToken(token=token, token_hash=hash_token(token), expires_at=expires_at)

    def decode(self, token: str) -> dict[str, Any]:
        """Decode and validate a JWT token.

        Tokens without an ``aud`` claim (account session tokens issued
        elsewhere) are accepted; a present audience must match ours.

        Raises:
            TokenExpiredError: ``exp`` is in the past (details carry ``expired_at``).
            InvalidTokenError: Bad signature, malformed token or wrong audience.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"require": ["exp"], "verify_aud": False},
            )
        except jwt.ExpiredSignatureError:
            # 签名已验证，仅为读取 exp 再解码一次
            unverified = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={"verify_exp": False, "verify_aud": False},
            )
            raise TokenExpiredError(
                _exp_to_datetime(unverified.get("exp")), field="expired_at"
            ) from None
        except jwt.InvalidTokenError as e:
            logger.warning(f"Invalid token: {e}")
            raise InvalidTokenError() from e

        # aud 可为字符串或列表
        audience = payload.get("aud")
        if audience is not None and audience != self.audience:
            if not (isinstance(audience, list) and self.audience in audience):
                logger.warning(f"Token audience mismatch: {audience!r}")
                raise InvalidTokenError()

        return payload


def get_token_signer() -> JWTTokenSigner:
    """Get token signer instance."""
    return JWTTokenSigner()
