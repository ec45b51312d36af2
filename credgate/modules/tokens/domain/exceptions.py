"""Token domain exceptions.

Each exception defines its own http_status_code and error_code, rendered by
the domain_exception_handler in core/interfaces/http/exceptions.py.
"""

from datetime import datetime

from fastapi import status

from credgate.core.domain.exceptions import DomainException


class UnsupportedGrantTypeError(DomainException):
    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "UNSUPPORTED_GRANT_TYPE"

    def __init__(self, grant_type: str | None, supported: list[str]) -> None:
        super().__init__(
            f"Grant type '{grant_type}' is not supported",
            details={"supported": supported},
        )


class MissingRefreshTokenError(DomainException):
    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "MISSING_REFRESH_TOKEN"

    def __init__(self) -> None:
        super().__init__("refresh_token is required")


class MissingTokenError(DomainException):
    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "MISSING_TOKEN"

    def __init__(self) -> None:
        super().__init__("token is required")


class InvalidRefreshTokenError(DomainException):
    """Raised when no record matches the presented refresh token."""

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_REFRESH_TOKEN"

    def __init__(self) -> None:
        super().__init__("Invalid refresh token")


class RefreshTokenExpiredError(DomainException):
    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "REFRESH_TOKEN_EXPIRED"

    def __init__(self) -> None:
        super().__init__("Refresh token has expired")


class TokenRevokedError(DomainException):
    """Raised when a token record has been revoked or rotated away."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "TOKEN_REVOKED"

    def __init__(self) -> None:
        super().__init__("Token has been revoked")


class TokenExpiredError(DomainException):
    """Raised for an expired access token.

    Store-backed tokens report ``expires_at``; self-contained ones report
    ``expired_at`` (taken from their ``exp`` claim).
    """

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "TOKEN_EXPIRED"

    def __init__(self, expired: datetime | None, *, field: str = "expires_at") -> None:
        details = {field: expired.isoformat()} if expired else None
        super().__init__("Access token has expired", details=details)


class InvalidTokenError(DomainException):
    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class InvalidTokenTypeError(DomainException):
    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_TOKEN_TYPE"

    def __init__(self, token_type: str) -> None:
        super().__init__(f"Token type '{token_type}' cannot be used for API access")


class InvalidScopeError(DomainException):
    """Raised when scope negotiation leaves nothing to grant."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "INVALID_SCOPE"

    def __init__(
        self,
        requested: list[str],
        allowed: list[str],
        message: str = "Requested scopes exceed the credential's scopes",
    ) -> None:
        super().__init__(
            message,
            details={"requested": requested, "allowed": allowed},
        )


class CredentialScopesNarrowedError(InvalidScopeError):
    """刷新时凭证的当前 scopes 与原令牌 scopes 已无交集。"""

    def __init__(self, previous: list[str], allowed: list[str]) -> None:
        super().__init__(
            requested=previous,
            allowed=allowed,
            message="Credential scopes were narrowed; no previously granted scope remains",
        )


class TokenNotFoundError(DomainException):
    http_status_code = status.HTTP_404_NOT_FOUND
    error_code = "TOKEN_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("Token not found")


class TokenPersistenceFailedError(DomainException):
    """Raised when a token record could not be written."""

    http_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "TOKEN_PERSISTENCE_FAILED"

    def __init__(self) -> None:
        super().__init__("Failed to store token")
