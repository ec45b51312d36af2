"""Base domain exceptions.

Every domain exception carries the HTTP status and error code it maps to,
so modules can define their own failures without touching the core HTTP
layer. ``details`` holds machine-readable diagnostics (required scopes,
expiry instants) that are relayed verbatim in the error body.
"""

from typing import Any

from fastapi import status


class DomainException(Exception):
    """Base exception for all domain errors.

    Subclasses customise the HTTP response through class attributes:
    - http_status_code: HTTP status code (default 400)
    - error_code: error code string (default "DOMAIN_ERROR")
    """

    http_status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "DOMAIN_ERROR"

    def __init__(
        self,
        message: str = "A domain error occurred",
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.details = details
        super().__init__(self.message)


class EntityNotFoundError(DomainException):
    """Raised when an entity is not found."""

    http_status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str | None = None):
        message = f"{entity_type} not found"
        if entity_id:
            message = f"{entity_type} with id '{entity_id}' not found"
        super().__init__(message)


class DuplicateEntityError(DomainException):
    """Raised when a duplicate entity is detected."""

    http_status_code = status.HTTP_409_CONFLICT
    error_code = "DUPLICATE_ENTITY"

    def __init__(self, entity_type: str, field: str, value: str):
        message = f"{entity_type} with {field} '{value}' already exists"
        super().__init__(message)


class ValidationError(DomainException):
    """Raised when validation fails."""

    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"


class AuthenticationError(DomainException):
    """Raised when the caller could not be authenticated."""

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"


class AuthorizationError(DomainException):
    """Raised when authorization fails."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"


class MissingAuthError(AuthenticationError):
    """Raised when a request carries no recognised credentials at all."""

    error_code = "MISSING_AUTH"

    def __init__(self) -> None:
        super().__init__(
            "Authentication required. Provide X-API-Key and X-API-Secret "
            "headers or an Authorization: Bearer token.",
        )


class SessionRequiredError(AuthorizationError):
    """Raised when an endpoint needs an account session token."""

    error_code = "SESSION_REQUIRED"

    def __init__(self) -> None:
        super().__init__(
            "This endpoint requires an account session token; "
            "API keys and tokens minted from them are not accepted",
        )


class InsufficientScopeError(AuthorizationError):
    """Raised when granted scopes do not satisfy a requirement."""

    error_code = "INSUFFICIENT_SCOPE"

    def __init__(self, required: list[str], granted: list[str]) -> None:
        super().__init__(
            "Insufficient token permissions",
            details={"required": required, "granted": granted},
        )


class MissingScopeError(AuthorizationError):
    """Raised when the caller holds no scopes at all."""

    error_code = "MISSING_SCOPE"

    def __init__(self, required: list[str]) -> None:
        super().__init__(
            "Token does not have required scopes",
            details={"required": required},
        )


class InvalidScopeFormatError(ValidationError):
    """Raised when a scope string contains characters outside the grammar."""

    error_code = "INVALID_SCOPE_FORMAT"

    def __init__(self, invalid: list[str]) -> None:
        super().__init__(
            "Scope values may only contain letters, digits and . _ : * -",
            details={"invalid": invalid},
        )
