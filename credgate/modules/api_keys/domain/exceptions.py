"""API Key domain exceptions."""

from fastapi import status

from credgate.core.domain.exceptions import DomainException


class MissingCredentialsError(DomainException):
    """Raised when the key or the secret is absent from the request."""

    http_status_code = status.HTTP_400_BAD_REQUEST
    error_code = "MISSING_CREDENTIALS"

    def __init__(self) -> None:
        super().__init__("API key and secret are required")


class InvalidApiKeyError(DomainException):
    """Raised when no credential matches the presented access key."""

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_API_KEY"

    def __init__(self) -> None:
        super().__init__("Invalid API key")


class InvalidApiSecretError(DomainException):
    """Raised when the secret does not match the stored hash."""

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "INVALID_API_SECRET"

    def __init__(self) -> None:
        super().__init__("Invalid API secret")


class ApiKeyInactiveError(DomainException):
    """Raised when the credential has been deactivated."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "API_KEY_INACTIVE"

    def __init__(self) -> None:
        super().__init__("API key is inactive")


class ApiKeyExpiredError(DomainException):
    """Raised when the credential is past its expiry."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "API_KEY_EXPIRED"

    def __init__(self) -> None:
        super().__init__("API key has expired")


class IpNotAllowedError(DomainException):
    """Raised when the caller IP is outside the credential's allow-list."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "IP_NOT_ALLOWED"

    def __init__(self) -> None:
        super().__init__("IP address not allowed")


class ApiKeyNotFoundError(DomainException):
    """Raised when a managed key does not exist or belongs to someone else."""

    http_status_code = status.HTTP_404_NOT_FOUND
    error_code = "API_KEY_NOT_FOUND"

    def __init__(self, key_id: str) -> None:
        super().__init__(f"API key {key_id} not found")


class CredentialGenerationError(DomainException):
    """Raised when no unique access key could be generated."""

    http_status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CREDENTIAL_GENERATION_FAILED"

    def __init__(self) -> None:
        super().__init__("Failed to generate a unique access key")
