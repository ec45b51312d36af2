"""User domain exceptions.

Each exception defines its own http_status_code and error_code, rendered by
the domain_exception_handler in core/interfaces/http/exceptions.py.
"""

from fastapi import status

from credgate.core.domain.exceptions import DomainException


class UserInactiveError(DomainException):
    """Raised when the owning principal is missing or deactivated."""

    http_status_code = status.HTTP_403_FORBIDDEN
    error_code = "USER_INACTIVE"

    def __init__(self) -> None:
        super().__init__("User account is inactive")


class UserNotFoundError(DomainException):
    """Raised when a token references a principal that no longer exists."""

    http_status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "USER_NOT_FOUND"

    def __init__(self) -> None:
        super().__init__("User associated with token not found")
