"""Standard API response models."""

from typing import Any, Self, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class ApiResponse[T](BaseModel):
    """Standard API response envelope."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: int = 200
    message: str = "Operation successful"
    data: T | None = None
    meta: dict | None = None

    @classmethod
    def success(
        cls,
        data: T = None,
        message: str = "Operation successful",
        code: int = 200,
        meta: dict | None = None,
    ) -> "ApiResponse[T]":
        return cls(code=code, message=message, data=data, meta=meta)


class PaginatedResponse[T](ApiResponse[list[T]]):
    """Paginated API response model."""

    data: list[T] | None = None
    meta: dict = {"total": 0, "page": 1, "page_size": 20}

    @classmethod
    def create(
        cls,
        items: list[T],
        total: int,
        page: int = 1,
        page_size: int = 20,
    ) -> Self:
        return cls(
            data=items,
            meta={
                "total": total,
                "page": page,
                "page_size": page_size,
                "total_pages": (total + page_size - 1) // page_size,
            },
        )


class ErrorResponse(BaseModel):
    """Error body shared by every failure response."""

    error: dict[str, Any]

    @classmethod
    def create(
        cls,
        code: str,
        message: str,
        details: dict | None = None,
    ) -> "ErrorResponse":
        error_dict: dict[str, Any] = {"code": code, "message": message}
        if details:
            error_dict["details"] = details
        return cls(error=error_dict)
