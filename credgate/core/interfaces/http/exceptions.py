"""HTTP exception handlers.

Turns domain exceptions into the standard error body
``{"error": {"code", "message", "details"?}}``. Each module's exception
classes carry http_status_code and error_code class attributes, so modules
define their own failures without touching the core layer.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from credgate.core.domain.exceptions import DomainException
from credgate.core.interfaces.http.response import ErrorResponse


async def domain_exception_handler(
    _request: Request, exc: DomainException
) -> JSONResponse:
    """Handle domain exceptions.

    The HTTP status and error code come from the exception class attributes;
    ``details`` is relayed verbatim when present.
    """
    status_code = getattr(exc, "http_status_code", 400)
    error_code = getattr(exc, "error_code", "DOMAIN_ERROR")

    # 401 响应附带 WWW-Authenticate
    headers = None
    if status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}

    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse.create(error_code, exc.message, exc.details).model_dump(),
        headers=headers,
    )


async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    """兜底处理未捕获异常，记录堆栈后返回 500。"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse.create(
            "INTERNAL_ERROR", "An internal error occurred"
        ).model_dump(),
    )
