"""Exception handlers of the BFF."""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from dental_admin.core.exceptions import (
    AppException,
    SessionExpiredException,
    ValidationException,
)

logger = structlog.get_logger(__name__)

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    message: Any,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    content = {"error": error, "message": message, "path": str(request.url), **extra}
    return JSONResponse(status_code=status_code, content=content, headers=headers)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Render exceptions raised by the admin services and the clinic API client.

    Validation failures carry the offending form field. An expired operator
    session answers with a bearer challenge so the browser goes back to the
    login screen. Server-side failures (the clinic API unreachable or
    answering 5xx) are logged as warnings; everything else was already
    logged by the service that raised it.
    """
    if exc.status_code >= 500:
        logger.warning(
            "clinic_api_failure",
            path=request.url.path,
            error=exc.__class__.__name__,
            status_code=exc.status_code,
        )

    extra: dict[str, Any] = {}
    if isinstance(exc, ValidationException) and exc.field:
        extra["field"] = exc.field

    return _error_response(
        request,
        exc.status_code,
        exc.__class__.__name__,
        exc.message,
        headers=BEARER_CHALLENGE if isinstance(exc, SessionExpiredException) else None,
        **extra,
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render ``HTTPException``, keeping its headers (bearer challenges among them)."""
    return _error_response(
        request,
        exc.status_code,
        "HTTPException",
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request validation errors.

    The ``ctx`` entry of each error may hold the raised exception, which is
    not JSON serializable, so it is dropped.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    details = [
        {key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()
    ]
    logger.info("request_validation_failed", path=request.url.path, errors=len(details))
    return _error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "Request validation failed",
        details=details,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("unhandled_exception", path=request.url.path, error=str(exc))
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred",
    )
