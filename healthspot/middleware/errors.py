"""Error handling middleware."""

from typing import Any

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)

from healthspot.core.errors import HealthSpotError, RateLimitExceeded
from healthspot.core.logging import get_logger

logger = get_logger()

# Map exception types to status codes (None means use exception's status_code)
ErrorMapping = dict[type[Exception], int | None]

ERROR_MAPPING: ErrorMapping = {
    KeyError: HTTP_404_NOT_FOUND,
    ValueError: HTTP_422_UNPROCESSABLE_ENTITY,
    RequestValidationError: HTTP_422_UNPROCESSABLE_ENTITY,
    HealthSpotError: None,
    StarletteHTTPException: None,
}


def _status_for(exc: Exception) -> int:
    for exc_type, status_code in ERROR_MAPPING.items():
        if isinstance(exc, exc_type):
            if status_code is not None:
                return status_code
            return getattr(exc, "status_code", HTTP_500_INTERNAL_SERVER_ERROR)
    return HTTP_500_INTERNAL_SERVER_ERROR


def _detail_for(exc: Exception, status_code: int) -> tuple[str, Any]:
    if isinstance(exc, HealthSpotError):
        return exc.message, exc.details or None
    if isinstance(exc, RequestValidationError):
        return "Request validation failed", {"errors": jsonable_encoder(exc.errors())}
    if isinstance(exc, StarletteHTTPException):
        return str(exc.detail), None
    if isinstance(exc, KeyError):
        return (f"'{exc.args[0]}'" if exc.args else str(exc)), None
    if status_code >= HTTP_500_INTERNAL_SERVER_ERROR and not isinstance(exc, ValueError):
        # Unexpected failures never leak internals
        return "Internal server error", None
    return str(exc.args[0] if exc.args else exc), None


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """Build the JSON error body and log the failure."""
    status_code = _status_for(exc)
    message, details = _detail_for(exc, status_code)
    correlation_id = getattr(request.state, "correlation_id", None)

    log = logger.error if status_code >= HTTP_500_INTERNAL_SERVER_ERROR else logger.warning
    log(
        "request_error",
        error_type=exc.__class__.__name__,
        error_message=str(exc),
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        correlation_id=correlation_id,
    )

    content: dict[str, Any] = {
        "error": exc.__class__.__name__,
        "message": message,
        "status_code": status_code,
        "correlation_id": correlation_id or "unknown",
    }
    if details:
        content["details"] = details
    if isinstance(exc, HealthSpotError) and exc.extra:
        content = {**jsonable_encoder(exc.extra), **content}

    response = JSONResponse(status_code=status_code, content=content)
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    if isinstance(exc, RateLimitExceeded):
        response.headers["Retry-After"] = str(exc.retry_after)
    return response


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Route application and framework errors through ``error_response``."""
    app.add_exception_handler(HealthSpotError, handle_exception)
    app.add_exception_handler(RequestValidationError, handle_exception)
    app.add_exception_handler(HTTPException, handle_exception)
    app.add_exception_handler(StarletteHTTPException, handle_exception)
    app.add_exception_handler(KeyError, handle_exception)
    app.add_exception_handler(ValueError, handle_exception)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Last line of defence for exceptions no handler claimed."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            return error_response(request, exc)
