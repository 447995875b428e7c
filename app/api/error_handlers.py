"""Global exception handlers for the bookmark API.

Provides consistent error responses across all endpoints with correlation ID tracking.
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from app.api.exceptions import APIException, ErrorCode, ErrorType
from app.api.models.responses import error_response, make_error
from app.domain.exceptions.domain_exceptions import SearchValidationError

logger = logging.getLogger(__name__)


def _correlation_id(request: Request) -> str | None:
    return getattr(request.state, "correlation_id", None)


async def api_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle custom API exceptions."""
    if not isinstance(exc, APIException):
        raise exc

    correlation_id = _correlation_id(request)
    logger.error(
        f"API error: {exc.error_code.value} - {exc.message}",
        extra={
            "correlation_id": correlation_id,
            "error_code": exc.error_code.value,
            "error_type": exc.error_type.value,
            "status_code": exc.status_code,
            "retryable": exc.retryable,
            "path": request.url.path,
        },
    )

    detail = make_error(
        code=exc.error_code,
        message=exc.message,
        error_type=exc.error_type,
        retryable=exc.retryable,
        details=exc.details or None,
    )
    return JSONResponse(
        status_code=exc.status_code, content=error_response(detail, correlation_id=correlation_id)
    )


async def search_validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle search parameters rejected by the query normalizer."""
    if not isinstance(exc, SearchValidationError):
        raise exc

    correlation_id = _correlation_id(request)
    logger.warning(
        "search_validation_failed",
        extra={
            "correlation_id": correlation_id,
            "error": exc.message,
            "path": request.url.path,
        },
    )

    detail = make_error(
        code=ErrorCode.VALIDATION_ERROR,
        message=exc.message,
        error_type=ErrorType.VALIDATION,
        details=exc.details or None,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(detail, correlation_id=correlation_id),
    )


async def request_validation_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI request validation errors (bad query or path parameters)."""
    if not isinstance(exc, RequestValidationError):
        raise exc

    correlation_id = _correlation_id(request)

    formatted_errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]

    logger.warning(
        "Request validation failed",
        extra={
            "correlation_id": correlation_id,
            "errors": formatted_errors,
            "path": request.url.path,
        },
    )

    detail = make_error(
        code=ErrorCode.VALIDATION_ERROR,
        message="Request validation failed",
        error_type=ErrorType.VALIDATION,
        details={"fields": formatted_errors},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=error_response(detail, correlation_id=correlation_id),
    )


async def database_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle database-related exceptions."""
    correlation_id = _correlation_id(request)

    logger.error(
        f"Database error: {exc}",
        exc_info=True,
        extra={"correlation_id": correlation_id, "path": request.url.path},
    )

    detail = make_error(
        code=ErrorCode.DATABASE_ERROR,
        message="Database temporarily unavailable",
        error_type=ErrorType.INTERNAL,
        retryable=True,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=error_response(detail, correlation_id=correlation_id),
    )


async def global_exception_handler(request: Request, exc: Exception) -> Response:
    """Catch-all handler for unexpected exceptions."""
    correlation_id = _correlation_id(request)

    logger.error(
        f"Unhandled exception: {exc}",
        exc_info=True,
        extra={"correlation_id": correlation_id, "path": request.url.path},
    )

    # Don't leak error details unless debugging
    debug_mode = logging.getLogger().isEnabledFor(logging.DEBUG)
    message = str(exc) if debug_mode else "An internal server error occurred"

    detail = make_error(
        code=ErrorCode.INTERNAL_ERROR,
        message=message,
        error_type=ErrorType.INTERNAL,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response(detail, correlation_id=correlation_id),
    )
