"""Custom exceptions and error codes for the bookmark API.

Provides standardized error handling with correlation IDs and detailed error messages.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standard error codes for API responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"

    # Token errors
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"

    # Server errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class ErrorType(str, Enum):
    """Categories of errors for client handling."""

    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


_ERROR_TYPE_MAP: dict[ErrorCode, ErrorType] = {
    ErrorCode.VALIDATION_ERROR: ErrorType.VALIDATION,
    ErrorCode.UNAUTHORIZED: ErrorType.AUTHENTICATION,
    ErrorCode.NOT_FOUND: ErrorType.NOT_FOUND,
    ErrorCode.TOKEN_EXPIRED: ErrorType.AUTHENTICATION,
    ErrorCode.TOKEN_INVALID: ErrorType.AUTHENTICATION,
    ErrorCode.INTERNAL_ERROR: ErrorType.INTERNAL,
    ErrorCode.DATABASE_ERROR: ErrorType.INTERNAL,
}

_RETRYABLE_CODES: set[ErrorCode] = {
    ErrorCode.TOKEN_EXPIRED,  # Can retry with a fresh token
    ErrorCode.DATABASE_ERROR,
}


class APIException(Exception):
    """Base exception for all API errors."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        error_type: ErrorType | None = None,
        retryable: bool | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        self.error_type = error_type or _ERROR_TYPE_MAP.get(error_code, ErrorType.INTERNAL)
        self.retryable = retryable if retryable is not None else (error_code in _RETRYABLE_CODES)


class ValidationError(APIException):
    """Raised when request parameters are invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details,
        )


class AuthenticationError(APIException):
    """Raised when authentication fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ):
        super().__init__(message=message, error_code=error_code, status_code=401)


class TokenExpiredError(AuthenticationError):
    """Raised when the bearer token has expired."""

    def __init__(self) -> None:
        super().__init__("Access token has expired", ErrorCode.TOKEN_EXPIRED)


class TokenInvalidError(AuthenticationError):
    """Raised when the bearer token is malformed or its signature does not verify."""

    def __init__(self, reason: str | None = None) -> None:
        message = "Invalid access token"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, ErrorCode.TOKEN_INVALID)


class ResourceNotFoundError(APIException):
    """Raised when a requested resource doesn't exist."""

    def __init__(self, resource_type: str, resource_id: int | str):
        super().__init__(
            message=f"{resource_type} with ID {resource_id} not found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

