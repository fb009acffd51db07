"""
Domain exceptions shared by every app.

Services raise these; the exception handlers registered on the NinjaAPI
(see apps.core.handlers) turn them into the JSON error envelope.
"""
from enum import IntEnum
from typing import Any, Optional


class ErrorCode(IntEnum):
    # Validation
    VALIDATION_ERROR = 1000
    INVALID_INPUT = 1001
    INVALID_FORMAT = 1002
    MISSING_REQUIRED_FIELD = 1003

    # Authentication / authorization
    AUTHENTICATION_ERROR = 1100
    AUTHORIZATION_ERROR = 1101
    TOKEN_EXPIRED = 1102
    TOKEN_INVALID = 1103
    INSUFFICIENT_PERMISSIONS = 1104

    # Resources
    RESOURCE_NOT_FOUND = 1200
    RESOURCE_LOCKED = 1201
    RESOURCE_CONFLICT = 1202

    # Database
    DATABASE_ERROR = 1300
    QUERY_FAILED = 1301
    CONNECTION_ERROR = 1302

    # Throttling
    RATE_LIMIT_ERROR = 1400

    # Server
    INTERNAL_SERVER_ERROR = 1500
    SERVICE_UNAVAILABLE = 1501
    EXTERNAL_SERVICE_ERROR = 1502


ERROR_MESSAGES = {
    ErrorCode.VALIDATION_ERROR: "The provided data is invalid",
    ErrorCode.INVALID_INPUT: "The input provided is not acceptable",
    ErrorCode.INVALID_FORMAT: "The data format is incorrect",
    ErrorCode.MISSING_REQUIRED_FIELD: "A required field is missing",
    ErrorCode.AUTHENTICATION_ERROR: "Authentication failed",
    ErrorCode.AUTHORIZATION_ERROR: "You are not authorized to perform this action",
    ErrorCode.TOKEN_EXPIRED: "Your session has expired",
    ErrorCode.TOKEN_INVALID: "Invalid authentication token",
    ErrorCode.INSUFFICIENT_PERMISSIONS: "You do not have sufficient permissions",
    ErrorCode.RESOURCE_NOT_FOUND: "The requested resource was not found",
    ErrorCode.RESOURCE_LOCKED: "The resource was modified by another request",
    ErrorCode.RESOURCE_CONFLICT: "The resource already exists",
    ErrorCode.DATABASE_ERROR: "A database error occurred",
    ErrorCode.QUERY_FAILED: "The database query failed",
    ErrorCode.CONNECTION_ERROR: "Unable to connect to the database",
    ErrorCode.RATE_LIMIT_ERROR: "Too many requests, please try again later",
    ErrorCode.INTERNAL_SERVER_ERROR: "An unexpected error occurred",
    ErrorCode.SERVICE_UNAVAILABLE: "The service is temporarily unavailable",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "An external service failed to respond",
}


class ApiError(Exception):
    """Base class for errors that map onto an HTTP response."""
    status_code = 500
    default_code = ErrorCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[ErrorCode] = None,
        details: Optional[Any] = None,
    ):
        self.code = code or self.default_code
        self.message = message or ERROR_MESSAGES[self.code]
        self.details = details
        super().__init__(self.message)


class ValidationFailed(ApiError):
    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR


class AuthenticationFailed(ApiError):
    status_code = 401
    default_code = ErrorCode.AUTHENTICATION_ERROR


class PermissionDenied(ApiError):
    status_code = 403
    default_code = ErrorCode.INSUFFICIENT_PERMISSIONS


class NotFound(ApiError):
    status_code = 404
    default_code = ErrorCode.RESOURCE_NOT_FOUND


class Conflict(ApiError):
    status_code = 409
    default_code = ErrorCode.RESOURCE_CONFLICT


class RateLimited(ApiError):
    status_code = 429
    default_code = ErrorCode.RATE_LIMIT_ERROR


class ServiceUnavailable(ApiError):
    status_code = 503
    default_code = ErrorCode.SERVICE_UNAVAILABLE


def version_conflict(expected: int, actual: int) -> Conflict:
    """Error for an update carrying a stale version number."""
    return Conflict(
        "Resource was modified by another request. Reload and try again.",
        code=ErrorCode.RESOURCE_LOCKED,
        details={"expected": expected, "actual": actual},
    )
