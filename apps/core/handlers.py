"""
Exception handlers for the NinjaAPI.

All error responses share one envelope:

    {
        "success": false,
        "error": {"code": 1200, "name": "RESOURCE_NOT_FOUND", "message": "...", "details": null},
        "correlation_id": "...",
        "timestamp": "2024-01-01T00:00:00+00:00"
    }
"""
import logging
from typing import Any, Optional

from django.http import Http404
from django.utils import timezone
from ninja import NinjaAPI
from ninja.errors import AuthenticationError, HttpError, ValidationError

from .exceptions import ApiError, ErrorCode, ERROR_MESSAGES
from .middleware import get_correlation_id

logger = logging.getLogger(__name__)


HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTHENTICATION_ERROR,
    403: ErrorCode.INSUFFICIENT_PERMISSIONS,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    409: ErrorCode.RESOURCE_CONFLICT,
    422: ErrorCode.VALIDATION_ERROR,
    429: ErrorCode.RATE_LIMIT_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}


def error_body(code: ErrorCode, message: str, details: Optional[Any] = None) -> dict:
    return {
        "success": False,
        "error": {
            "code": int(code),
            "name": code.name,
            "message": message,
            "details": details,
        },
        "correlation_id": get_correlation_id(),
        "timestamp": timezone.now().isoformat(),
    }


def _clean_validation_errors(errors) -> list:
    """Reduce pydantic error dicts to JSON-safe field errors."""
    cleaned = []
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        cleaned.append({
            "field": ".".join(p for p in loc if p not in ("body", "query", "path", "form", "payload")),
            "loc": loc,
            "message": str(err.get("msg", "Invalid value")),
            "type": str(err.get("type", "value_error")),
        })
    return cleaned


def register_exception_handlers(api: NinjaAPI) -> None:
    """Attach the envelope-producing handlers to the given API instance."""

    @api.exception_handler(ApiError)
    def handle_api_error(request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code.name} on {request.method} {request.path}: {exc.message}")
        return api.create_response(
            request,
            error_body(exc.code, exc.message, exc.details),
            status=exc.status_code,
        )

    @api.exception_handler(ValidationError)
    def handle_validation_error(request, exc: ValidationError):
        return api.create_response(
            request,
            error_body(
                ErrorCode.VALIDATION_ERROR,
                ERROR_MESSAGES[ErrorCode.VALIDATION_ERROR],
                _clean_validation_errors(exc.errors),
            ),
            status=400,
        )

    @api.exception_handler(AuthenticationError)
    def handle_authentication_error(request, exc: AuthenticationError):
        return api.create_response(
            request,
            error_body(ErrorCode.AUTHENTICATION_ERROR, "Authentication required"),
            status=401,
        )

    @api.exception_handler(HttpError)
    def handle_http_error(request, exc: HttpError):
        status = exc.status_code
        code = HTTP_STATUS_CODES.get(
            status,
            ErrorCode.INTERNAL_SERVER_ERROR if status >= 500 else ErrorCode.INVALID_INPUT,
        )
        return api.create_response(request, error_body(code, str(exc)), status=status)

    @api.exception_handler(Http404)
    def handle_not_found(request, exc: Http404):
        return api.create_response(
            request,
            error_body(ErrorCode.RESOURCE_NOT_FOUND, ERROR_MESSAGES[ErrorCode.RESOURCE_NOT_FOUND]),
            status=404,
        )

    @api.exception_handler(Exception)
    def handle_unexpected(request, exc: Exception):
        logger.exception(
            f"Unhandled {type(exc).__name__} on {request.method} {request.path}: {exc}"
        )
        return api.create_response(
            request,
            error_body(
                ErrorCode.INTERNAL_SERVER_ERROR,
                ERROR_MESSAGES[ErrorCode.INTERNAL_SERVER_ERROR],
            ),
            status=500,
        )
