"""
Request correlation and access logging.

Every request gets a correlation id (taken from the X-Correlation-ID header
when the caller supplies a sane one) that is echoed on the response and
stamped on every log record emitted while the request is being served.
"""
import logging
import re
import time
import uuid
from contextvars import ContextVar

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

CORRELATION_HEADER = 'X-Correlation-ID'
_VALID_CORRELATION_ID = re.compile(r'^[A-Za-z0-9\-_.]{8,64}$')

_correlation_id: ContextVar[str] = ContextVar('correlation_id', default='-')


def get_correlation_id() -> str:
    return _correlation_id.get()


class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to every log record."""

    def filter(self, record):
        record.correlation_id = _correlation_id.get()
        return True


def get_client_ip(request) -> str:
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '') or 'unknown'


class RequestLoggingMiddleware(MiddlewareMixin):
    """
    Assigns a correlation id and logs method, path, status and duration.
    """

    def process_request(self, request):
        incoming = request.headers.get(CORRELATION_HEADER, '')
        correlation_id = incoming if _VALID_CORRELATION_ID.match(incoming) else str(uuid.uuid4())
        request.correlation_id = correlation_id
        request._correlation_token = _correlation_id.set(correlation_id)
        request._started_at = time.monotonic()

    def process_response(self, request, response):
        correlation_id = getattr(request, 'correlation_id', None)
        if correlation_id:
            response[CORRELATION_HEADER] = correlation_id

        started_at = getattr(request, '_started_at', None)
        if started_at is not None:
            duration_ms = (time.monotonic() - started_at) * 1000
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                f"{request.method} {request.path} -> {response.status_code} ({duration_ms:.1f}ms)",
            )

        token = getattr(request, '_correlation_token', None)
        if token is not None:
            _correlation_id.reset(token)
            request._correlation_token = None
        return response
