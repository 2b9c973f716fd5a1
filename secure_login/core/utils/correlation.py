"""
Correlation ID utilities for request tracking.

Every request gets a correlation ID that is stored in thread-local storage,
echoed back in response headers and attached to log records and audit
entries, so that a single login attempt can be traced across services.
"""

import threading
import uuid
from typing import Optional

from django.utils.deprecation import MiddlewareMixin


_correlation_context = threading.local()


class CorrelationIDMiddleware(MiddlewareMixin):
    """
    Middleware to generate and manage correlation IDs for each request.

    An incoming ``X-Correlation-ID`` (or ``X-Request-ID``) header is reused
    for distributed tracing; otherwise a new UUID is generated.
    """

    CORRELATION_ID_HEADER = 'X-Correlation-ID'
    REQUEST_ID_HEADER = 'X-Request-ID'

    def process_request(self, request):
        correlation_id = (
            request.META.get('HTTP_X_CORRELATION_ID') or
            request.META.get('HTTP_X_REQUEST_ID') or
            generate_correlation_id()
        )

        request.correlation_id = correlation_id
        set_correlation_id(correlation_id)

    def process_response(self, request, response):
        correlation_id = getattr(request, 'correlation_id', None)
        if correlation_id:
            response[self.CORRELATION_ID_HEADER] = correlation_id

        clear_correlation_id()
        return response


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from thread-local storage.

    Returns:
        Current correlation ID or None if not set
    """
    return getattr(_correlation_context, 'correlation_id', None)


def set_correlation_id(correlation_id: str) -> None:
    """Set the correlation ID in thread-local storage."""
    _correlation_context.correlation_id = correlation_id


def clear_correlation_id() -> None:
    """Clear the correlation ID from thread-local storage."""
    if hasattr(_correlation_context, 'correlation_id'):
        delattr(_correlation_context, 'correlation_id')


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


class CorrelationIDFilter:
    """
    Logging filter that adds the current correlation ID to log records.
    """

    def filter(self, record):
        record.correlation_id = get_correlation_id() or 'no-correlation-id'
        return True
