"""
Response utilities for consistent API envelopes.
"""

from typing import Any, Dict, Optional

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response

from .correlation import get_correlation_id


def success_response(
    data: Any = None,
    message: str = "Success",
    status_code: int = status.HTTP_200_OK,
) -> Response:
    """
    Create a standardized success response.

    Args:
        data: Response data
        message: Success message
        status_code: HTTP status code

    Returns:
        DRF Response object
    """
    response_data = {
        'success': True,
        'message': message,
        'timestamp': timezone.now().isoformat(),
    }

    if data is not None:
        response_data['data'] = data

    return Response(response_data, status=status_code)


def error_response(
    message: str = "An error occurred",
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> Response:
    """
    Create a standardized error response.

    Args:
        message: Error message
        error_code: Machine-readable error code
        details: Additional error details
        status_code: HTTP status code

    Returns:
        DRF Response object
    """
    response_data = {
        'success': False,
        'error': {
            'message': message,
            'code': error_code or 'UNKNOWN_ERROR',
        },
        'timestamp': timezone.now().isoformat(),
    }

    if details:
        response_data['error']['details'] = details

    correlation_id = get_correlation_id()
    if correlation_id:
        response_data['error']['correlation_id'] = correlation_id

    return Response(response_data, status=status_code)
