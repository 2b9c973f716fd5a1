"""
Request utilities for extracting client metadata for security logging.
"""

from typing import Optional

from django.http import HttpRequest


def get_client_ip(request: HttpRequest) -> Optional[str]:
    """
    Get the client IP address from the request.

    Checks proxy headers first, then falls back to REMOTE_ADDR.
    """
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()

    x_real_ip = request.META.get('HTTP_X_REAL_IP')
    if x_real_ip:
        return x_real_ip.strip()

    return request.META.get('REMOTE_ADDR')
