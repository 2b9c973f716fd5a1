"""
URL configuration for the secure_login project.
"""
from django.contrib import admin
from django.core.cache import cache
from django.db import connection
from django.http import JsonResponse
from django.urls import path, include
from django.views.decorators.cache import never_cache
from django.views.decorators.http import require_http_methods

from secure_login.core.exceptions import TRANSIENT_ERRORS


@never_cache
@require_http_methods(["GET"])
def health_check(request):
    """Simple health check endpoint."""
    return JsonResponse({
        'status': 'healthy',
        'service': 'secure-login',
        'version': '1.0.0'
    })


@never_cache
@require_http_methods(["GET"])
def readiness_check(request):
    """Readiness check covering the database and the cache."""
    try:
        connection.ensure_connection()
        db_status = 'healthy'
    except TRANSIENT_ERRORS:
        db_status = 'unhealthy'

    try:
        cache.set('health_check', 'test', 1)
        cache_status = 'healthy' if cache.get('health_check') == 'test' else 'unhealthy'
    except TRANSIENT_ERRORS:
        cache_status = 'unhealthy'

    status = 'healthy' if db_status == 'healthy' and cache_status == 'healthy' else 'unhealthy'
    status_code = 200 if status == 'healthy' else 503

    return JsonResponse({
        'status': status,
        'checks': {
            'database': db_status,
            'cache': cache_status,
        }
    }, status=status_code)


urlpatterns = [
    # Health checks
    path('health/', health_check, name='health_check'),
    path('ready/', readiness_check, name='readiness_check'),

    # Admin interface
    path('admin/', admin.site.urls),

    # Core functionality endpoints
    path('api/v1/', include('secure_login.core.urls')),
]
