"""
Django app configuration for secure_login.core.
"""

import logging
from django.apps import AppConfig

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    """Configuration for the core authentication app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'secure_login.core'
    label = 'core'
    verbose_name = 'Secure Login Core'

    def ready(self):
        """
        Configure structured security logging once all models are loaded.
        """
        from .logging import configure_structlog

        configure_structlog()
        logger.info("Secure Login core app initialized")
