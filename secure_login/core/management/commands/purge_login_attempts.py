"""
Management command to delete expired login attempts.

Expired attempts are already rejected when presented; this only keeps the
table small.
"""

import logging
from django.core.management.base import BaseCommand

from secure_login.core.models import LoginAttempt


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Delete login attempts whose handle has expired'

    def handle(self, *args, **options):
        deleted = LoginAttempt.objects.purge_expired()
        logger.info(f"Purged {deleted} expired login attempts")
        self.stdout.write(self.style.SUCCESS(f'Deleted {deleted} expired login attempts'))
