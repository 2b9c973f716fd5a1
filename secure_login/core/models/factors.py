"""
Authentication factor model.

One row per account holds the TOTP shared secret (encrypted at rest) and
the biometric template reference. Re-enrollment replaces the previous
secret or template entirely; there is no history of old secrets.
"""

import logging
from typing import Optional

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from .base import TimestampedModel, EncryptedFieldMixin
from ..managers import AuthFactorRecordManager
from ..types import AuthFactorData
from ..utils.encryption import DecryptionError

logger = logging.getLogger(__name__)


class AuthFactorRecord(TimestampedModel, EncryptedFieldMixin):
    """
    Enrolled factors of an account.
    """

    account = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='auth_factors',
        help_text="Account these factors belong to"
    )

    totp_secret = models.TextField(
        blank=True,
        null=True,
        help_text="Encrypted TOTP secret"
    )
    totp_enrolled = models.BooleanField(
        default=False,
        help_text="Whether possession of the TOTP secret has been proven"
    )

    biometric_template = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Opaque reference to the biometric template held by the match service"
    )
    biometric_enrolled = models.BooleanField(
        default=False,
        help_text="Whether a biometric template has been captured"
    )

    version = models.PositiveIntegerField(
        default=0,
        help_text="Incremented on every write"
    )

    objects = AuthFactorRecordManager()

    class Meta:
        db_table = 'secure_login_auth_factor'
        verbose_name = _('Authentication Factor Record')
        verbose_name_plural = _('Authentication Factor Records')

    def __str__(self):
        return (
            f"{self.account_id} (totp={self.totp_enrolled}, "
            f"biometric={self.biometric_enrolled})"
        )

    def set_totp_secret(self, secret: Optional[str]) -> None:
        self.totp_secret = self.encrypt_field('totp_secret', secret) if secret else None

    def get_totp_secret(self) -> Optional[str]:
        """
        Get the decrypted TOTP secret.

        Returns:
            Decrypted secret or None if not available
        """
        if not self.totp_secret:
            return None
        try:
            return self.decrypt_field('totp_secret', self.totp_secret)
        except DecryptionError:
            logger.error(
                "Stored TOTP secret could not be decrypted",
                extra={'account_id': str(self.account_id)}
            )
            return None

    def to_data(self) -> AuthFactorData:
        return AuthFactorData(
            totp_secret=self.get_totp_secret(),
            totp_enrolled=self.totp_enrolled,
            biometric_template=self.biometric_template,
            biometric_enrolled=self.biometric_enrolled,
            version=self.version,
        )
