"""
Session model owned by the Django identity provider.

A session is issued only once a login attempt reaches the authenticated
state; the core consumes it through the identity provider interface and
never reads this table directly.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .base import BaseModel
from ..managers import AccountSessionManager


class AccountSession(BaseModel):
    """
    Ephemeral principal {account, issued_at} backed by an opaque token.
    """

    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sessions',
        help_text="Account this session authenticates"
    )
    token_hash = models.CharField(
        max_length=64,
        unique=True,
        help_text="SHA-256 of the session token; the token itself is never stored"
    )
    issued_at = models.DateTimeField(
        default=timezone.now,
        help_text="When the session was issued"
    )
    expires_at = models.DateTimeField(
        help_text="When the session stops being valid"
    )
    revoked_at = models.DateTimeField(
        blank=True,
        null=True,
        help_text="When the session was invalidated"
    )

    objects = AccountSessionManager()

    class Meta:
        db_table = 'secure_login_account_session'
        verbose_name = _('Account Session')
        verbose_name_plural = _('Account Sessions')
        ordering = ['-issued_at']
        indexes = [
            models.Index(fields=['account', 'revoked_at']),
            models.Index(fields=['expires_at']),
        ]

    @property
    def is_valid(self) -> bool:
        return self.revoked_at is None and self.expires_at > timezone.now()
