"""
Audit entry model.

Entries are append-only: once saved they can be neither updated nor
deleted through the ORM.
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from ..managers import AuditEntryManager


class ImmutableAuditEntryError(Exception):
    """Raised on any attempt to modify or delete a saved audit entry."""
    pass


class AuditEntry(models.Model):
    """
    (account, action tag, free-text detail, timestamp).
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this audit entry"
    )
    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='audit_entries',
        help_text="Account the event concerns"
    )
    account_ref = models.CharField(
        max_length=36,
        blank=True,
        help_text="Account id as text, kept if the account row goes away"
    )
    action = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Action tag, e.g. login_success"
    )
    detail = models.TextField(
        blank=True,
        help_text="Human-readable description of the event"
    )
    correlation_id = models.CharField(
        max_length=36,
        blank=True,
        null=True,
        help_text="Correlation ID of the request that produced the event"
    )
    timestamp = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the event happened"
    )

    objects = AuditEntryManager()

    class Meta:
        db_table = 'secure_login_audit_entry'
        verbose_name = _('Audit Entry')
        verbose_name_plural = _('Audit Entries')
        ordering = ['timestamp']
        indexes = [
            models.Index(fields=['account', 'timestamp']),
            models.Index(fields=['action', 'timestamp']),
        ]

    def __str__(self):
        return f"{self.action} for {self.account_ref} at {self.timestamp}"

    def to_dict(self) -> dict:
        return {
            'id': str(self.id),
            'account_id': self.account_ref or None,
            'action': self.action,
            'detail': self.detail,
            'timestamp': self.timestamp.isoformat(),
            'correlation_id': self.correlation_id,
        }

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableAuditEntryError("Audit entries are append-only")
        if self.account_id and not self.account_ref:
            self.account_ref = str(self.account_id)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableAuditEntryError("Audit entries cannot be deleted")
