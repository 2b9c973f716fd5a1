"""
Server-held login attempt.

The attempt row is the session handle of the login state machine: the
client only ever holds an opaque handle, and the current step is read from
this row, never from the client.
"""

from django.conf import settings
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .base import BaseModel
from ..managers import LoginAttemptManager
from ..types import LoginAttemptData, LoginState


class LoginAttempt(BaseModel):
    """
    One in-flight login attempt awaiting a second factor.
    """

    STATE_CHOICES = [
        (LoginState.AWAITING_BIOMETRIC.value, 'Awaiting biometric capture'),
        (LoginState.AWAITING_CODE.value, 'Awaiting one-time code'),
    ]

    handle = models.CharField(
        max_length=64,
        unique=True,
        help_text="Opaque handle returned to the client"
    )
    account = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='login_attempts',
        help_text="Account whose password has been verified"
    )
    state = models.CharField(
        max_length=32,
        choices=STATE_CHOICES,
        help_text="Current step of the attempt"
    )
    created_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(
        db_index=True,
        help_text="After this instant the handle is rejected"
    )

    objects = LoginAttemptManager()

    class Meta:
        db_table = 'secure_login_login_attempt'
        verbose_name = _('Login Attempt')
        verbose_name_plural = _('Login Attempts')
        ordering = ['-created_at']

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= timezone.now()

    def to_data(self) -> LoginAttemptData:
        return LoginAttemptData(
            handle=self.handle,
            account_id=self.account_id,
            state=LoginState(self.state),
            expires_at=self.expires_at,
        )
