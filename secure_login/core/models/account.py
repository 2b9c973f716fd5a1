"""
Account model for Secure Login.

The account is the Django user model. Accounts are never deleted by the
core; deactivation is expressed through the role assignment status.
"""

import uuid

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models
from django.utils.translation import gettext_lazy as _

from ..managers import AccountManager
from ..types import AccountData


class Account(AbstractBaseUser, PermissionsMixin):
    """
    Identity record: id, email, display name and creation timestamp.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this account"
    )
    email = models.EmailField(
        _('email address'),
        unique=True,
        help_text="Email address used to sign in"
    )
    display_name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Name shown in the application"
    )
    is_active = models.BooleanField(
        default=True,
        help_text="Whether the identity provider accepts this account at all"
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the account can log into the Django admin site"
    )
    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="Timestamp when this account was created"
    )

    objects = AccountManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['display_name']

    class Meta:
        db_table = 'secure_login_account'
        verbose_name = _('Account')
        verbose_name_plural = _('Accounts')
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    def to_data(self) -> AccountData:
        return AccountData(
            id=self.id,
            email=self.email,
            display_name=self.display_name,
            created_at=self.created_at,
        )
