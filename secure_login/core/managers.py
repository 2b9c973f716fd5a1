"""
Custom managers for Secure Login models.

Row mutations that must not lose updates under concurrent requests for the
same account (role assignment, factor record, login attempt) run inside a
transaction and take a row lock with select_for_update().
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional, Tuple
from uuid import UUID

from django.contrib.auth.models import BaseUserManager
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db import models, transaction
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .types import AccountStatus, AuthFactorData, LoginState, Role


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


class AccountManager(BaseUserManager):
    """
    Manager for the Account user model.
    """

    def _create_user(self, email: str, password: Optional[str], **extra_fields):
        if not email:
            raise ValueError(_('The Email field must be set'))

        try:
            validate_email(email)
        except ValidationError:
            raise ValueError(_('Invalid email address format'))

        email = self.normalize_email(email)
        account = self.model(email=email, **extra_fields)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def create_user(self, email: str, password: Optional[str] = None, **extra_fields):
        """
        Create a regular account.

        Args:
            email: Email address used to sign in
            password: Raw password, hashed by the configured hasher
            **extra_fields: Additional fields such as display_name

        Returns:
            Created Account instance
        """
        extra_fields.setdefault('is_staff', False)
        extra_fields.setdefault('is_superuser', False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email: str, password: Optional[str] = None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))

        return self._create_user(email, password, **extra_fields)

    def get_by_email(self, email: str):
        """Case-insensitive lookup; returns None when no account matches."""
        return self.filter(email__iexact=email.strip()).first()

    def rename(self, account_id: UUID, display_name: str) -> int:
        """Display name is the only mutable account attribute."""
        return self.filter(id=account_id).update(display_name=display_name.strip())


class RoleAssignmentManager(models.Manager):
    """
    Manager for RoleAssignment with upsert semantics.
    """

    def for_account(self, account_id: UUID, for_update: bool = False):
        queryset = self.get_queryset()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(account_id=account_id).first()

    def upsert(self, account_id: UUID, role: Role, status: AccountStatus) -> Tuple[models.Model, bool]:
        """
        Create or update the single assignment of an account.

        Returns:
            Tuple of (assignment, changed) where changed is False when the
            stored values already matched.
        """
        with transaction.atomic():
            assignment = self.for_account(account_id, for_update=True)
            if assignment is None:
                assignment = self.create(
                    account_id=account_id,
                    role=Role(role).value,
                    status=AccountStatus(status).value,
                )
                return assignment, True

            if assignment.role == Role(role).value and assignment.status == AccountStatus(status).value:
                return assignment, False

            assignment.role = Role(role).value
            assignment.status = AccountStatus(status).value
            assignment.save(update_fields=['role', 'status', 'updated_at'])
            return assignment, True


class AuthFactorRecordManager(models.Manager):
    """
    Manager for AuthFactorRecord.
    """

    def for_account(self, account_id: UUID, for_update: bool = False):
        queryset = self.get_queryset()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(account_id=account_id).first()

    def store(self, account_id: UUID, data: AuthFactorData):
        """
        Replace the factor record of an account.

        The row is locked for the duration of the write and its version is
        bumped, so two simultaneous re-enrollments serialize instead of
        silently overwriting each other.
        """
        with transaction.atomic():
            record = self.for_account(account_id, for_update=True)
            if record is None:
                record = self.model(account_id=account_id)
            record.set_totp_secret(data.totp_secret)
            record.totp_enrolled = data.totp_enrolled
            record.biometric_template = data.biometric_template
            record.biometric_enrolled = data.biometric_enrolled
            record.version = record.version + 1
            record.save()
            return record


class AuditEntryManager(models.Manager):
    """
    Manager for append-only audit entries.
    """

    def append(
        self,
        account_id: Optional[UUID],
        action: str,
        detail: str = '',
        timestamp: Optional[datetime] = None,
        correlation_id: Optional[str] = None,
    ):
        return self.create(
            account_id=account_id,
            account_ref=str(account_id) if account_id else '',
            action=action,
            detail=detail,
            timestamp=timestamp or timezone.now(),
            correlation_id=correlation_id,
        )

    def for_account(self, account_id: UUID):
        return self.filter(account_id=account_id).order_by('timestamp')

    def recent(self, account_id: Optional[UUID] = None, limit: int = 50):
        """Newest entries first, optionally for one account."""
        entries = self.all() if account_id is None else self.filter(account_id=account_id)
        return entries.order_by('-timestamp')[:limit]


class AccountSessionManager(models.Manager):
    """
    Manager for identity-provider sessions.
    """

    def issue(self, account_id: UUID, lifetime_seconds: int):
        """
        Issue a new session.

        Returns:
            Tuple of (session, raw token). Only the hash is persisted.
        """
        token = secrets.token_urlsafe(32)
        now = timezone.now()
        session = self.create(
            account_id=account_id,
            token_hash=hash_token(token),
            issued_at=now,
            expires_at=now + timedelta(seconds=lifetime_seconds),
        )
        return session, token

    def resolve(self, token: str):
        """Return the valid session for a raw token, or None."""
        if not token:
            return None
        return self.filter(
            token_hash=hash_token(token),
            revoked_at__isnull=True,
            expires_at__gt=timezone.now(),
        ).select_related('account').first()

    def revoke_all(self, account_id: UUID, keep_token: Optional[str] = None) -> int:
        sessions = self.filter(account_id=account_id, revoked_at__isnull=True)
        if keep_token:
            sessions = sessions.exclude(token_hash=hash_token(keep_token))
        return sessions.update(revoked_at=timezone.now())

    def revoke_token(self, token: str) -> int:
        return self.filter(token_hash=hash_token(token), revoked_at__isnull=True).update(
            revoked_at=timezone.now()
        )


class LoginAttemptManager(models.Manager):
    """
    Manager for server-held login attempts.
    """

    def open(self, account_id: UUID, state: LoginState, lifetime_seconds: int):
        now = timezone.now()
        return self.create(
            handle=secrets.token_urlsafe(32),
            account_id=account_id,
            state=LoginState(state).value,
            created_at=now,
            expires_at=now + timedelta(seconds=lifetime_seconds),
        )

    def live(self, handle: str, for_update: bool = False):
        """Return the unexpired attempt for a handle, or None."""
        queryset = self.get_queryset()
        if for_update:
            queryset = queryset.select_for_update()
        return queryset.filter(handle=handle, expires_at__gt=timezone.now()).first()

    def purge_expired(self) -> int:
        deleted, _by_model = self.filter(expires_at__lte=timezone.now()).delete()
        return deleted
