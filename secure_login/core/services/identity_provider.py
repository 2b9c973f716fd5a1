"""
Identity provider backed by Django's auth machinery.

Password hashing uses the configured PASSWORD_HASHERS; sessions are opaque
random tokens whose SHA-256 hash is stored in the AccountSession table.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from django.conf import settings
from django.contrib.auth.hashers import make_password
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from ..exceptions import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    InvalidCredentialsError,
    PasswordPolicyError,
)
from ..interfaces import IIdentityProvider
from ..models import Account, AccountSession
from ..types import AccountData

logger = logging.getLogger(__name__)


class DjangoIdentityProvider(IIdentityProvider):
    """
    Local identity provider.

    Unknown emails and wrong passwords raise the same error after doing the
    same hashing work, so callers cannot tell them apart.
    """

    def __init__(self, session_lifetime: Optional[int] = None):
        self.session_lifetime = session_lifetime or getattr(
            settings, 'SECURE_LOGIN_SESSION_LIFETIME', 8 * 60 * 60
        )

    def create_account(self, email: str, password: str, display_name: str) -> AccountData:
        """
        Create a new account.

        Args:
            email: Email address used to sign in
            password: Raw password
            display_name: Name shown in the application

        Returns:
            AccountData for the created account

        Raises:
            AccountAlreadyExistsError: If the email is already registered
        """
        if Account.objects.get_by_email(email) is not None:
            raise AccountAlreadyExistsError()

        try:
            with transaction.atomic():
                account = Account.objects.create_user(
                    email=email,
                    password=password,
                    display_name=display_name.strip(),
                )
        except IntegrityError:
            raise AccountAlreadyExistsError()

        return account.to_data()

    def verify_password(self, email: str, password: str) -> AccountData:
        account = Account.objects.get_by_email(email or '')
        if account is None:
            # Hash anyway so the response time does not reveal the miss.
            make_password(password)
            raise InvalidCredentialsError()

        if not account.check_password(password) or not account.is_active:
            raise InvalidCredentialsError()

        return account.to_data()

    def get_account(self, account_id: UUID) -> Optional[AccountData]:
        account = Account.objects.filter(id=account_id).first()
        return account.to_data() if account else None

    def issue_session(self, account_id: UUID) -> Tuple[str, datetime]:
        session, token = AccountSession.objects.issue(account_id, self.session_lifetime)
        logger.info(
            "Session issued",
            extra={'account_id': str(account_id), 'session_id': str(session.id)}
        )
        return token, session.issued_at

    def invalidate_session(self, account_id: UUID) -> None:
        revoked = AccountSession.objects.revoke_all(account_id)
        logger.info(
            "Sessions invalidated",
            extra={'account_id': str(account_id), 'revoked': revoked}
        )

    def revoke_session(self, session_token: str) -> None:
        AccountSession.objects.revoke_token(session_token)

    def current_account(self, session_token: str) -> Optional[UUID]:
        session = AccountSession.objects.resolve(session_token)
        return session.account_id if session else None

    def session_issued_at(self, session_token: str) -> Optional[datetime]:
        session = AccountSession.objects.resolve(session_token)
        return session.issued_at if session else None

    def change_password(self, account_id: UUID, current_password: str, new_password: str,
                        keep_session: Optional[str] = None) -> None:
        """
        Replace a password and sign out every other session.

        Args:
            account_id: Account changing its password
            current_password: Password the account signs in with today
            new_password: Replacement, checked against AUTH_PASSWORD_VALIDATORS
            keep_session: Session token that stays valid, usually the caller's

        Raises:
            AccountNotFoundError: If the account does not exist
            InvalidCredentialsError: If the current password does not match
            PasswordPolicyError: If the new password is rejected
        """
        account = Account.objects.filter(id=account_id).first()
        if account is None:
            raise AccountNotFoundError()

        if not account.check_password(current_password):
            raise InvalidCredentialsError("Current password is incorrect")

        try:
            validate_password(new_password, user=account)
        except DjangoValidationError as e:
            raise PasswordPolicyError(details={'new_password': list(e.messages)})

        with transaction.atomic():
            account.set_password(new_password)
            account.save(update_fields=['password'])
            revoked = AccountSession.objects.revoke_all(account_id, keep_token=keep_session)

        logger.info(
            "Password changed",
            extra={'account_id': str(account_id), 'revoked': revoked}
        )
