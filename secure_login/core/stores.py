"""
Django ORM implementations of the store interfaces.
"""

import logging
from contextlib import contextmanager
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction

from .interfaces import IAuthFactorStore, ILoginAttemptStore, IRoleStore
from .models import AuthFactorRecord, LoginAttempt, RoleAssignment
from .types import (
    AccountStatus,
    AuthFactorData,
    LoginAttemptData,
    LoginState,
    Role,
    RoleAssignmentData,
)

logger = logging.getLogger(__name__)


class DjangoRoleStore(IRoleStore):
    """
    Role store backed by the RoleAssignment table.
    """

    def get(self, account_id: UUID, for_update: bool = False) -> Optional[RoleAssignmentData]:
        assignment = RoleAssignment.objects.for_account(account_id, for_update=for_update)
        return assignment.to_data() if assignment else None

    def upsert(self, account_id: UUID, role: Role, status: AccountStatus) -> bool:
        _assignment, changed = RoleAssignment.objects.upsert(account_id, role, status)
        if changed:
            logger.info(
                "Role assignment updated",
                extra={
                    'account_id': str(account_id),
                    'role': Role(role).value,
                    'status': AccountStatus(status).value,
                }
            )
        return changed


class DjangoAuthFactorStore(IAuthFactorStore):
    """
    Factor store backed by the AuthFactorRecord table.
    """

    def get(self, account_id: UUID, for_update: bool = False) -> Optional[AuthFactorData]:
        record = AuthFactorRecord.objects.for_account(account_id, for_update=for_update)
        return record.to_data() if record else None

    def put(self, account_id: UUID, record: AuthFactorData) -> None:
        AuthFactorRecord.objects.store(account_id, record)


class DjangoLoginAttemptStore(ILoginAttemptStore):
    """
    Login attempt store backed by the LoginAttempt table.

    ``locked`` opens a transaction and takes a row lock on the attempt, so
    two requests carrying the same handle are processed one after the other.
    """

    def __init__(self, lifetime_seconds: Optional[int] = None):
        self.lifetime_seconds = lifetime_seconds or getattr(
            settings, 'SECURE_LOGIN_LOGIN_ATTEMPT_TTL', 300
        )

    def create(self, account_id: UUID, state: LoginState) -> LoginAttemptData:
        attempt = LoginAttempt.objects.open(account_id, state, self.lifetime_seconds)
        return attempt.to_data()

    @contextmanager
    def locked(self, handle: str):
        with transaction.atomic():
            attempt = LoginAttempt.objects.live(handle, for_update=True) if handle else None
            yield attempt.to_data() if attempt else None

    def update_state(self, handle: str, state: LoginState) -> None:
        LoginAttempt.objects.filter(handle=handle).update(state=LoginState(state).value)

    def delete(self, handle: str) -> None:
        LoginAttempt.objects.filter(handle=handle).delete()
