"""
Shared helpers for building accounts in a given factor and role state.
"""

import pyotp
from django.utils import timezone

from ..models import Account, RoleAssignment
from ..services.auth_orchestrator import AuthOrchestrator
from ..types import AccountStatus, Role

PASSWORD = 'Correct-Horse-Battery-42'


def make_account(email='user@example.com', display_name='Test User', role=Role.USER,
                 status=AccountStatus.ACTIVE, with_assignment=True):
    account = Account.objects.create_user(
        email=email,
        password=PASSWORD,
        display_name=display_name,
    )
    if with_assignment:
        RoleAssignment.objects.create(account=account, role=role.value, status=status.value)
    return account


def enroll_totp(orchestrator: AuthOrchestrator, account) -> str:
    """Enroll and confirm TOTP; returns the secret."""
    enrollment = orchestrator.enroll_totp(account.id)
    assert orchestrator.confirm_totp(account.id, current_code(enrollment.secret))
    return enrollment.secret


def current_code(secret: str) -> str:
    return pyotp.TOTP(secret).at(timezone.now())


def wrong_code(secret: str) -> str:
    """A well-formed code outside the accepted window right now."""
    totp = pyotp.TOTP(secret)
    now = timezone.now()
    accepted = {totp.at(now, counter_offset=offset) for offset in (-1, 0, 1)}
    for candidate in ('000000', '111111', '222222', '333333'):
        if candidate not in accepted:
            return candidate
    raise AssertionError('unreachable')
