"""
Value types shared by the login state machine, the access gate and the
collaborator interfaces.

These are plain dataclasses and enums; they never reference the ORM so that
the services can run against any store implementation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


class Role(str, Enum):
    """Coarse permission class of an account."""
    USER = 'user'
    EMPLOYEE = 'employee'
    ADMIN = 'admin'

    @property
    def rank(self) -> int:
        return ROLE_RANK[self]


ROLE_RANK = {
    Role.USER: 0,
    Role.EMPLOYEE: 1,
    Role.ADMIN: 2,
}


class AccountStatus(str, Enum):
    """Account lifecycle flag, independent of role."""
    ACTIVE = 'active'
    FIRED = 'fired'
    BLOCKED = 'blocked'


class LoginState(str, Enum):
    """States of a single login attempt."""
    AWAITING_CREDENTIALS = 'awaiting_credentials'
    AWAITING_BIOMETRIC = 'awaiting_biometric'
    AWAITING_CODE = 'awaiting_code'
    AUTHENTICATED = 'authenticated'
    REJECTED = 'rejected'


class RejectionReason(str, Enum):
    """Reason codes carried by rejections and denials."""
    INVALID_CREDENTIALS = 'InvalidCredentials'
    NO_ROLE_ASSIGNED = 'NoRoleAssigned'
    ACCOUNT_DISABLED = 'AccountDisabled'
    INVALID_CODE = 'InvalidCode'
    LOCKED_OUT = 'LockedOut'
    INSUFFICIENT_ROLE = 'InsufficientRole'
    TARGET_IS_ADMIN = 'TargetIsAdmin'
    TRANSIENT_ERROR = 'TransientError'
    ATTEMPT_EXPIRED = 'AttemptExpired'


# Messages shown to end users. Credential failures never reveal whether the
# email exists or which factor failed.
REJECTION_MESSAGES = {
    RejectionReason.INVALID_CREDENTIALS: "Invalid email or password.",
    RejectionReason.NO_ROLE_ASSIGNED: "This account cannot sign in. Contact your administrator.",
    RejectionReason.ACCOUNT_DISABLED: "This account cannot sign in. Contact your administrator.",
    RejectionReason.INVALID_CODE: "The verification code is not valid.",
    RejectionReason.LOCKED_OUT: "Too many failed attempts. Please try again later.",
    RejectionReason.INSUFFICIENT_ROLE: "You do not have permission to perform this action.",
    RejectionReason.TARGET_IS_ADMIN: "Administrator accounts cannot be modified this way.",
    RejectionReason.TRANSIENT_ERROR: "The service is temporarily unavailable. Please retry.",
    RejectionReason.ATTEMPT_EXPIRED: "Your sign-in session has expired. Please start again.",
}


@dataclass(frozen=True)
class RoleAssignmentData:
    role: Role = Role.USER
    status: AccountStatus = AccountStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


DEFAULT_ASSIGNMENT = RoleAssignmentData()


@dataclass(frozen=True)
class AuthFactorData:
    """
    Snapshot of an account's enrolled factors.

    ``totp_secret`` is the decrypted base-32 secret; it only ever flows from
    the factor store to the TOTP verifier.
    """
    totp_secret: Optional[str] = None
    totp_enrolled: bool = False
    biometric_template: Optional[str] = None
    biometric_enrolled: bool = False
    version: int = 0


@dataclass(frozen=True)
class AccountData:
    id: UUID
    email: str
    display_name: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class BiometricSample:
    """A confirmed capture: an opaque template reference and its capture time."""
    template_ref: str
    captured_at: datetime


@dataclass(frozen=True)
class LoginAttemptData:
    handle: str
    account_id: UUID
    state: LoginState
    expires_at: datetime


@dataclass(frozen=True)
class Principal:
    """Authenticated identity handed to the rest of the application."""
    account_id: UUID
    email: str
    display_name: str
    role: Role
    status: AccountStatus
    session_token: str
    issued_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': str(self.account_id),
            'email': self.email,
            'display_name': self.display_name,
            'role': self.role.value,
            'status': self.status.value,
            'session_token': self.session_token,
            'issued_at': self.issued_at.isoformat(),
        }


@dataclass(frozen=True)
class LoginResult:
    """
    Outcome of one step of the login state machine.

    ``principal`` is only ever set when ``state`` is AUTHENTICATED; a
    rejection never carries a partial principal.
    """
    state: LoginState
    handle: Optional[str] = None
    reason: Optional[RejectionReason] = None
    principal: Optional[Principal] = None
    attempts_remaining: Optional[int] = None

    @classmethod
    def rejected(cls, reason: RejectionReason) -> 'LoginResult':
        return cls(state=LoginState.REJECTED, reason=reason)

    @classmethod
    def authenticated(cls, principal: Principal) -> 'LoginResult':
        return cls(state=LoginState.AUTHENTICATED, principal=principal)

    @property
    def message(self) -> Optional[str]:
        return REJECTION_MESSAGES.get(self.reason) if self.reason else None

    def to_dict(self) -> Dict[str, Any]:
        data = {'state': self.state.value}
        if self.handle:
            data['handle'] = self.handle
        if self.reason:
            data['reason'] = self.reason.value
            data['message'] = self.message
        if self.attempts_remaining is not None:
            data['attempts_remaining'] = self.attempts_remaining
        if self.principal:
            data['principal'] = self.principal.to_dict()
        return data


@dataclass(frozen=True)
class Decision:
    """Allow, or Deny with a reason."""
    allowed: bool
    reason: Optional[RejectionReason] = None

    @classmethod
    def allow(cls) -> 'Decision':
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: RejectionReason) -> 'Decision':
        return cls(allowed=False, reason=reason)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True)
class TOTPEnrollment:
    secret: str
    provisioning_uri: str
    qr_code_data: str = ''
    manual_entry_key: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'secret': self.secret,
            'provisioning_uri': self.provisioning_uri,
            'qr_code_data': self.qr_code_data,
            'manual_entry_key': self.manual_entry_key,
        }


@dataclass(frozen=True)
class StatusChange:
    target_id: UUID
    previous: AccountStatus
    current: AccountStatus
    changed: bool
    metadata: Dict[str, Any] = field(default_factory=dict)
