"""
Collaborator interfaces consumed by the authentication engine.

The login orchestrator and the access gate only talk to these abstractions.
Django-backed implementations live in ``stores.py`` and ``services/``; tests
and alternative deployments may supply their own.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

from .types import (
    AccountData,
    AuthFactorData,
    BiometricSample,
    LoginAttemptData,
    LoginState,
    Role,
    AccountStatus,
    RoleAssignmentData,
)


class IIdentityProvider(ABC):
    """
    Password hashing and session issuance primitives.
    """

    @abstractmethod
    def create_account(self, email: str, password: str, display_name: str) -> AccountData:
        """
        Create a new identity.

        Raises:
            AccountAlreadyExistsError: If the email is already registered
        """
        pass

    @abstractmethod
    def verify_password(self, email: str, password: str) -> AccountData:
        """
        Check a password.

        Raises:
            InvalidCredentialsError: For a wrong password and for an unknown
                email alike
        """
        pass

    @abstractmethod
    def get_account(self, account_id: UUID) -> Optional[AccountData]:
        pass

    @abstractmethod
    def issue_session(self, account_id: UUID) -> Tuple[str, datetime]:
        """Issue a session and return (token, issued_at)."""
        pass

    @abstractmethod
    def invalidate_session(self, account_id: UUID) -> None:
        """Invalidate every live session of an account."""
        pass

    @abstractmethod
    def revoke_session(self, session_token: str) -> None:
        pass

    @abstractmethod
    def change_password(self, account_id: UUID, current_password: str, new_password: str,
                        keep_session: Optional[str] = None) -> None:
        """
        Replace a password after checking the current one.

        Every other live session of the account is invalidated; the session
        named by ``keep_session`` survives.

        Raises:
            InvalidCredentialsError: If the current password does not match
            PasswordPolicyError: If the new password is rejected
        """
        pass

    @abstractmethod
    def current_account(self, session_token: str) -> Optional[UUID]:
        pass

    @abstractmethod
    def session_issued_at(self, session_token: str) -> Optional[datetime]:
        pass


class IRoleStore(ABC):
    """
    account -> {role, status}.
    """

    @abstractmethod
    def get(self, account_id: UUID, for_update: bool = False) -> Optional[RoleAssignmentData]:
        """
        Return the stored assignment, or None when the account has no row.

        ``for_update`` asks the store to lock the row until the surrounding
        transaction ends.
        """
        pass

    @abstractmethod
    def upsert(self, account_id: UUID, role: Role, status: AccountStatus) -> bool:
        """Create or replace the assignment; returns True when anything changed."""
        pass


class IAuthFactorStore(ABC):
    """
    account -> enrolled factors.
    """

    @abstractmethod
    def get(self, account_id: UUID, for_update: bool = False) -> Optional[AuthFactorData]:
        """Return the record, or None. ``for_update`` locks it like IRoleStore.get."""
        pass

    @abstractmethod
    def put(self, account_id: UUID, record: AuthFactorData) -> None:
        """Replace the record entirely."""
        pass


class IAuditSink(ABC):
    """
    Append-only security event log.
    """

    @abstractmethod
    def append(self, account_id: Optional[UUID], action: str, detail: str,
               timestamp: datetime) -> None:
        """
        Persist one audit entry.

        Implementations raise on failure; callers decide how to report it.
        """
        pass


class IBiometricGateway(ABC):
    """
    Capture capability for face samples.

    Template matching is performed by an external service and is out of
    scope; the gateway only confirms that a usable capture was obtained.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether a capture device or capture service is reachable."""
        pass

    @abstractmethod
    def capture(self, account_id: UUID, payload: bytes, timeout: float) -> BiometricSample:
        """
        Confirm a capture.

        Raises:
            BiometricCaptureError: If the payload is not a usable capture
            TimeoutError: If the capture does not complete within ``timeout``
        """
        pass


class ILoginAttemptStore(ABC):
    """
    Server-held state of in-flight login attempts.
    """

    @abstractmethod
    def create(self, account_id: UUID, state: LoginState) -> LoginAttemptData:
        pass

    @abstractmethod
    def locked(self, handle: str) -> AbstractContextManager:
        """
        Context manager yielding the live attempt (or None) while holding a
        lock on it, so concurrent steps on the same handle serialize.
        """
        pass

    @abstractmethod
    def update_state(self, handle: str, state: LoginState) -> None:
        pass

    @abstractmethod
    def delete(self, handle: str) -> None:
        pass
