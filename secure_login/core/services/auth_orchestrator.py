"""
Login state machine and factor enrollment.

A login attempt moves through

    AWAITING_CREDENTIALS -> [AWAITING_BIOMETRIC] -> [AWAITING_CODE] -> AUTHENTICATED

and may end in REJECTED from any state. Between requests the current state
is held server-side in a LoginAttempt row; the client only carries an
opaque handle, and a step that does not match the stored state returns the
stored state unchanged.
"""

import logging
from dataclasses import replace
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction

from ..exceptions import (
    AccountNotFoundError,
    BiometricCaptureError,
    CodeLockoutError,
    FactorNotFoundError,
    InvalidCredentialsError,
    TransientError,
    TRANSIENT_ERRORS,
)
from ..interfaces import (
    IAuthFactorStore,
    IBiometricGateway,
    IIdentityProvider,
    ILoginAttemptStore,
    IRoleStore,
)
from ..logging import security_logger
from ..stores import DjangoAuthFactorStore, DjangoLoginAttemptStore, DjangoRoleStore
from ..types import (
    AccountData,
    AccountStatus,
    AuthFactorData,
    BiometricSample,
    LoginAttemptData,
    LoginResult,
    LoginState,
    Principal,
    RejectionReason,
    Role,
    TOTPEnrollment,
)
from .attempt_limiter import AttemptLimiter
from .audit_service import AuditService
from .biometric_gateway import get_biometric_gateway
from .identity_provider import DjangoIdentityProvider
from .totp_engine import TOTPEngine

logger = logging.getLogger(__name__)


class AuthOrchestrator:
    """
    Drives password, biometric and TOTP steps to a session or a rejection.

    Expected failures (wrong password, wrong code, disabled account) are
    returned as rejected LoginResults. Store or network failures become
    ``Rejected(TransientError)`` and are safe to retry.
    """

    def __init__(
        self,
        identity_provider: Optional[IIdentityProvider] = None,
        role_store: Optional[IRoleStore] = None,
        factor_store: Optional[IAuthFactorStore] = None,
        attempt_store: Optional[ILoginAttemptStore] = None,
        biometric_gateway: Optional[IBiometricGateway] = None,
        totp_engine: Optional[TOTPEngine] = None,
        attempt_limiter: Optional[AttemptLimiter] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.identity_provider = identity_provider or DjangoIdentityProvider()
        self.role_store = role_store or DjangoRoleStore()
        self.factor_store = factor_store or DjangoAuthFactorStore()
        self.attempt_store = attempt_store or DjangoLoginAttemptStore()
        self.biometric_gateway = biometric_gateway or get_biometric_gateway()
        self.totp_engine = totp_engine or TOTPEngine()
        self.attempt_limiter = attempt_limiter or AttemptLimiter()
        self.audit_service = audit_service or AuditService()

        self.biometric_timeout = getattr(settings, 'SECURE_LOGIN_BIOMETRIC_CAPTURE_TIMEOUT', 30)

    # Login

    def begin_login(self, email: str, password: str,
                    ip_address: Optional[str] = None) -> LoginResult:
        """
        Verify the password and pick the first factor step.

        Args:
            email: Email address entered by the user
            password: Password entered by the user
            ip_address: Client address, only used for logging

        Returns:
            LoginResult in AWAITING_BIOMETRIC or AWAITING_CODE (with a
            handle), AUTHENTICATED (with a principal) or REJECTED
        """
        try:
            return self._begin_login(email, password, ip_address)
        except TRANSIENT_ERRORS as e:
            return self._transient('begin_login', e)

    def _begin_login(self, email: str, password: str, ip_address: Optional[str]) -> LoginResult:
        try:
            account = self.identity_provider.verify_password(email, password)
        except InvalidCredentialsError:
            security_logger.log_password_failure(ip_address)
            return self._reject(None, 'password', RejectionReason.INVALID_CREDENTIALS)

        rejection = self._check_assignment(account.id, 'password')
        if rejection:
            return rejection

        factors = self.factor_store.get(account.id) or AuthFactorData()

        if factors.biometric_enrolled and self.biometric_gateway.is_available():
            next_state = LoginState.AWAITING_BIOMETRIC
        elif factors.totp_enrolled:
            next_state = LoginState.AWAITING_CODE
        else:
            return self._authenticate(account.id, 'password')

        attempt = self.attempt_store.create(account.id, next_state)
        security_logger.log_login_step(str(account.id), 'password', next_state.value)
        return LoginResult(state=next_state, handle=attempt.handle)

    def continue_biometric(self, handle: str, payload: Optional[bytes]) -> LoginResult:
        """
        Submit a biometric capture, or skip the step with ``payload=None``.

        A confirmed capture, a failed capture and a skip all lead to the same
        next state: AWAITING_CODE when TOTP is enrolled, otherwise
        AUTHENTICATED. The capture never replaces the code step.
        """
        try:
            with self.attempt_store.locked(handle) as attempt:
                if attempt is None:
                    return self._expired(handle)
                if attempt.state != LoginState.AWAITING_BIOMETRIC:
                    return LoginResult(state=attempt.state, handle=attempt.handle)

                self._capture_for_login(attempt, payload)

                factors = self.factor_store.get(attempt.account_id) or AuthFactorData()
                if factors.totp_enrolled:
                    self.attempt_store.update_state(attempt.handle, LoginState.AWAITING_CODE)
                    security_logger.log_login_step(
                        str(attempt.account_id), 'biometric', LoginState.AWAITING_CODE.value
                    )
                    return LoginResult(state=LoginState.AWAITING_CODE, handle=attempt.handle)

                self.attempt_store.delete(attempt.handle)
                return self._authenticate(attempt.account_id, 'biometric')
        except TRANSIENT_ERRORS as e:
            return self._transient('continue_biometric', e)

    def _capture_for_login(self, attempt: LoginAttemptData, payload: Optional[bytes]) -> None:
        if payload is None:
            logger.info("Biometric step skipped", extra={'account_id': str(attempt.account_id)})
            return

        try:
            self.biometric_gateway.capture(attempt.account_id, payload, self.biometric_timeout)
        except (BiometricCaptureError, TimeoutError) as e:
            logger.info(
                f"Biometric capture failed: {str(e)}",
                extra={'account_id': str(attempt.account_id)}
            )

    def continue_code(self, handle: str, code: str) -> LoginResult:
        """
        Submit a one-time code.

        A slot is reserved with the attempt limiter before the code is
        checked; once the limit is exceeded the attempt is rejected with
        LOCKED_OUT even if the code is correct.

        Returns:
            AUTHENTICATED on a match; AWAITING_CODE with INVALID_CODE and
            ``attempts_remaining`` on a mismatch; REJECTED otherwise
        """
        try:
            with self.attempt_store.locked(handle) as attempt:
                if attempt is None:
                    return self._expired(handle)
                if attempt.state != LoginState.AWAITING_CODE:
                    return LoginResult(state=attempt.state, handle=attempt.handle)
                return self._check_code(attempt, code)
        except TRANSIENT_ERRORS as e:
            return self._transient('continue_code', e)

    def _check_code(self, attempt: LoginAttemptData, code: str) -> LoginResult:
        account_id = attempt.account_id

        reservation = self.attempt_limiter.reserve(account_id)
        if reservation.locked_out:
            self.attempt_store.delete(attempt.handle)
            return self._reject(account_id, 'code', RejectionReason.LOCKED_OUT)

        factors = self.factor_store.get(account_id) or AuthFactorData()
        try:
            matched = self.totp_engine.verify(factors.totp_secret, code)
        except FactorNotFoundError:
            logger.error(
                "TOTP enrolled but no usable secret on record",
                extra={'account_id': str(account_id)}
            )
            self.attempt_store.delete(attempt.handle)
            return self._reject(account_id, 'code', RejectionReason.INVALID_CREDENTIALS)

        if not matched:
            self.attempt_limiter.record_failure(account_id, reservation)
            if reservation.is_last_allowed:
                self.audit_service.record(
                    account_id,
                    'login_locked_out',
                    f"{reservation.attempt_number} consecutive invalid codes; "
                    f"locked for {self.attempt_limiter.window_seconds} seconds",
                )
            security_logger.log_login_step(
                str(account_id), 'code', LoginState.AWAITING_CODE.value,
                RejectionReason.INVALID_CODE.value
            )
            return LoginResult(
                state=LoginState.AWAITING_CODE,
                handle=attempt.handle,
                reason=RejectionReason.INVALID_CODE,
                attempts_remaining=reservation.remaining_after_failure,
            )

        self.attempt_limiter.reset(account_id)
        self.attempt_store.delete(attempt.handle)
        return self._authenticate(account_id, 'code')

    def logout(self, session_token: str) -> bool:
        """
        End a session.

        Returns:
            True if the token belonged to a live session
        """
        try:
            account_id = self.identity_provider.current_account(session_token)
            self.identity_provider.revoke_session(session_token)
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('logout', str(e))
            raise TransientError()

        if account_id is None:
            return False

        self.audit_service.record(account_id, 'logout', 'Session ended')
        return True

    def change_password(self, account_id: UUID, current_password: str, new_password: str,
                        session_token: Optional[str] = None) -> None:
        """
        Change the password of a signed-in account.

        Every session except ``session_token`` is invalidated.

        Raises:
            InvalidCredentialsError: If the current password does not match
            PasswordPolicyError: If the new password is rejected
            TransientError: If a store is unavailable
        """
        try:
            self.identity_provider.change_password(
                account_id, current_password, new_password, keep_session=session_token
            )
        except InvalidCredentialsError:
            self.audit_service.record(
                account_id, 'password_change_failed', 'Current password did not match'
            )
            raise
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('change_password', str(e))
            raise TransientError()

        self.audit_service.record(
            account_id, 'password_changed', 'Password changed and other sessions ended'
        )

    def principal_for(self, session_token: str) -> Optional[Principal]:
        """Rebuild the principal of a live session from the stores."""
        account_id = self.identity_provider.current_account(session_token)
        if account_id is None:
            return None
        account = self.identity_provider.get_account(account_id)
        assignment = self.role_store.get(account_id)
        if account is None or assignment is None:
            return None
        issued_at = self.identity_provider.session_issued_at(session_token)
        return Principal(
            account_id=account.id,
            email=account.email,
            display_name=account.display_name,
            role=assignment.role,
            status=assignment.status,
            session_token=session_token,
            issued_at=issued_at,
        )

    def _check_assignment(self, account_id: UUID, step: str) -> Optional[LoginResult]:
        assignment = self.role_store.get(account_id)
        if assignment is None:
            self.identity_provider.invalidate_session(account_id)
            return self._reject(account_id, step, RejectionReason.NO_ROLE_ASSIGNED)
        if not assignment.is_active:
            return self._reject(account_id, step, RejectionReason.ACCOUNT_DISABLED)
        return None

    def _authenticate(self, account_id: UUID, step: str) -> LoginResult:
        # Role and status are re-read here: an administrator may have
        # blocked the account while the attempt was in flight.
        rejection = self._check_assignment(account_id, step)
        if rejection:
            return rejection

        assignment = self.role_store.get(account_id)
        account = self.identity_provider.get_account(account_id)
        if account is None:
            return self._reject(account_id, step, RejectionReason.INVALID_CREDENTIALS)

        token, issued_at = self.identity_provider.issue_session(account_id)
        principal = Principal(
            account_id=account.id,
            email=account.email,
            display_name=account.display_name,
            role=assignment.role,
            status=assignment.status,
            session_token=token,
            issued_at=issued_at,
        )

        self.audit_service.record(account_id, 'login_success', f"Login completed at {step} step")
        security_logger.log_login_step(str(account_id), step, LoginState.AUTHENTICATED.value)
        return LoginResult.authenticated(principal)

    def _reject(self, account_id: Optional[UUID], step: str,
                reason: RejectionReason) -> LoginResult:
        security_logger.log_login_step(
            str(account_id) if account_id else None, step, LoginState.REJECTED.value, reason.value
        )
        return LoginResult.rejected(reason)

    def _expired(self, handle: str) -> LoginResult:
        logger.info("Unknown or expired login handle")
        return LoginResult.rejected(RejectionReason.ATTEMPT_EXPIRED)

    def _transient(self, operation: str, error: Exception) -> LoginResult:
        logger.error(f"{operation} failed: {str(error)}", extra={'operation': operation})
        security_logger.log_transient_failure(operation, str(error))
        return LoginResult.rejected(RejectionReason.TRANSIENT_ERROR)

    # Enrollment

    def register_account(self, email: str, password: str, display_name: str) -> AccountData:
        """
        Create an account with the default ``{user, active}`` assignment.

        Raises:
            AccountAlreadyExistsError: If the email is already registered
            TransientError: If a store is unavailable
        """
        try:
            with transaction.atomic():
                account = self.identity_provider.create_account(email, password, display_name)
                self.role_store.upsert(account.id, Role.USER, AccountStatus.ACTIVE)
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('register_account', str(e))
            raise TransientError()

        self.audit_service.record(account.id, 'account_registered', f"Account created for {account.email}")
        return account

    def enroll_totp(self, account_id: UUID) -> TOTPEnrollment:
        """
        Start (or restart) TOTP enrollment.

        The new secret replaces any previous one and stays unenrolled until
        ``confirm_totp`` succeeds, so codes from an old authenticator entry
        stop working immediately.

        Returns:
            TOTPEnrollment with the secret, provisioning URI and QR code

        Raises:
            AccountNotFoundError: If the account does not exist
            TransientError: If a store is unavailable
        """
        try:
            account = self.identity_provider.get_account(account_id)
            if account is None:
                raise AccountNotFoundError()

            enrollment = self.totp_engine.new_enrollment(account.email)

            with transaction.atomic():
                current = self.factor_store.get(account_id, for_update=True) or AuthFactorData()
                self.factor_store.put(
                    account_id,
                    replace(current, totp_secret=enrollment.secret, totp_enrolled=False),
                )
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('enroll_totp', str(e))
            raise TransientError()

        self.attempt_limiter.reset(account_id)
        self.audit_service.record(account_id, 'totp_enrollment_started', 'New TOTP secret generated')
        return enrollment

    def confirm_totp(self, account_id: UUID, code: str) -> bool:
        """
        Prove possession of the enrolled secret.

        Returns:
            True when the code matched and TOTP is now enrolled

        Raises:
            FactorNotFoundError: If no secret is on record
            CodeLockoutError: If too many codes were rejected recently
            TransientError: If a store is unavailable
        """
        try:
            with transaction.atomic():
                factors = self.factor_store.get(account_id, for_update=True)
                if factors is None or not factors.totp_secret:
                    raise FactorNotFoundError("No TOTP secret on record")

                reservation = self.attempt_limiter.reserve(account_id)
                if reservation.locked_out:
                    raise CodeLockoutError()

                if not self.totp_engine.verify(factors.totp_secret, code):
                    self.attempt_limiter.record_failure(account_id, reservation)
                    return False

                self.attempt_limiter.reset(account_id)
                if factors.totp_enrolled:
                    return True

                self.factor_store.put(account_id, replace(factors, totp_enrolled=True))
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('confirm_totp', str(e))
            raise TransientError()

        self.audit_service.record(account_id, 'totp_verified', 'TOTP verification successful')
        return True

    def enroll_biometric(self, account_id: UUID, payload: bytes) -> BiometricSample:
        """
        Capture and store a biometric template reference.

        A confirmed capture enrolls the factor; there is no further
        possession proof.

        Raises:
            BiometricCaptureError: If the capture failed or timed out
            AccountNotFoundError: If the account does not exist
            TransientError: If a store is unavailable
        """
        try:
            if self.identity_provider.get_account(account_id) is None:
                raise AccountNotFoundError()

            try:
                sample = self.biometric_gateway.capture(account_id, payload, self.biometric_timeout)
            except TimeoutError:
                raise BiometricCaptureError("Biometric capture timed out")

            with transaction.atomic():
                current = self.factor_store.get(account_id, for_update=True) or AuthFactorData()
                self.factor_store.put(
                    account_id,
                    replace(current, biometric_template=sample.template_ref, biometric_enrolled=True),
                )
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('enroll_biometric', str(e))
            raise TransientError()

        self.audit_service.record(account_id, 'biometric_enrolled', 'Biometric template captured')
        return sample
