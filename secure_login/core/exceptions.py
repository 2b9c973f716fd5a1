"""
Custom exception classes for the Secure Login core.

Every exception carries a machine-readable error code so that views can map
it to a consistent error envelope. Login steps themselves never raise for
expected failures; they return a rejected LoginResult instead.
"""

from typing import Any, Dict, Optional

from django.db import DatabaseError
from django_redis.exceptions import ConnectionInterrupted
from redis.exceptions import RedisError

from .types import RejectionReason


class SecureLoginError(Exception):
    """
    Base exception for all Secure Login errors.
    """

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Additional error details
            correlation_id: Request correlation ID for tracking
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__.upper()
        self.details = details or {}
        self.correlation_id = correlation_id

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for API responses.
        """
        result = {
            'error': {
                'code': self.error_code,
                'message': self.message,
            }
        }

        if self.details:
            result['error']['details'] = self.details

        if self.correlation_id:
            result['error']['correlation_id'] = self.correlation_id

        return result


# Authentication Exceptions
class AuthenticationError(SecureLoginError):
    """Base exception for authentication-related errors."""
    pass


class InvalidCredentialsError(AuthenticationError):
    """Raised by identity providers when a password check fails."""

    def __init__(self, message: str = "Invalid credentials provided", **kwargs):
        super().__init__(message, error_code=RejectionReason.INVALID_CREDENTIALS.value, **kwargs)


class AccountAlreadyExistsError(AuthenticationError):

    def __init__(self, message: str = "An account with this email already exists", **kwargs):
        super().__init__(message, error_code="ACCOUNT_EXISTS", **kwargs)


class PasswordPolicyError(AuthenticationError):
    """Raised when a new password fails AUTH_PASSWORD_VALIDATORS."""

    def __init__(self, message: str = "Password does not meet the password policy", **kwargs):
        super().__init__(message, error_code="PASSWORD_POLICY", **kwargs)


# Authorization Exceptions
class AuthorizationError(SecureLoginError):
    """Base exception for authorization-related errors."""

    reason = RejectionReason.INSUFFICIENT_ROLE


class InsufficientRoleError(AuthorizationError):

    def __init__(self, message: str = "Insufficient role for this action", **kwargs):
        super().__init__(message, error_code=RejectionReason.INSUFFICIENT_ROLE.value, **kwargs)


class AccountDisabledError(AuthorizationError):
    """Raised when the acting account is fired or blocked."""

    reason = RejectionReason.ACCOUNT_DISABLED

    def __init__(self, message: str = "Account is disabled", **kwargs):
        super().__init__(message, error_code=RejectionReason.ACCOUNT_DISABLED.value, **kwargs)


class TargetIsAdminError(AuthorizationError):
    """Raised when a status change targets an administrator."""

    reason = RejectionReason.TARGET_IS_ADMIN

    def __init__(self, message: str = "Administrator accounts cannot be fired or blocked", **kwargs):
        super().__init__(message, error_code=RejectionReason.TARGET_IS_ADMIN.value, **kwargs)


class AccountNotFoundError(SecureLoginError):

    def __init__(self, message: str = "Account not found", **kwargs):
        super().__init__(message, error_code="ACCOUNT_NOT_FOUND", **kwargs)


# Factor Exceptions
class FactorError(SecureLoginError):
    """Base exception for authentication factor errors."""
    pass


class FactorNotFoundError(FactorError):
    """Raised when a factor operation needs a secret or template that is not on record."""

    def __init__(self, message: str = "No authentication factor on record", **kwargs):
        super().__init__(message, error_code="FACTOR_NOT_FOUND", **kwargs)


class BiometricCaptureError(FactorError):
    """Raised by biometric gateways when a capture cannot be confirmed."""

    def __init__(self, message: str = "Biometric capture failed", **kwargs):
        super().__init__(message, error_code="BIOMETRIC_CAPTURE_FAILED", **kwargs)


class CodeLockoutError(FactorError):
    """Raised when code submissions for an account are locked out."""

    def __init__(self, message: str = "Too many failed verification attempts", **kwargs):
        super().__init__(message, error_code=RejectionReason.LOCKED_OUT.value, **kwargs)


# Infrastructure Exceptions
class TransientError(SecureLoginError):
    """
    Raised when a collaborator is unavailable or timed out.

    Callers may retry with backoff; a transient error is never converted
    into a success.
    """

    def __init__(self, message: str = "Service temporarily unavailable", **kwargs):
        super().__init__(message, error_code=RejectionReason.TRANSIENT_ERROR.value, **kwargs)


class StoreUnavailableError(TransientError):
    """Raised by store implementations when the backing store cannot be reached."""

    def __init__(self, message: str = "Backing store unavailable", **kwargs):
        super().__init__(message, **kwargs)


class ConfigurationError(SecureLoginError):

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


# Errors raised by collaborators that mean "unavailable, retry later".
TRANSIENT_ERRORS = (
    DatabaseError,
    TimeoutError,
    ConnectionError,
    RedisError,
    ConnectionInterrupted,
    TransientError,
)
