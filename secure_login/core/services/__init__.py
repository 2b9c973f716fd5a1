"""
Services package for Secure Login.
"""

from .audit_service import AuditService, DjangoAuditSink
from .totp_engine import TOTPEngine
from .attempt_limiter import AttemptLimiter, Reservation
from .identity_provider import DjangoIdentityProvider
from .biometric_gateway import (
    PassThroughBiometricGateway,
    UnavailableBiometricGateway,
    get_biometric_gateway,
)
from .access_gate import AccessGate, ACTION_MIN_ROLE
from .auth_orchestrator import AuthOrchestrator

__all__ = [
    'AuditService',
    'DjangoAuditSink',
    'TOTPEngine',
    'AttemptLimiter',
    'Reservation',
    'DjangoIdentityProvider',
    'PassThroughBiometricGateway',
    'UnavailableBiometricGateway',
    'get_biometric_gateway',
    'AccessGate',
    'ACTION_MIN_ROLE',
    'AuthOrchestrator',
]
