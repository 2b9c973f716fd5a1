"""
Core models package for Secure Login.
"""

from .base import BaseModel, TimestampedModel
from .account import Account
from .access import RoleAssignment
from .factors import AuthFactorRecord
from .audit import AuditEntry, ImmutableAuditEntryError
from .session import AccountSession
from .login import LoginAttempt

__all__ = [
    'BaseModel',
    'TimestampedModel',
    'Account',
    'RoleAssignment',
    'AuthFactorRecord',
    'AuditEntry',
    'ImmutableAuditEntryError',
    'AccountSession',
    'LoginAttempt',
]
