"""
Per-account limiter for one-time code submissions.

Each submission reserves a slot before the code is checked. The counter
lives in the Django cache and is bumped with an atomic increment, so two
parallel submissions can never both be evaluated under the same count.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.core.cache import cache

from ..logging import security_logger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Result of reserving one code submission."""
    attempt_number: int
    max_failures: int

    @property
    def locked_out(self) -> bool:
        return self.attempt_number > self.max_failures

    @property
    def remaining_after_failure(self) -> int:
        return max(self.max_failures - self.attempt_number, 0)

    @property
    def is_last_allowed(self) -> bool:
        return self.attempt_number == self.max_failures


class AttemptLimiter:
    """
    Locks an account out of code verification after too many failures.

    The window starts at the first submission and is not extended by later
    ones; once it elapses the counter disappears from the cache.
    """

    key_prefix = 'secure_login:code_attempts'

    def __init__(self, scope: str = 'totp', max_failures: Optional[int] = None,
                 window_seconds: Optional[int] = None, cache_backend=None):
        self.scope = scope
        if max_failures is None:
            max_failures = getattr(settings, 'SECURE_LOGIN_CODE_MAX_FAILURES', 5)
        if window_seconds is None:
            window_seconds = getattr(settings, 'SECURE_LOGIN_CODE_FAILURE_WINDOW', 600)
        self.max_failures = max_failures
        self.window_seconds = window_seconds
        self.cache = cache_backend or cache

    def _key(self, account_id: UUID) -> str:
        return f"{self.key_prefix}:{self.scope}:{account_id}"

    def reserve(self, account_id: UUID) -> Reservation:
        """
        Count one submission for an account.

        Args:
            account_id: Account submitting a code

        Returns:
            Reservation whose ``locked_out`` flag tells the caller to refuse
            the submission without looking at the code
        """
        key = self._key(account_id)
        self.cache.add(key, 0, timeout=self.window_seconds)
        try:
            count = self.cache.incr(key)
        except ValueError:
            # Key expired between add() and incr().
            self.cache.add(key, 0, timeout=self.window_seconds)
            count = self.cache.incr(key)
        return Reservation(attempt_number=count, max_failures=self.max_failures)

    def record_failure(self, account_id: UUID, reservation: Reservation) -> None:
        security_logger.log_code_failure(
            str(account_id), reservation.attempt_number, self.max_failures
        )
        if reservation.is_last_allowed:
            security_logger.log_account_lockout(str(account_id), self.window_seconds)

    def reset(self, account_id: UUID) -> None:
        """Clear the counter after a successful verification."""
        self.cache.delete(self._key(account_id))
