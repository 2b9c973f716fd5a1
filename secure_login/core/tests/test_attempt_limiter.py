"""
Tests for the code attempt limiter.
"""

import uuid
from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.test import TestCase, override_settings

from ..services.attempt_limiter import AttemptLimiter, Reservation


class ReservationTestCase(TestCase):

    def test_counts_below_limit(self):
        reservation = Reservation(attempt_number=2, max_failures=5)

        self.assertFalse(reservation.locked_out)
        self.assertFalse(reservation.is_last_allowed)
        self.assertEqual(reservation.remaining_after_failure, 3)

    def test_last_allowed_attempt(self):
        reservation = Reservation(attempt_number=5, max_failures=5)

        self.assertFalse(reservation.locked_out)
        self.assertTrue(reservation.is_last_allowed)
        self.assertEqual(reservation.remaining_after_failure, 0)

    def test_over_limit(self):
        reservation = Reservation(attempt_number=6, max_failures=5)

        self.assertTrue(reservation.locked_out)
        self.assertEqual(reservation.remaining_after_failure, 0)


class AttemptLimiterTestCase(TestCase):
    """Test case for per-account code lockout."""

    def setUp(self):
        cache.clear()
        self.limiter = AttemptLimiter(max_failures=5, window_seconds=600)
        self.account_id = uuid.uuid4()

    def test_reservations_count_up(self):
        numbers = [self.limiter.reserve(self.account_id).attempt_number for _ in range(3)]

        self.assertEqual(numbers, [1, 2, 3])
        self.assertEqual(cache.get(self.limiter._key(self.account_id)), 3)

    def test_sixth_reservation_is_locked_out(self):
        for _ in range(5):
            self.assertFalse(self.limiter.reserve(self.account_id).locked_out)

        self.assertTrue(self.limiter.reserve(self.account_id).locked_out)

    def test_reset_clears_counter(self):
        for _ in range(5):
            self.limiter.reserve(self.account_id)

        self.limiter.reset(self.account_id)

        self.assertIsNone(cache.get(self.limiter._key(self.account_id)))
        self.assertEqual(self.limiter.reserve(self.account_id).attempt_number, 1)

    def test_accounts_are_counted_separately(self):
        other = uuid.uuid4()
        for _ in range(6):
            self.limiter.reserve(self.account_id)

        self.assertFalse(self.limiter.reserve(other).locked_out)

    def test_scopes_are_counted_separately(self):
        other_scope = AttemptLimiter(scope='recovery', max_failures=5, window_seconds=600)
        for _ in range(6):
            self.limiter.reserve(self.account_id)

        self.assertEqual(other_scope.reserve(self.account_id).attempt_number, 1)

    def test_counter_expires_with_window(self):
        self.limiter.reserve(self.account_id)
        # Simulate the cache entry expiring.
        cache.delete(self.limiter._key(self.account_id))

        self.assertEqual(self.limiter.reserve(self.account_id).attempt_number, 1)

    def test_reserve_recovers_when_key_vanishes_before_increment(self):
        backend = MagicMock()
        backend.incr.side_effect = [ValueError('missing'), 1]
        limiter = AttemptLimiter(max_failures=5, window_seconds=600, cache_backend=backend)

        reservation = limiter.reserve(self.account_id)

        self.assertEqual(reservation.attempt_number, 1)
        self.assertEqual(backend.add.call_count, 2)

    @patch('secure_login.core.services.attempt_limiter.security_logger')
    def test_record_failure_logs_lockout_on_last_allowed(self, mock_logger):
        self.limiter.record_failure(self.account_id, Reservation(4, 5))
        mock_logger.log_account_lockout.assert_not_called()

        self.limiter.record_failure(self.account_id, Reservation(5, 5))
        mock_logger.log_account_lockout.assert_called_once_with(str(self.account_id), 600)
        self.assertEqual(mock_logger.log_code_failure.call_count, 2)

    def test_zero_limit_locks_out_immediately(self):
        limiter = AttemptLimiter(max_failures=0, window_seconds=600)

        self.assertEqual(limiter.max_failures, 0)
        self.assertTrue(limiter.reserve(self.account_id).locked_out)

    @override_settings(SECURE_LOGIN_CODE_MAX_FAILURES=3, SECURE_LOGIN_CODE_FAILURE_WINDOW=60)
    def test_limits_default_to_settings(self):
        limiter = AttemptLimiter()

        self.assertEqual(limiter.max_failures, 3)
        self.assertEqual(limiter.window_seconds, 60)
