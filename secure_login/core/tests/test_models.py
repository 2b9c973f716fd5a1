"""
Tests for Secure Login models and managers.
"""

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from ..models import (
    AccountSession,
    AuditEntry,
    AuthFactorRecord,
    ImmutableAuditEntryError,
    LoginAttempt,
    RoleAssignment,
)
from ..types import AccountStatus, AuthFactorData, LoginState, Role
from .factories import make_account


class AuditEntryTestCase(TestCase):
    """Test case for append-only audit entries."""

    def setUp(self):
        self.account = make_account()

    def test_append(self):
        entry = AuditEntry.objects.append(self.account.id, 'login_success', 'Login completed')

        self.assertEqual(entry.account_ref, str(self.account.id))
        self.assertEqual(list(AuditEntry.objects.for_account(self.account.id)), [entry])

    def test_entries_cannot_be_updated(self):
        entry = AuditEntry.objects.append(self.account.id, 'login_success')
        entry.detail = 'rewritten'

        with self.assertRaises(ImmutableAuditEntryError):
            entry.save()

        self.assertEqual(AuditEntry.objects.get(id=entry.id).detail, '')

    def test_entries_cannot_be_deleted(self):
        entry = AuditEntry.objects.append(self.account.id, 'login_success')

        with self.assertRaises(ImmutableAuditEntryError):
            entry.delete()

    def test_entries_are_ordered_by_time(self):
        later = AuditEntry.objects.append(self.account.id, 'logout', timestamp=timezone.now())
        earlier = AuditEntry.objects.append(
            self.account.id, 'login_success', timestamp=timezone.now() - timedelta(minutes=5)
        )

        self.assertEqual(list(AuditEntry.objects.for_account(self.account.id)), [earlier, later])
        self.assertEqual(list(AuditEntry.objects.recent(self.account.id)), [later, earlier])


class AuthFactorRecordTestCase(TestCase):

    def setUp(self):
        self.account = make_account()

    def test_secret_is_encrypted(self):
        record = AuthFactorRecord.objects.store(
            self.account.id, AuthFactorData(totp_secret='JBSWY3DPEHPK3PXP')
        )

        self.assertNotEqual(record.totp_secret, 'JBSWY3DPEHPK3PXP')
        self.assertEqual(AuthFactorRecord.objects.get(id=record.id).get_totp_secret(), 'JBSWY3DPEHPK3PXP')

    def test_version_is_bumped_on_every_write(self):
        AuthFactorRecord.objects.store(self.account.id, AuthFactorData(totp_secret='JBSWY3DPEHPK3PXP'))
        record = AuthFactorRecord.objects.store(
            self.account.id, AuthFactorData(totp_secret='JBSWY3DPEHPK3PXP', totp_enrolled=True)
        )

        self.assertEqual(record.version, 2)
        self.assertEqual(AuthFactorRecord.objects.count(), 1)
        self.assertTrue(record.to_data().totp_enrolled)

    def test_undecryptable_secret_reads_as_missing(self):
        record = AuthFactorRecord.objects.store(self.account.id, AuthFactorData(totp_secret='JBSWY3DPEHPK3PXP'))
        AuthFactorRecord.objects.filter(id=record.id).update(totp_secret='garbage')

        data = AuthFactorRecord.objects.get(id=record.id).to_data()

        self.assertIsNone(data.totp_secret)


class RoleAssignmentTestCase(TestCase):

    def setUp(self):
        self.account = make_account(with_assignment=False)

    def test_upsert_creates_then_updates(self):
        _assignment, created = RoleAssignment.objects.upsert(self.account.id, Role.EMPLOYEE, AccountStatus.ACTIVE)
        _assignment, unchanged = RoleAssignment.objects.upsert(self.account.id, 'employee', 'active')
        assignment, changed = RoleAssignment.objects.upsert(self.account.id, Role.EMPLOYEE, AccountStatus.BLOCKED)

        self.assertTrue(created)
        self.assertFalse(unchanged)
        self.assertTrue(changed)
        self.assertEqual(assignment.status, 'blocked')
        self.assertEqual(RoleAssignment.objects.count(), 1)


class AccountSessionTestCase(TestCase):

    def setUp(self):
        self.account = make_account()

    def test_token_is_not_stored(self):
        session, token = AccountSession.objects.issue(self.account.id, 3600)

        self.assertNotEqual(session.token_hash, token)
        self.assertEqual(AccountSession.objects.resolve(token), session)

    def test_revoke(self):
        _session, token = AccountSession.objects.issue(self.account.id, 3600)

        self.assertEqual(AccountSession.objects.revoke_token(token), 1)
        self.assertIsNone(AccountSession.objects.resolve(token))

    def test_revoke_all(self):
        tokens = [AccountSession.objects.issue(self.account.id, 3600)[1] for _ in range(2)]

        self.assertEqual(AccountSession.objects.revoke_all(self.account.id), 2)
        for token in tokens:
            self.assertIsNone(AccountSession.objects.resolve(token))

    def test_revoke_all_can_keep_one_session(self):
        _session, kept = AccountSession.objects.issue(self.account.id, 3600)
        _session, other = AccountSession.objects.issue(self.account.id, 3600)

        self.assertEqual(AccountSession.objects.revoke_all(self.account.id, keep_token=kept), 1)
        self.assertIsNotNone(AccountSession.objects.resolve(kept))
        self.assertIsNone(AccountSession.objects.resolve(other))

    def test_expired_session(self):
        session, token = AccountSession.objects.issue(self.account.id, 3600)
        AccountSession.objects.filter(id=session.id).update(expires_at=timezone.now() - timedelta(seconds=1))

        self.assertIsNone(AccountSession.objects.resolve(token))
        self.assertIsNone(AccountSession.objects.resolve(''))


class LoginAttemptTestCase(TestCase):

    def setUp(self):
        self.account = make_account()

    def test_live_and_expired(self):
        attempt = LoginAttempt.objects.open(self.account.id, LoginState.AWAITING_CODE, 300)

        self.assertEqual(LoginAttempt.objects.live(attempt.handle), attempt)
        self.assertFalse(attempt.is_expired)

        LoginAttempt.objects.filter(id=attempt.id).update(expires_at=timezone.now() - timedelta(seconds=1))

        self.assertIsNone(LoginAttempt.objects.live(attempt.handle))

    def test_handles_are_unique(self):
        first = LoginAttempt.objects.open(self.account.id, LoginState.AWAITING_CODE, 300)
        second = LoginAttempt.objects.open(self.account.id, LoginState.AWAITING_CODE, 300)

        self.assertNotEqual(first.handle, second.handle)

    def test_purge_expired_command(self):
        live = LoginAttempt.objects.open(self.account.id, LoginState.AWAITING_CODE, 300)
        stale = LoginAttempt.objects.open(self.account.id, LoginState.AWAITING_BIOMETRIC, 300)
        LoginAttempt.objects.filter(id=stale.id).update(expires_at=timezone.now() - timedelta(seconds=1))
        out = StringIO()

        call_command('purge_login_attempts', stdout=out)

        self.assertEqual(list(LoginAttempt.objects.all()), [live])
        self.assertIn('Deleted 1', out.getvalue())
