"""
Tests for the role and status access gate.
"""

import uuid
from datetime import timedelta
from io import StringIO
from unittest.mock import MagicMock, patch

from django.core.cache import cache
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from ..exceptions import (
    AccountDisabledError,
    AccountNotFoundError,
    InsufficientRoleError,
    TargetIsAdminError,
    TransientError,
)
from ..models import AccountSession, AuditEntry, RoleAssignment
from ..services.access_gate import ACTION_MIN_ROLE, AccessGate
from ..types import (
    DEFAULT_ASSIGNMENT,
    AccountStatus,
    Decision,
    RejectionReason,
    Role,
    RoleAssignmentData,
)
from .factories import make_account


class EvaluateTestCase(TestCase):
    """Pure decision table, no stores involved."""

    def test_user_actions(self):
        user = RoleAssignmentData(Role.USER, AccountStatus.ACTIVE)

        self.assertTrue(AccessGate.evaluate(user, 'view_dashboard'))
        self.assertTrue(AccessGate.evaluate(user, 'change_own_settings'))
        self.assertEqual(
            AccessGate.evaluate(user, 'view_employee_directory'),
            Decision.deny(RejectionReason.INSUFFICIENT_ROLE)
        )
        self.assertFalse(AccessGate.evaluate(user, 'view_admin_panel'))

    def test_employee_actions(self):
        employee = RoleAssignmentData(Role.EMPLOYEE, AccountStatus.ACTIVE)

        self.assertTrue(AccessGate.evaluate(employee, 'view_employee_directory'))
        self.assertFalse(AccessGate.evaluate(employee, 'manage_users'))

    def test_admin_may_do_everything(self):
        admin = RoleAssignmentData(Role.ADMIN, AccountStatus.ACTIVE)

        for action in ACTION_MIN_ROLE:
            self.assertTrue(AccessGate.evaluate(admin, action), action)

    def test_inactive_status_denies_everything(self):
        for status in (AccountStatus.FIRED, AccountStatus.BLOCKED):
            for role in Role:
                assignment = RoleAssignmentData(role, status)
                for action in ACTION_MIN_ROLE:
                    self.assertEqual(
                        AccessGate.evaluate(assignment, action),
                        Decision.deny(RejectionReason.ACCOUNT_DISABLED)
                    )

    def test_unknown_action_is_denied(self):
        admin = RoleAssignmentData(Role.ADMIN, AccountStatus.ACTIVE)

        decision = AccessGate.evaluate(admin, 'launch_rockets')

        self.assertFalse(decision)
        self.assertEqual(decision.reason, RejectionReason.INSUFFICIENT_ROLE)


class AuthorizeTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.gate = AccessGate()

    def test_missing_assignment_behaves_like_default(self):
        bare = make_account('bare@example.com', with_assignment=False)
        default = make_account('default@example.com')

        for action in list(ACTION_MIN_ROLE) + ['unknown_action']:
            self.assertEqual(
                self.gate.authorize(bare.id, action),
                self.gate.authorize(default.id, action),
                action
            )
            self.assertEqual(
                self.gate.authorize(bare.id, action),
                AccessGate.evaluate(DEFAULT_ASSIGNMENT, action),
            )

    def test_fired_employee_is_disabled(self):
        account = make_account(role=Role.EMPLOYEE, status=AccountStatus.FIRED)

        decision = self.gate.authorize(account.id, 'view_dashboard')

        self.assertEqual(decision.reason, RejectionReason.ACCOUNT_DISABLED)

    def test_store_failure_denies_with_transient_error(self):
        role_store = MagicMock()
        role_store.get.side_effect = DatabaseError('connection lost')
        gate = AccessGate(role_store=role_store)

        decision = gate.authorize(uuid.uuid4(), 'view_dashboard')

        self.assertEqual(decision, Decision.deny(RejectionReason.TRANSIENT_ERROR))

    def test_require(self):
        user = make_account('u@example.com')
        blocked = make_account('b@example.com', status=AccountStatus.BLOCKED)

        self.gate.require(user.id, 'view_dashboard')

        with self.assertRaises(InsufficientRoleError):
            self.gate.require(user.id, 'manage_users')

        with self.assertRaises(AccountDisabledError):
            self.gate.require(blocked.id, 'view_dashboard')

    def test_require_raises_transient(self):
        role_store = MagicMock()
        role_store.get.side_effect = ConnectionError('refused')

        with self.assertRaises(TransientError):
            AccessGate(role_store=role_store).require(uuid.uuid4(), 'view_dashboard')


class SetStatusTestCase(TestCase):
    """Test case for firing, blocking and reactivating accounts."""

    def setUp(self):
        cache.clear()
        self.gate = AccessGate()
        self.admin = make_account('admin@example.com', role=Role.ADMIN)
        self.employee = make_account('employee@example.com', role=Role.EMPLOYEE)

    def test_admin_fires_employee(self):
        change = self.gate.set_status(self.admin.id, self.employee.id, AccountStatus.FIRED)

        self.assertTrue(change.changed)
        self.assertEqual(change.previous, AccountStatus.ACTIVE)
        self.assertEqual(change.current, AccountStatus.FIRED)

        assignment = RoleAssignment.objects.get(account=self.employee)
        self.assertEqual(assignment.status, 'fired')
        self.assertEqual(assignment.role, 'employee')

        entry = AuditEntry.objects.get(action='fired_user')
        self.assertEqual(entry.account_id, self.admin.id)
        self.assertEqual(
            entry.detail,
            f"employee user {self.employee.id} was fired (previously active)"
        )

    def test_fired_account_is_denied(self):
        self.gate.set_status(self.admin.id, self.employee.id, 'fired')

        decision = self.gate.authorize(self.employee.id, 'view_dashboard')
        self.assertEqual(decision.reason, RejectionReason.ACCOUNT_DISABLED)

    def test_reapplying_status_is_idempotent(self):
        first = self.gate.set_status(self.admin.id, self.employee.id, 'fired')
        second = self.gate.set_status(self.admin.id, self.employee.id, 'fired')

        self.assertTrue(first.changed)
        self.assertFalse(second.changed)
        self.assertEqual(second.current, AccountStatus.FIRED)
        self.assertEqual(AuditEntry.objects.filter(action='fired_user').count(), 1)

    def test_reactivate(self):
        self.gate.set_status(self.admin.id, self.employee.id, 'blocked')
        change = self.gate.set_status(self.admin.id, self.employee.id, 'active')

        self.assertEqual(change.previous, AccountStatus.BLOCKED)
        self.assertTrue(self.gate.authorize(self.employee.id, 'view_employee_directory'))
        self.assertTrue(AuditEntry.objects.filter(action='active_user').exists())

    def test_admin_target_is_refused(self):
        other_admin = make_account('admin2@example.com', role=Role.ADMIN)

        with self.assertRaises(TargetIsAdminError):
            self.gate.set_status(self.admin.id, other_admin.id, 'blocked')

        self.assertEqual(RoleAssignment.objects.get(account=other_admin).status, 'active')
        self.assertFalse(AuditEntry.objects.exists())

    def test_admin_target_is_refused_whoever_asks(self):
        with self.assertRaises(TargetIsAdminError):
            self.gate.set_status(self.employee.id, self.admin.id, 'fired')

    def test_admin_cannot_block_self(self):
        with self.assertRaises(TargetIsAdminError):
            self.gate.set_status(self.admin.id, self.admin.id, 'blocked')

    def test_non_admin_actor_is_refused(self):
        user = make_account('user@example.com')

        with self.assertRaises(InsufficientRoleError):
            self.gate.set_status(self.employee.id, user.id, 'blocked')

        self.assertEqual(RoleAssignment.objects.get(account=user).status, 'active')

    def test_disabled_admin_actor_is_refused(self):
        # Only reachable by writing the row directly, since admins stay active.
        actor = make_account('ex-admin@example.com', role=Role.EMPLOYEE, status=AccountStatus.BLOCKED)
        user = make_account('user@example.com')

        with self.assertRaises(AccountDisabledError):
            self.gate.set_status(actor.id, user.id, 'fired')

    def test_missing_target_row_is_created(self):
        bare = make_account('bare@example.com', with_assignment=False)

        change = self.gate.set_status(self.admin.id, bare.id, 'blocked')

        self.assertEqual(change.previous, AccountStatus.ACTIVE)
        assignment = RoleAssignment.objects.get(account=bare)
        self.assertEqual((assignment.role, assignment.status), ('user', 'blocked'))

    def test_unknown_target(self):
        with self.assertRaises(AccountNotFoundError):
            self.gate.set_status(self.admin.id, uuid.uuid4(), 'blocked')

    def test_unknown_target_is_hidden_from_non_admin(self):
        with self.assertRaises(InsufficientRoleError):
            self.gate.set_status(self.employee.id, uuid.uuid4(), 'blocked')

        self.assertFalse(AuditEntry.objects.exists())

    def test_disabling_revokes_sessions(self):
        session, token = AccountSession.objects.issue(self.employee.id, 3600)

        self.gate.set_status(self.admin.id, self.employee.id, 'blocked')

        self.assertIsNone(AccountSession.objects.resolve(token))

    def test_reactivating_keeps_sessions(self):
        self.gate.set_status(self.admin.id, self.employee.id, 'blocked')
        session, token = AccountSession.objects.issue(self.employee.id, 3600)

        self.gate.set_status(self.admin.id, self.employee.id, 'active')

        self.assertIsNotNone(AccountSession.objects.resolve(token))

    def test_store_failure_raises_transient(self):
        role_store = MagicMock()
        role_store.get.side_effect = DatabaseError('timeout')
        gate = AccessGate(role_store=role_store)

        with self.assertRaises(TransientError):
            gate.set_status(self.admin.id, self.employee.id, 'fired')

    def test_audit_failure_does_not_block_change(self):
        with patch.object(AuditEntry.objects, 'append', side_effect=DatabaseError('audit table gone')):
            change = self.gate.set_status(self.admin.id, self.employee.id, 'fired')

        self.assertTrue(change.changed)
        self.assertEqual(RoleAssignment.objects.get(account=self.employee).status, 'fired')

    def test_database_refuses_inactive_admin_row(self):
        assignment = RoleAssignment.objects.get(account=self.admin)
        assignment.status = 'blocked'

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                assignment.save()


class ListAccountsTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.gate = AccessGate()
        self.admin = make_account('admin@example.com', role=Role.ADMIN)

    def test_admin_lists_accounts(self):
        make_account('bare@example.com', with_assignment=False)

        accounts = self.gate.list_accounts(self.admin.id)

        by_email = {a['email']: a for a in accounts}
        self.assertEqual(by_email['admin@example.com']['role'], 'admin')
        self.assertEqual(by_email['bare@example.com']['role'], 'user')
        self.assertEqual(by_email['bare@example.com']['status'], 'active')

    def test_non_admin_cannot_list(self):
        user = make_account('user@example.com')

        with self.assertRaises(InsufficientRoleError):
            self.gate.list_accounts(user.id)


class AssignRoleCommandTestCase(TestCase):

    def test_assign_role(self):
        account = make_account('ops@example.com', with_assignment=False)
        out = StringIO()

        call_command('assign_role', 'ops@example.com', 'admin', stdout=out)

        assignment = RoleAssignment.objects.get(account=account)
        self.assertEqual((assignment.role, assignment.status), ('admin', 'active'))
        self.assertTrue(AuditEntry.objects.filter(action='role_assigned').exists())
        self.assertIn('admin', out.getvalue())

    def test_assign_role_reactivates(self):
        account = make_account('ops@example.com', status=AccountStatus.FIRED)

        changed = AccessGate().assign_role(account.id, Role.EMPLOYEE)

        self.assertTrue(changed)
        assignment = RoleAssignment.objects.get(account=account)
        self.assertEqual((assignment.role, assignment.status), ('employee', 'active'))


class AuditLogTestCase(TestCase):
    """Test case for reading the audit trail back."""

    def setUp(self):
        cache.clear()
        self.gate = AccessGate()
        self.admin = make_account('admin@example.com', role=Role.ADMIN)
        self.employee = make_account('employee@example.com', role=Role.EMPLOYEE)

    def test_admin_reads_newest_first(self):
        now = timezone.now()
        AuditEntry.objects.append(self.admin.id, 'blocked_user', timestamp=now - timedelta(minutes=1))
        AuditEntry.objects.append(self.admin.id, 'active_user', timestamp=now)

        entries = self.gate.audit_log(self.admin.id)

        self.assertEqual([e['action'] for e in entries], ['active_user', 'blocked_user'])
        self.assertEqual(entries[0]['account_id'], str(self.admin.id))

    def test_filter_and_limit(self):
        now = timezone.now()
        AuditEntry.objects.append(self.employee.id, 'login_success', timestamp=now - timedelta(minutes=2))
        AuditEntry.objects.append(self.admin.id, 'login_success', timestamp=now - timedelta(minutes=1))
        AuditEntry.objects.append(self.employee.id, 'logout', timestamp=now)

        entries = self.gate.audit_log(self.admin.id, account_id=self.employee.id, limit=1)

        self.assertEqual([(e['account_id'], e['action']) for e in entries], [(str(self.employee.id), 'logout')])

    def test_employee_cannot_read_audit_log(self):
        with self.assertRaises(InsufficientRoleError):
            self.gate.audit_log(self.employee.id)

    def test_own_activity_only_shows_own_entries(self):
        AuditEntry.objects.append(self.employee.id, 'login_success')
        AuditEntry.objects.append(self.admin.id, 'login_success')

        entries = self.gate.own_activity(self.employee.id)

        self.assertEqual([e['account_id'] for e in entries], [str(self.employee.id)])

    def test_audit_read_failure_is_transient(self):
        audit_service = MagicMock()
        audit_service.recent.side_effect = DatabaseError('connection lost')
        gate = AccessGate(audit_service=audit_service)

        with self.assertRaises(TransientError):
            gate.audit_log(self.admin.id)
