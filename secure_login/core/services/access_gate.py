"""
Role and status based access gate.

Every protected action has a minimum role. An account without a stored
role assignment is treated exactly like ``{user, active}``; an account
whose status is not active is denied everything regardless of role.
"""

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from django.db import transaction

from ..exceptions import (
    AccountDisabledError,
    AccountNotFoundError,
    InsufficientRoleError,
    TargetIsAdminError,
    TransientError,
    TRANSIENT_ERRORS,
)
from ..interfaces import IIdentityProvider, IRoleStore
from ..logging import security_logger
from ..models import Account
from ..stores import DjangoRoleStore
from ..types import (
    DEFAULT_ASSIGNMENT,
    AccountStatus,
    Decision,
    RejectionReason,
    Role,
    RoleAssignmentData,
    StatusChange,
)
from .audit_service import AuditService
from .identity_provider import DjangoIdentityProvider

logger = logging.getLogger(__name__)


ACTION_MIN_ROLE = {
    'view_dashboard': Role.USER,
    'change_own_settings': Role.USER,
    'view_employee_directory': Role.EMPLOYEE,
    'view_admin_panel': Role.ADMIN,
    'view_audit_log': Role.ADMIN,
    'manage_users': Role.ADMIN,
}


class AccessGate:
    """
    Authorizes actions and performs administrative status changes.
    """

    def __init__(
        self,
        role_store: Optional[IRoleStore] = None,
        identity_provider: Optional[IIdentityProvider] = None,
        audit_service: Optional[AuditService] = None,
    ):
        self.role_store = role_store or DjangoRoleStore()
        self.identity_provider = identity_provider or DjangoIdentityProvider()
        self.audit_service = audit_service or AuditService()

    def _assignment(self, account_id: UUID, for_update: bool = False) -> RoleAssignmentData:
        return self.role_store.get(account_id, for_update=for_update) or DEFAULT_ASSIGNMENT

    @staticmethod
    def evaluate(assignment: RoleAssignmentData, action: str) -> Decision:
        """
        Decide an action for a given assignment without touching any store.

        Unknown actions are denied.
        """
        if not assignment.is_active:
            return Decision.deny(RejectionReason.ACCOUNT_DISABLED)

        min_role = ACTION_MIN_ROLE.get(action)
        if min_role is None:
            logger.warning("Authorization requested for unknown action", extra={'action': action})
            return Decision.deny(RejectionReason.INSUFFICIENT_ROLE)

        if assignment.role.rank < min_role.rank:
            return Decision.deny(RejectionReason.INSUFFICIENT_ROLE)

        return Decision.allow()

    def authorize(self, account_id: UUID, action: str) -> Decision:
        """
        Decide whether an account may perform an action.

        Args:
            account_id: Acting account
            action: Action name from ACTION_MIN_ROLE

        Returns:
            Decision.allow() or Decision.deny(reason)
        """
        try:
            assignment = self._assignment(account_id)
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('authorize', str(e))
            return Decision.deny(RejectionReason.TRANSIENT_ERROR)

        decision = self.evaluate(assignment, action)
        if not decision:
            security_logger.log_access_denied(str(account_id), action, decision.reason.value)
        return decision

    def require(self, account_id: UUID, action: str) -> None:
        """
        Raise unless the account may perform the action.

        Raises:
            AccountDisabledError: If the account is fired or blocked
            InsufficientRoleError: If the role is too low or the action unknown
            TransientError: If the role store is unavailable
        """
        decision = self.authorize(account_id, action)
        if decision:
            return
        if decision.reason == RejectionReason.ACCOUNT_DISABLED:
            raise AccountDisabledError()
        if decision.reason == RejectionReason.TRANSIENT_ERROR:
            raise TransientError()
        raise InsufficientRoleError()

    def set_status(self, actor_id: UUID, target_id: UUID, new_status) -> StatusChange:
        """
        Fire, block or reactivate an account.

        An administrator target is refused whoever the actor is, and only an
        authorized actor learns whether the target exists. The target
        row is locked for the whole change, and reapplying the status it
        already has changes nothing and writes no audit entry.

        Args:
            actor_id: Administrator performing the change
            target_id: Account whose status changes
            new_status: AccountStatus or its string value

        Returns:
            StatusChange describing the transition

        Raises:
            TargetIsAdminError: If the target's role is admin
            AccountDisabledError: If the actor is not active
            InsufficientRoleError: If the actor is not an admin
            AccountNotFoundError: If the target does not exist and the actor is an admin
            TransientError: If a store is unavailable
        """
        new_status = AccountStatus(new_status)

        try:
            with transaction.atomic():
                current = self.role_store.get(target_id, for_update=True)
                if current is not None and current.role == Role.ADMIN:
                    raise TargetIsAdminError()

                self.require(actor_id, 'manage_users')

                if self.identity_provider.get_account(target_id) is None:
                    raise AccountNotFoundError()

                if current is None:
                    self.role_store.upsert(target_id, DEFAULT_ASSIGNMENT.role, DEFAULT_ASSIGNMENT.status)
                    current = self.role_store.get(target_id, for_update=True)

                if current.status == new_status:
                    change = StatusChange(
                        target_id=target_id,
                        previous=current.status,
                        current=current.status,
                        changed=False,
                    )
                else:
                    self.role_store.upsert(target_id, current.role, new_status)
                    if new_status != AccountStatus.ACTIVE:
                        self.identity_provider.invalidate_session(target_id)
                    change = StatusChange(
                        target_id=target_id,
                        previous=current.status,
                        current=new_status,
                        changed=True,
                        metadata={'role': current.role.value, 'actor_id': str(actor_id)},
                    )
                    self.audit_service.record(
                        actor_id,
                        f"{new_status.value}_user",
                        f"{current.role.value} user {target_id} was {new_status.value} "
                        f"(previously {current.status.value})",
                    )
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('set_status', str(e))
            raise TransientError()

        security_logger.log_status_change(
            str(actor_id), str(target_id), change.previous.value, change.current.value, change.changed
        )
        return change

    def assign_role(self, target_id: UUID, role) -> bool:
        """
        Operator bootstrap: give an account a role and reactivate it.

        Bypasses the actor check; only management commands call this.

        Returns:
            True if the stored assignment changed
        """
        role = Role(role)
        with transaction.atomic():
            if self.identity_provider.get_account(target_id) is None:
                raise AccountNotFoundError()
            changed = self.role_store.upsert(target_id, role, AccountStatus.ACTIVE)
            if changed:
                self.audit_service.record(
                    target_id, 'role_assigned', f"Role {role.value} assigned to {target_id}"
                )
        return changed

    def list_accounts(self, actor_id: UUID) -> List[Dict[str, Any]]:
        """
        List every account with its role and status, newest first.

        Raises:
            AccountDisabledError: If the actor is not active
            InsufficientRoleError: If the actor is not an admin
        """
        self.require(actor_id, 'manage_users')

        accounts = Account.objects.select_related('role_assignment').order_by('-created_at')
        result = []
        for account in accounts:
            assignment = getattr(account, 'role_assignment', None)
            data = assignment.to_data() if assignment else DEFAULT_ASSIGNMENT
            result.append({
                'id': str(account.id),
                'email': account.email,
                'display_name': account.display_name,
                'role': data.role.value,
                'status': data.status.value,
                'created_at': account.created_at.isoformat() if account.created_at else None,
            })
        return result

    def audit_log(self, actor_id: UUID, account_id: Optional[UUID] = None,
                  limit: int = 50) -> List[Dict[str, Any]]:
        """
        Recent audit entries for administrators, optionally for one account.

        Raises:
            AccountDisabledError: If the actor is not active
            InsufficientRoleError: If the actor is not an admin
            TransientError: If a store is unavailable
        """
        self.require(actor_id, 'view_audit_log')
        try:
            return self.audit_service.recent(account_id, limit)
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('audit_log', str(e))
            raise TransientError()

    def own_activity(self, account_id: UUID, limit: int = 50) -> List[Dict[str, Any]]:
        """Recent audit entries about the caller's own account."""
        self.require(account_id, 'view_dashboard')
        try:
            return self.audit_service.recent(account_id, limit)
        except TRANSIENT_ERRORS as e:
            security_logger.log_transient_failure('own_activity', str(e))
            raise TransientError()
