"""
Role assignment model.

Exactly one row per account maps it to a role and a lifecycle status. The
database refuses any administrator row whose status is not active, so an
admin cannot be fired or blocked through any code path.
"""

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from .base import TimestampedModel
from ..managers import RoleAssignmentManager
from ..types import AccountStatus, Role, RoleAssignmentData


class RoleAssignment(TimestampedModel):
    """
    (account) -> {role, status}.
    """

    ROLE_CHOICES = [
        (Role.USER.value, 'User'),
        (Role.EMPLOYEE.value, 'Employee'),
        (Role.ADMIN.value, 'Administrator'),
    ]

    STATUS_CHOICES = [
        (AccountStatus.ACTIVE.value, 'Active'),
        (AccountStatus.FIRED.value, 'Fired'),
        (AccountStatus.BLOCKED.value, 'Blocked'),
    ]

    account = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='role_assignment',
        help_text="Account this assignment belongs to"
    )
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=Role.USER.value,
        help_text="Coarse permission class"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=AccountStatus.ACTIVE.value,
        help_text="Account lifecycle status"
    )

    objects = RoleAssignmentManager()

    class Meta:
        db_table = 'secure_login_role_assignment'
        verbose_name = _('Role Assignment')
        verbose_name_plural = _('Role Assignments')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role', 'status']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(role=Role.ADMIN.value) | Q(status=AccountStatus.ACTIVE.value),
                name='admin_assignment_always_active',
            ),
        ]

    def __str__(self):
        return f"{self.account_id}: {self.role}/{self.status}"

    def to_data(self) -> RoleAssignmentData:
        return RoleAssignmentData(role=Role(self.role), status=AccountStatus(self.status))
