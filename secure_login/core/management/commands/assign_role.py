"""
Management command to give an account a role.

This is the only way to create the first administrator: the API can fire,
block or reactivate accounts but never changes roles.
"""

import logging
from django.core.management.base import BaseCommand, CommandError

from secure_login.core.exceptions import AccountNotFoundError, TransientError
from secure_login.core.models import Account
from secure_login.core.services.access_gate import AccessGate
from secure_login.core.types import Role


logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = 'Assign a role to an account and mark it active'

    def add_arguments(self, parser):
        parser.add_argument(
            'email',
            type=str,
            help='Email of the account',
        )
        parser.add_argument(
            'role',
            type=str,
            choices=[role.value for role in Role],
            help='Role to assign',
        )

    def handle(self, *args, **options):
        account = Account.objects.get_by_email(options['email'])
        if account is None:
            raise CommandError(f"No account with email {options['email']}")

        try:
            changed = AccessGate().assign_role(account.id, options['role'])
        except (AccountNotFoundError, TransientError) as e:
            logger.error(f"Role assignment failed: {e}")
            raise CommandError(f"Failed to assign role: {e}")

        if changed:
            self.stdout.write(
                self.style.SUCCESS(f"{account.email} is now {options['role']} (active)")
            )
        else:
            self.stdout.write(f"{account.email} already is {options['role']} (active)")
