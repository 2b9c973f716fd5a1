"""
Session token authentication for Django REST Framework.

Protected endpoints expect ``Authorization: Session <token>`` where the
token was issued when a login attempt reached the authenticated state.
"""

from typing import Any, Optional, Tuple
import logging

from django.contrib.auth import get_user_model
from django.utils.translation import gettext_lazy as _
from rest_framework import exceptions
from rest_framework.authentication import BaseAuthentication
from rest_framework.request import Request

from .exceptions import TRANSIENT_ERRORS
from .services.identity_provider import DjangoIdentityProvider

logger = logging.getLogger(__name__)

User = get_user_model()


class SessionTokenAuthentication(BaseAuthentication):
    """
    Resolves the session token through the identity provider.

    Role and status are not checked here; the access gate decides what an
    authenticated account may do.
    """

    auth_header_prefix = 'Session'
    auth_header_name = 'Authorization'

    def __init__(self, identity_provider=None):
        self.identity_provider = identity_provider or DjangoIdentityProvider()

    def authenticate(self, request: Request) -> Optional[Tuple[Any, Any]]:
        """
        Authenticate the request using a session token.

        Returns:
            Tuple of (account, token) if authenticated, None if no session
            header was sent
        """
        auth_header = self.get_authorization_header(request)
        if not auth_header:
            return None

        token = self.extract_token_from_header(auth_header)
        if not token:
            return None

        try:
            account_id = self.identity_provider.current_account(token)
        except TRANSIENT_ERRORS as e:
            logger.error(f"Session lookup failed: {str(e)}")
            raise exceptions.AuthenticationFailed(_('Session could not be verified'))

        if account_id is None:
            raise exceptions.AuthenticationFailed(_('Invalid or expired session'))

        account = User.objects.filter(id=account_id).first()
        if account is None or not account.is_active:
            raise exceptions.AuthenticationFailed(_('Invalid or expired session'))

        return (account, token)

    def get_authorization_header(self, request: Request) -> Optional[str]:
        auth_header = request.META.get(f'HTTP_{self.auth_header_name.upper()}')
        if not auth_header:
            return None
        return auth_header.strip()

    def extract_token_from_header(self, auth_header: str) -> Optional[str]:
        parts = auth_header.split()

        if len(parts) != 2:
            return None

        prefix, token = parts

        if prefix.lower() != self.auth_header_prefix.lower():
            return None

        return token

    def authenticate_header(self, request: Request) -> str:
        """Return the WWW-Authenticate header for 401 responses."""
        return f'{self.auth_header_prefix} realm="api"'
