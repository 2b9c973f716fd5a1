"""
Authorization and user-management views for Secure Login.
"""

import logging
from uuid import UUID

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from ..exceptions import (
    AccountNotFoundError,
    AuthorizationError,
    TargetIsAdminError,
    TransientError,
)
from ..serializers import AuditQuerySerializer, AuthorizeSerializer, StatusChangeSerializer
from ..services.access_gate import AccessGate
from ..types import REJECTION_MESSAGES
from ..utils.response_utils import error_response, success_response
from .auth_views import unavailable, validation_error

logger = logging.getLogger(__name__)


def authorization_error_response(e: AuthorizationError) -> Response:
    # Callers here are already authenticated, so the specific reason is shown.
    status_code = status.HTTP_409_CONFLICT if isinstance(e, TargetIsAdminError) else status.HTTP_403_FORBIDDEN
    return error_response(message=e.message, error_code=e.error_code, status_code=status_code)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def authorize(request: Request) -> Response:
    """
    Ask whether the current account may perform an action.

    Request body:
    {
        "action": "view_admin_panel"
    }

    Response data:
    {
        "action": "view_admin_panel",
        "allowed": false,
        "reason": "InsufficientRole"
    }
    """
    serializer = AuthorizeSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    action = serializer.validated_data['action']
    decision = AccessGate().authorize(request.user.id, action)

    data = {'action': action, 'allowed': decision.allowed}
    if not decision:
        data['reason'] = decision.reason.value
        data['message'] = REJECTION_MESSAGES[decision.reason]
    return success_response(data=data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def list_accounts(request: Request) -> Response:
    try:
        accounts = AccessGate().list_accounts(request.user.id)
    except TransientError:
        return unavailable()
    except AuthorizationError as e:
        return authorization_error_response(e)

    return success_response(data={'accounts': accounts, 'count': len(accounts)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def set_account_status(request: Request, account_id: UUID) -> Response:
    """
    Fire, block or reactivate an account.

    Request body:
    {
        "status": "blocked"
    }

    Reapplying the current status succeeds with ``changed: false``.
    """
    serializer = StatusChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        change = AccessGate().set_status(
            actor_id=request.user.id,
            target_id=account_id,
            new_status=serializer.validated_data['status'],
        )
    except AccountNotFoundError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_404_NOT_FOUND)
    except TransientError:
        return unavailable()
    except AuthorizationError as e:
        return authorization_error_response(e)

    return success_response(
        data={
            'account_id': str(change.target_id),
            'previous_status': change.previous.value,
            'status': change.current.value,
            'changed': change.changed,
        },
        message="Status updated" if change.changed else "Status unchanged"
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def audit_log(request: Request) -> Response:
    """
    Recent audit entries, newest first.

    Query parameters: ``account_id`` narrows to one account, ``limit``
    caps the number of entries (1-200, default 50).
    """
    serializer = AuditQuerySerializer(data=request.query_params)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        entries = AccessGate().audit_log(
            request.user.id,
            account_id=serializer.validated_data.get('account_id'),
            limit=serializer.validated_data['limit'],
        )
    except TransientError:
        return unavailable()
    except AuthorizationError as e:
        return authorization_error_response(e)

    return success_response(data={'entries': entries, 'count': len(entries)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def my_activity(request: Request) -> Response:
    serializer = AuditQuerySerializer(data=request.query_params)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        entries = AccessGate().own_activity(request.user.id, limit=serializer.validated_data['limit'])
    except TransientError:
        return unavailable()
    except AuthorizationError as e:
        return authorization_error_response(e)

    return success_response(data={'entries': entries, 'count': len(entries)})
