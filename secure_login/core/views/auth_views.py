"""
Authentication views for Secure Login.

This module exposes the login state machine (password, biometric and code
steps), logout, signup and factor enrollment as API endpoints.
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle

from ..exceptions import (
    AccountAlreadyExistsError,
    AccountNotFoundError,
    AuthorizationError,
    BiometricCaptureError,
    CodeLockoutError,
    FactorNotFoundError,
    InvalidCredentialsError,
    PasswordPolicyError,
    TransientError,
)
from ..serializers import (
    BiometricEnrollmentSerializer,
    BiometricStepSerializer,
    CodeStepSerializer,
    LoginSerializer,
    PasswordChangeSerializer,
    ProfileUpdateSerializer,
    RegistrationSerializer,
    TOTPConfirmSerializer,
)
from ..models import Account
from ..services.access_gate import AccessGate
from ..services.auth_orchestrator import AuthOrchestrator
from ..types import LoginResult, LoginState, RejectionReason
from ..utils.request_utils import get_client_ip
from ..utils.response_utils import error_response, success_response

logger = logging.getLogger(__name__)


REJECTION_STATUS = {
    RejectionReason.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.INVALID_CODE: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.ATTEMPT_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    RejectionReason.NO_ROLE_ASSIGNED: status.HTTP_403_FORBIDDEN,
    RejectionReason.ACCOUNT_DISABLED: status.HTTP_403_FORBIDDEN,
    RejectionReason.LOCKED_OUT: status.HTTP_429_TOO_MANY_REQUESTS,
    RejectionReason.TRANSIENT_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def login_result_response(result: LoginResult) -> Response:
    """
    Render one login step.

    Any result carrying a reason is an error envelope; the handle and the
    remaining attempts of a mistyped code travel in ``details``.
    """
    if result.reason:
        return error_response(
            message=result.message,
            error_code=result.reason.value,
            details=result.to_dict(),
            status_code=REJECTION_STATUS.get(result.reason, status.HTTP_400_BAD_REQUEST),
        )

    messages = {
        LoginState.AWAITING_BIOMETRIC: "Biometric capture required",
        LoginState.AWAITING_CODE: "Verification code required",
        LoginState.AUTHENTICATED: "Login successful",
    }
    return success_response(data=result.to_dict(), message=messages.get(result.state, "OK"))


def validation_error(serializer) -> Response:
    return error_response(
        message="Invalid request",
        error_code="VALIDATION_ERROR",
        details=serializer.errors,
        status_code=status.HTTP_400_BAD_REQUEST
    )


def unavailable() -> Response:
    return error_response(
        message="The service is temporarily unavailable. Please retry.",
        error_code=RejectionReason.TRANSIENT_ERROR.value,
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE
    )


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AnonRateThrottle])
def login(request: Request) -> Response:
    """
    Start a login with email and password.

    Request body:
    {
        "email": "user@example.com",
        "password": "..."
    }

    Response data carries ``state`` and, for the next step, ``handle``; an
    immediate success carries ``principal`` with the session token.
    """
    serializer = LoginSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    orchestrator = AuthOrchestrator()
    result = orchestrator.begin_login(
        email=serializer.validated_data['email'],
        password=serializer.validated_data['password'],
        ip_address=get_client_ip(request),
    )
    return login_result_response(result)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_biometric(request: Request) -> Response:
    """
    Submit a biometric capture for a login attempt, or skip the step.

    Request body:
    {
        "handle": "...",
        "capture": "<base64>"     // or "skip": true
    }
    """
    serializer = BiometricStepSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    data = serializer.validated_data
    payload = None if data.get('skip') else data['capture']

    orchestrator = AuthOrchestrator()
    result = orchestrator.continue_biometric(data['handle'], payload)
    return login_result_response(result)


@api_view(['POST'])
@permission_classes([AllowAny])
def login_code(request: Request) -> Response:
    """
    Submit a one-time code for a login attempt.

    Request body:
    {
        "handle": "...",
        "code": "123456"
    }
    """
    serializer = CodeStepSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    orchestrator = AuthOrchestrator()
    result = orchestrator.continue_code(
        serializer.validated_data['handle'],
        serializer.validated_data['code'],
    )
    return login_result_response(result)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def logout(request: Request) -> Response:
    try:
        AuthOrchestrator().logout(request.auth)
    except TransientError:
        return unavailable()
    return success_response(message="Logged out")


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def me(request: Request) -> Response:
    """
    Return the principal of the current session, re-read from the stores.

    PATCH updates the display name and needs ``change_own_settings``.
    """
    if request.method == 'PATCH':
        serializer = ProfileUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)
        try:
            AccessGate().require(request.user.id, 'change_own_settings')
        except TransientError:
            return unavailable()
        except AuthorizationError as e:
            return error_response(message=e.message, error_code=e.error_code,
                                  status_code=status.HTTP_403_FORBIDDEN)
        Account.objects.rename(request.user.id, serializer.validated_data['display_name'])

    principal = AuthOrchestrator().principal_for(request.auth)
    if principal is None:
        return error_response(
            message="Session is no longer valid",
            error_code="SESSION_INVALID",
            status_code=status.HTTP_401_UNAUTHORIZED
        )
    data = principal.to_dict()
    data.pop('session_token', None)
    return success_response(data=data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request: Request) -> Response:
    """
    Change the password of the current account.

    Request body:
    {
        "current_password": "...",
        "new_password": "...",
        "new_password_confirm": "..."
    }

    Other sessions of the account are signed out; this one stays valid.
    """
    serializer = PasswordChangeSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        AccessGate().require(request.user.id, 'change_own_settings')
        AuthOrchestrator().change_password(
            request.user.id,
            serializer.validated_data['current_password'],
            serializer.validated_data['new_password'],
            session_token=request.auth,
        )
    except (InvalidCredentialsError, PasswordPolicyError) as e:
        return error_response(message=e.message, error_code=e.error_code, details=e.details,
                              status_code=status.HTTP_400_BAD_REQUEST)
    except TransientError:
        return unavailable()
    except AuthorizationError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_403_FORBIDDEN)

    return success_response(message="Password changed")


@api_view(['POST'])
@permission_classes([AllowAny])
@throttle_classes([AnonRateThrottle])
def register(request: Request) -> Response:
    """
    Create an account with the default user role.

    Request body:
    {
        "email": "user@example.com",
        "display_name": "Jane Doe",
        "password": "...",
        "password_confirm": "..."
    }
    """
    serializer = RegistrationSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        account = AuthOrchestrator().register_account(**serializer.validated_data)
    except AccountAlreadyExistsError as e:
        return error_response(
            message=e.message,
            error_code=e.error_code,
            status_code=status.HTTP_409_CONFLICT
        )
    except TransientError:
        return unavailable()

    return success_response(
        data={
            'id': str(account.id),
            'email': account.email,
            'display_name': account.display_name,
        },
        message="Account created",
        status_code=status.HTTP_201_CREATED
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def enroll_totp(request: Request) -> Response:
    """
    Generate a new TOTP secret for the current account.

    Response data:
    {
        "secret": "BASE32...",
        "provisioning_uri": "otpauth://totp/...",
        "qr_code_data": "data:image/png;base64,...",
        "manual_entry_key": "XXXX XXXX ..."
    }
    """
    try:
        enrollment = AuthOrchestrator().enroll_totp(request.user.id)
    except AccountNotFoundError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_404_NOT_FOUND)
    except TransientError:
        return unavailable()

    return success_response(data=enrollment.to_dict(), message="Scan the code with your authenticator app")


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def confirm_totp(request: Request) -> Response:
    serializer = TOTPConfirmSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        valid = AuthOrchestrator().confirm_totp(request.user.id, serializer.validated_data['code'])
    except FactorNotFoundError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_404_NOT_FOUND)
    except CodeLockoutError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_429_TOO_MANY_REQUESTS)
    except TransientError:
        return unavailable()

    if not valid:
        return error_response(
            message="The verification code is not valid.",
            error_code=RejectionReason.INVALID_CODE.value,
            status_code=status.HTTP_400_BAD_REQUEST
        )
    return success_response(data={'valid': True}, message="Authenticator app verified")


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def enroll_biometric(request: Request) -> Response:
    serializer = BiometricEnrollmentSerializer(data=request.data)
    if not serializer.is_valid():
        return validation_error(serializer)

    try:
        sample = AuthOrchestrator().enroll_biometric(
            request.user.id, serializer.validated_data['capture']
        )
    except BiometricCaptureError as e:
        return error_response(message=e.message, error_code=e.error_code,
                              status_code=status.HTTP_400_BAD_REQUEST)
    except TransientError:
        return unavailable()

    return success_response(
        data={'captured_at': sample.captured_at.isoformat()},
        message="Biometric enrolled"
    )
