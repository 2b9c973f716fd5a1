"""
Serializers for the Secure Login API.

Serializers only validate request shape; every decision is taken by the
orchestrator or the access gate.
"""

import base64
import binascii
from typing import Any, Dict

from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from .types import AccountStatus


class Base64PayloadField(serializers.CharField):
    """Base64 text on the wire, bytes in ``validated_data``."""

    def to_internal_value(self, data):
        value = super().to_internal_value(data)
        if ',' in value and value.startswith('data:'):
            value = value.split(',', 1)[1]
        try:
            return base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError):
            raise serializers.ValidationError(_('Capture must be base64 encoded'))


class RegistrationSerializer(serializers.Serializer):
    """
    Signup request.
    """

    email = serializers.EmailField()
    display_name = serializers.CharField(max_length=150)
    password = serializers.CharField(
        write_only=True,
        help_text="Checked against AUTH_PASSWORD_VALIDATORS"
    )
    password_confirm = serializers.CharField(write_only=True)

    def validate_email(self, value: str) -> str:
        return value.lower().strip()

    def validate_display_name(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError(_('Display name cannot be blank'))
        return value

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if attrs['password'] != attrs.pop('password_confirm'):
            raise serializers.ValidationError({'password_confirm': _('Passwords do not match')})

        try:
            validate_password(attrs['password'])
        except DjangoValidationError as e:
            raise serializers.ValidationError({'password': list(e.messages)})

        return attrs


class LoginSerializer(serializers.Serializer):
    email = serializers.CharField(max_length=254)
    password = serializers.CharField(write_only=True, trim_whitespace=False)


class BiometricStepSerializer(serializers.Serializer):
    """
    Biometric login step; ``skip`` moves on without a capture.
    """

    handle = serializers.CharField(max_length=64)
    capture = Base64PayloadField(required=False, allow_blank=False)
    skip = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if not attrs.get('skip') and 'capture' not in attrs:
            raise serializers.ValidationError(_('Provide a capture or set skip'))
        return attrs


class CodeStepSerializer(serializers.Serializer):
    handle = serializers.CharField(max_length=64)
    # Format is checked by the TOTP engine so that malformed codes count
    # against the attempt limit like any other wrong code.
    code = serializers.CharField(max_length=16, trim_whitespace=True)


class TOTPConfirmSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=16, trim_whitespace=True)


class BiometricEnrollmentSerializer(serializers.Serializer):
    capture = Base64PayloadField()


class AuthorizeSerializer(serializers.Serializer):
    action = serializers.CharField(max_length=64)


class StatusChangeSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s.value for s in AccountStatus])


class ProfileUpdateSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=150)

    def validate_display_name(self, value: str) -> str:
        value = value.strip()
        if not value:
            raise serializers.ValidationError(_('Display name cannot be blank'))
        return value


class PasswordChangeSerializer(serializers.Serializer):
    """
    Password change for the signed-in account.

    Policy checks that need the account run in the identity provider.
    """

    current_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password = serializers.CharField(write_only=True, trim_whitespace=False)
    new_password_confirm = serializers.CharField(write_only=True, trim_whitespace=False)

    def validate(self, attrs: Dict[str, Any]) -> Dict[str, Any]:
        if attrs['new_password'] != attrs.pop('new_password_confirm'):
            raise serializers.ValidationError({'new_password_confirm': _('Passwords do not match')})
        if attrs['new_password'] == attrs['current_password']:
            raise serializers.ValidationError(
                {'new_password': _('New password must differ from the current one')}
            )
        return attrs


class AuditQuerySerializer(serializers.Serializer):
    account_id = serializers.UUIDField(required=False)
    limit = serializers.IntegerField(required=False, default=50, min_value=1, max_value=200)
