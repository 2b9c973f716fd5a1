"""
Biometric capture gateways.

Only capture confirmation happens here. Comparing a capture against the
enrolled template belongs to an external match service and is not part of
this module.
"""

import hashlib
import logging
from typing import Optional
from uuid import UUID

from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from ..exceptions import BiometricCaptureError, ConfigurationError
from ..interfaces import IBiometricGateway
from ..types import BiometricSample

logger = logging.getLogger(__name__)


class PassThroughBiometricGateway(IBiometricGateway):
    """
    Accepts any non-empty capture payload.

    The template reference is a digest of the payload, so the raw capture is
    never stored.
    """

    def __init__(self, max_payload_bytes: Optional[int] = None):
        self.max_payload_bytes = max_payload_bytes or getattr(
            settings, 'SECURE_LOGIN_BIOMETRIC_MAX_PAYLOAD', 5 * 1024 * 1024
        )

    def is_available(self) -> bool:
        return True

    def capture(self, account_id: UUID, payload: bytes, timeout: float) -> BiometricSample:
        if not payload:
            raise BiometricCaptureError("Empty biometric capture")

        if len(payload) > self.max_payload_bytes:
            raise BiometricCaptureError("Biometric capture exceeds the maximum size")

        template_ref = hashlib.sha256(payload).hexdigest()
        logger.debug(
            "Biometric capture confirmed",
            extra={'account_id': str(account_id), 'timeout': timeout}
        )
        return BiometricSample(template_ref=template_ref, captured_at=timezone.now())


class UnavailableBiometricGateway(IBiometricGateway):
    """
    Gateway for deployments without a capture device.

    Logins skip the biometric step; enrollment fails.
    """

    def is_available(self) -> bool:
        return False

    def capture(self, account_id: UUID, payload: bytes, timeout: float) -> BiometricSample:
        raise BiometricCaptureError("Biometric capture is not available")


def get_biometric_gateway() -> IBiometricGateway:
    """
    Instantiate the gateway named by SECURE_LOGIN_BIOMETRIC_GATEWAY.

    Raises:
        ConfigurationError: If the dotted path cannot be imported
    """
    path = getattr(
        settings,
        'SECURE_LOGIN_BIOMETRIC_GATEWAY',
        'secure_login.core.services.biometric_gateway.PassThroughBiometricGateway',
    )
    try:
        gateway_class = import_string(path)
    except ImportError as e:
        raise ConfigurationError(f"Cannot load biometric gateway {path}: {e}")
    return gateway_class()
