"""
Time-based one-time password engine.

RFC 6238 code generation is delegated to pyotp. This module owns the
contract around it: secret size, provisioning URI format, accepted clock
skew, code format and constant-time comparison.
"""

import base64
import hmac
import io
import re
from datetime import datetime
from typing import Optional, Union
from urllib.parse import quote

import pyotp
import qrcode
from django.conf import settings
from django.utils import timezone

from ..exceptions import FactorNotFoundError
from ..types import TOTPEnrollment


class TOTPEngine:
    """
    Generates and verifies TOTP secrets and codes.

    The engine is stateless; it is safe to share one instance between
    threads and to verify codes for many accounts in parallel.
    """

    def __init__(
        self,
        issuer: Optional[str] = None,
        digits: Optional[int] = None,
        interval: Optional[int] = None,
        valid_window: Optional[int] = None,
    ):
        self.issuer = issuer or getattr(settings, 'SECURE_LOGIN_TOTP_ISSUER', 'CompanySecureLogin')
        self.digits = digits or getattr(settings, 'SECURE_LOGIN_TOTP_DIGITS', 6)
        self.interval = interval or getattr(settings, 'SECURE_LOGIN_TOTP_INTERVAL', 30)
        self.valid_window = (
            valid_window if valid_window is not None
            else getattr(settings, 'SECURE_LOGIN_TOTP_VALID_WINDOW', 1)
        )
        self._code_pattern = re.compile(r'[0-9]{%d}' % self.digits)

    def generate_secret(self) -> str:
        """
        Generate a new shared secret.

        Returns:
            32-character base-32 string (160 bits of entropy)
        """
        return pyotp.random_base32()

    def provisioning_uri(self, secret: str, account_label: str) -> str:
        """
        Build the otpauth URI scanned by authenticator apps.

        Args:
            secret: Base-32 secret
            account_label: Label shown in the authenticator, usually the email

        Returns:
            otpauth://totp/<issuer>:<label>?secret=<secret>&issuer=<issuer>
        """
        label = quote(account_label, safe='')
        issuer = quote(self.issuer, safe='')

        return f"otpauth://totp/{issuer}:{label}?secret={secret}&issuer={issuer}"

    def qr_code_data(self, uri: str) -> str:
        """
        Render a provisioning URI as a PNG data URL.

        Args:
            uri: otpauth URI

        Returns:
            Base64 encoded QR code image data URL
        """
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(uri)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        img_data = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{img_data}"

    def format_for_manual_entry(self, secret: str) -> str:
        """Split the secret into groups of 4 characters."""
        return ' '.join([secret[i:i + 4] for i in range(0, len(secret), 4)])

    def new_enrollment(self, account_label: str) -> TOTPEnrollment:
        secret = self.generate_secret()
        uri = self.provisioning_uri(secret, account_label)
        return TOTPEnrollment(
            secret=secret,
            provisioning_uri=uri,
            qr_code_data=self.qr_code_data(uri),
            manual_entry_key=self.format_for_manual_entry(secret),
        )

    def is_well_formed(self, code) -> bool:
        return isinstance(code, str) and bool(self._code_pattern.fullmatch(code))

    def verify(self, secret: Optional[str], code: str,
               now: Union[datetime, int, float, None] = None) -> bool:
        """
        Verify a code against the current and adjacent time steps.

        Malformed codes are rejected before the secret is consulted. Every
        step in the window is compared, matching or not, so the time taken
        does not depend on which step matched.

        Args:
            secret: Base-32 secret on record
            code: Code submitted by the user
            now: Verification instant, defaults to the current time

        Returns:
            True if the code matches one of the accepted steps

        Raises:
            FactorNotFoundError: If no secret is on record
        """
        if not self.is_well_formed(code):
            return False

        if not secret:
            raise FactorNotFoundError("No TOTP secret on record")

        totp = pyotp.TOTP(secret, digits=self.digits, interval=self.interval)
        when = now if now is not None else timezone.now()

        matched = False
        for offset in range(-self.valid_window, self.valid_window + 1):
            expected = totp.at(when, counter_offset=offset)
            if hmac.compare_digest(expected.encode(), code.encode()):
                matched = True
        return matched
