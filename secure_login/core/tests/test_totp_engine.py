"""
Tests for the TOTP engine.
"""

from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import pyotp
from django.test import TestCase, override_settings

from ..exceptions import FactorNotFoundError
from ..services.totp_engine import TOTPEngine


SECRET = 'JBSWY3DPEHPK3PXPJBSWY3DPEHPK3PXP'
NOW = 1700000000


class TOTPEngineTestCase(TestCase):
    """Test case for secret generation and code verification."""

    def setUp(self):
        self.engine = TOTPEngine()
        self.totp = pyotp.TOTP(SECRET)

    def test_generate_secret_has_160_bits(self):
        secret = self.engine.generate_secret()

        self.assertEqual(len(secret), 32)
        self.assertEqual(len(pyotp.TOTP(secret).byte_secret()), 20)

    def test_generate_secret_is_random(self):
        self.assertNotEqual(self.engine.generate_secret(), self.engine.generate_secret())

    def test_verify_current_code(self):
        self.assertTrue(self.engine.verify(SECRET, self.totp.at(NOW), now=NOW))

    def test_verify_accepts_one_step_skew(self):
        self.assertTrue(self.engine.verify(SECRET, self.totp.at(NOW - 30), now=NOW))
        self.assertTrue(self.engine.verify(SECRET, self.totp.at(NOW + 30), now=NOW))

    def test_verify_rejects_codes_two_steps_away(self):
        for delta in (60, 90, 300, -60):
            code = self.totp.at(NOW + delta)
            accepted = {self.totp.at(NOW, counter_offset=o) for o in (-1, 0, 1)}
            if code in accepted:
                continue
            self.assertFalse(self.engine.verify(SECRET, code, now=NOW), delta)

    def test_verify_rejects_malformed_codes(self):
        for code in ('', '12345', '1234567', 'abcdef', '12 345', ' 123456', '123456\n',
                     '\u0661\u0662\u0663\u0664\u0665\u0666', None, 123456):
            self.assertFalse(self.engine.verify(SECRET, code, now=NOW), repr(code))

    def test_malformed_code_never_consults_secret(self):
        # No FactorNotFoundError: the code is rejected first.
        for code in ('abc', '123456\n', '١٢٣٤٥٦'):
            self.assertFalse(self.engine.verify(None, code), repr(code))

        with patch('secure_login.core.services.totp_engine.pyotp.TOTP') as mock_totp:
            self.assertFalse(self.engine.verify(SECRET, '١٢٣٤٥٦', now=NOW))
            self.assertFalse(self.engine.verify(SECRET, '123456\n', now=NOW))

        mock_totp.assert_not_called()

    def test_missing_secret_raises(self):
        with self.assertRaises(FactorNotFoundError):
            self.engine.verify(None, '123456')

        with self.assertRaises(FactorNotFoundError):
            self.engine.verify('', '123456')

    @override_settings(SECURE_LOGIN_TOTP_DIGITS=8)
    def test_digit_count_is_configurable(self):
        engine = TOTPEngine()
        code = pyotp.TOTP(SECRET, digits=8).at(NOW)

        self.assertTrue(engine.verify(SECRET, code, now=NOW))
        self.assertFalse(engine.verify(SECRET, code[:6], now=NOW))

    def test_provisioning_uri_format(self):
        uri = self.engine.provisioning_uri(SECRET, 'jane@example.com')

        self.assertEqual(
            uri,
            f"otpauth://totp/CompanySecureLogin:jane%40example.com"
            f"?secret={SECRET}&issuer=CompanySecureLogin"
        )

    def test_provisioning_uri_encodes_issuer_and_label(self):
        engine = TOTPEngine(issuer='Acme Corp')
        uri = engine.provisioning_uri(SECRET, 'jane doe@example.com')
        parsed = urlparse(uri)

        self.assertEqual(parsed.scheme, 'otpauth')
        self.assertEqual(parsed.netloc, 'totp')
        self.assertEqual(parsed.path, '/Acme%20Corp:jane%20doe%40example.com')
        self.assertEqual(parse_qs(parsed.query)['issuer'], ['Acme Corp'])

    def test_provisioning_uri_escapes_slashes(self):
        engine = TOTPEngine(issuer='Acme/HR')
        parsed = urlparse(engine.provisioning_uri(SECRET, 'team/jane@example.com'))

        self.assertEqual(parsed.path, '/Acme%2FHR:team%2Fjane%40example.com')
        self.assertEqual(parse_qs(parsed.query)['issuer'], ['Acme/HR'])

    def test_provisioning_uri_is_readable_by_pyotp(self):
        uri = self.engine.provisioning_uri(SECRET, 'jane@example.com')
        parsed = pyotp.parse_uri(uri)

        self.assertEqual(parsed.secret, SECRET)
        self.assertEqual(parsed.issuer, 'CompanySecureLogin')
        self.assertEqual(parsed.name, 'jane@example.com')

    def test_new_enrollment(self):
        enrollment = self.engine.new_enrollment('jane@example.com')

        self.assertIn(enrollment.secret, enrollment.provisioning_uri)
        self.assertTrue(enrollment.qr_code_data.startswith('data:image/png;base64,'))
        self.assertEqual(enrollment.manual_entry_key.replace(' ', ''), enrollment.secret)
        self.assertEqual(len(enrollment.manual_entry_key.split(' ')), 8)
