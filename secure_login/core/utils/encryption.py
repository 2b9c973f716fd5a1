"""
Encryption utilities for sensitive data storage.

TOTP shared secrets are stored encrypted at rest. Uses Fernet symmetric
encryption with a key derived from Django's SECRET_KEY through PBKDF2;
every encrypted value carries its own random salt.
"""

import base64
import secrets
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


SALT_LENGTH = 16


class EncryptionError(Exception):
    """Base exception for encryption-related errors."""
    pass


class DecryptionError(EncryptionError):
    """Exception raised when decryption fails."""
    pass


class EncryptionService:
    """
    Service for encrypting and decrypting sensitive data.

    Uses Fernet symmetric encryption with PBKDF2 key derivation.
    """

    def __init__(self, secret_key: Optional[str] = None):
        """
        Initialize the encryption service.

        Args:
            secret_key: Optional secret key. If not provided, uses Django's SECRET_KEY.
        """
        self._secret_key = secret_key
        self.iterations = getattr(settings, 'SECURE_LOGIN_ENCRYPTION_ITERATIONS', 100000)

    @property
    def secret_key(self) -> str:
        secret_key = self._secret_key or settings.SECRET_KEY
        if not secret_key:
            raise ImproperlyConfigured("SECRET_KEY must be set for encryption")
        return secret_key

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=self.iterations,
        )
        return base64.urlsafe_b64encode(kdf.derive(self.secret_key.encode()))

    def encrypt(self, data: Union[str, bytes]) -> str:
        """
        Encrypt data with a unique salt.

        Args:
            data: Data to encrypt (string or bytes)

        Returns:
            Base64-encoded encrypted data with embedded salt

        Raises:
            EncryptionError: If encryption fails
        """
        if isinstance(data, str):
            data = data.encode('utf-8')

        try:
            salt = secrets.token_bytes(SALT_LENGTH)
            fernet = Fernet(self._derive_key(salt))
            combined = salt + fernet.encrypt(data)
            return base64.urlsafe_b64encode(combined).decode('ascii')
        except (TypeError, ValueError) as e:
            raise EncryptionError(f"Failed to encrypt data: {str(e)}") from e

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt data that was encrypted with encrypt().

        Raises:
            DecryptionError: If decryption fails
        """
        try:
            combined = base64.urlsafe_b64decode(encrypted_data.encode('ascii'))
            salt, encrypted_bytes = combined[:SALT_LENGTH], combined[SALT_LENGTH:]
            fernet = Fernet(self._derive_key(salt))
            return fernet.decrypt(encrypted_bytes).decode('utf-8')
        except (InvalidToken, ValueError, UnicodeDecodeError) as e:
            raise DecryptionError(f"Failed to decrypt data: {str(e)}") from e


encryption_service = EncryptionService()


def encrypt_sensitive_data(data: Union[str, bytes]) -> str:
    """Encrypt sensitive data using the global encryption service."""
    return encryption_service.encrypt(data)


def decrypt_sensitive_data(encrypted_data: str) -> str:
    """Decrypt sensitive data using the global encryption service."""
    return encryption_service.decrypt(encrypted_data)
