"""
Base model classes shared by all Secure Login models.
"""

import uuid

from django.db import models


class BaseModel(models.Model):
    """
    Abstract base model with UUID primary key.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
        help_text="Unique identifier for this record"
    )

    class Meta:
        abstract = True

    def __str__(self):
        return f"{self.__class__.__name__}({self.id})"

    def __repr__(self):
        return f"<{self.__class__.__name__}: {self.id}>"


class TimestampedModel(BaseModel):
    """
    Abstract model with created_at and updated_at timestamps.
    """

    created_at = models.DateTimeField(
        auto_now_add=True,
        help_text="Timestamp when this record was created"
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="Timestamp when this record was last updated"
    )

    class Meta:
        abstract = True
        ordering = ['-created_at']


class EncryptedFieldMixin:
    """
    Mixin for models that contain encrypted fields.
    """

    def encrypt_field(self, field_name: str, value: str) -> str:
        from secure_login.core.utils.encryption import encrypt_sensitive_data
        return encrypt_sensitive_data(value)

    def decrypt_field(self, field_name: str, encrypted_value: str) -> str:
        from secure_login.core.utils.encryption import decrypt_sensitive_data
        return decrypt_sensitive_data(encrypted_value)
