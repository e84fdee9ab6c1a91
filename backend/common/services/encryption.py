"""
Encryption service for sensitive declared data (business licence numbers) and
one-way hashing for uniqueness checks (confirmed phone numbers).
Uses Fernet symmetric encryption with key from environment.
"""
import hashlib
import logging

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


class DecryptionError(Exception):
    """A stored token could not be decrypted with the configured key."""


class EncryptionService:
    """Service for encrypting and decrypting sensitive data"""

    def __init__(self):
        encryption_key = getattr(settings, 'ENCRYPTION_KEY', None)

        if not encryption_key:
            raise ImproperlyConfigured(
                "ENCRYPTION_KEY not found in settings. "
                "Add ENCRYPTION_KEY to your .env file. "
                "Generate one with: python -c 'from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())'"
            )

        # Ensure key is bytes
        if isinstance(encryption_key, str):
            encryption_key = encryption_key.encode()

        self.cipher = Fernet(encryption_key)

    def encrypt(self, value: str) -> str:
        """
        Encrypt a value for storage.

        Args:
            value: Plain text value

        Returns:
            Fernet token as string ("" for empty input)
        """
        if not value:
            return ""
        return self.cipher.encrypt(value.encode()).decode()

    def decrypt(self, token: str, strict: bool = False) -> str:
        """
        Decrypt a stored value.

        Returns:
            Plain text, or "" when the token is empty or cannot be decrypted

        Raises:
            DecryptionError: token cannot be decrypted and strict is set
        """
        if not token:
            return ""

        try:
            return self.cipher.decrypt(token.encode()).decode()
        except InvalidToken as e:
            # Log error but don't expose details
            logger.error("Failed to decrypt stored value (wrong key or corrupted token)")
            if strict:
                raise DecryptionError("Stored value cannot be decrypted with the configured key") from e
            return ""

    @staticmethod
    def hash_value(value: str) -> str:
        """
        Create SHA256 hash of a value for duplicate detection.
        Hash is one-way and cannot be reversed.
        """
        if not value:
            return ""
        return hashlib.sha256(value.encode()).hexdigest()


_encryption_service = None


def get_encryption_service() -> EncryptionService:
    """Shared instance, created on first use so settings overrides are honoured."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
