"""
Security utilities: access token encryption.
"""
import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from storesync.core.config import settings
from storesync.core.logging import get_logger

logger = get_logger(__name__)


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet-compatible key from the encryption key."""
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


# Token encryption
_fernet = Fernet(derive_fernet_key(settings.encryption_key))


def encrypt_token(token: str) -> str:
    """Encrypt a token for secure storage."""
    return _fernet.encrypt(token.encode()).decode()


def decrypt_token(encrypted_token: str) -> str:
    """Decrypt a stored token."""
    try:
        return _fernet.decrypt(encrypted_token.encode()).decode()
    except InvalidToken as e:
        logger.error("Failed to decrypt token", error=str(e))
        raise ValueError("Invalid encrypted token") from e
