"""
Credential vault
Symmetric encryption for OAuth tokens at rest
"""

import base64
import hashlib
import logging
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

from ... import config
from ...errors import DecryptionFailure

logger = logging.getLogger(__name__)


def _derive_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest())


class CredentialVault:
    """Fernet wrapper; one static key for the whole process"""

    def __init__(self, key: Optional[str] = None):
        key = key or config.ENCRYPTION_KEY
        if key:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        else:
            logger.warning("⚠️ ENCRYPTION_KEY not set, deriving mailbox token key from SECRET_KEY")
            self._fernet = Fernet(_derive_key(config.SECRET_KEY))

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str) -> str:
        """Raises DecryptionFailure for a rotated key or corrupted data"""
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except (InvalidToken, AttributeError, UnicodeDecodeError) as e:
            raise DecryptionFailure() from e


_vault: Optional[CredentialVault] = None


def get_vault() -> CredentialVault:
    global _vault
    if _vault is None:
        _vault = CredentialVault()
    return _vault
