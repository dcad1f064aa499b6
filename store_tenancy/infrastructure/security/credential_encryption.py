"""Field-level encryption for tenant database credentials (Fernet).

Each secret field (project URL, service key, anon key, connection string) is
encrypted on its own so non-secret columns stay queryable. Keys are derived
from CREDENTIAL_ENCRYPTION_SECRET + ENCRYPTION_SALT with PBKDF2; previous
secrets stay readable through MultiFernet until rows are rotated.
"""

import base64
from collections.abc import Sequence

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from store_tenancy.core.config import Settings, get_settings

DECRYPTION_ERROR_MSG = "Failed to decrypt credentials - invalid or corrupted data"

_KDF_ITERATIONS = 100_000


def derive_fernet_key(secret: str, salt: str) -> bytes:
    """Derive a urlsafe-base64 32-byte Fernet key via PBKDF2-HMAC-SHA256."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt.encode(),
        iterations=_KDF_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode()))


class FieldEncryptor:
    """Encrypt/decrypt single credential fields. None passes through unchanged."""

    def __init__(
        self, secret: str, salt: str, previous_secrets: Sequence[str] = ()
    ) -> None:
        if not secret or not salt:
            raise ValueError("Encryption secret and salt are required")
        keys = [Fernet(derive_fernet_key(secret, salt))]
        keys.extend(Fernet(derive_fernet_key(s, salt)) for s in previous_secrets)
        self._fernet = MultiFernet(keys)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "FieldEncryptor":
        """Build from CREDENTIAL_ENCRYPTION_SECRET, ENCRYPTION_SALT and previous secrets."""
        settings = settings or get_settings()
        return cls(
            settings.credential_encryption_secret.get_secret_value(),
            settings.encryption_salt.get_secret_value(),
            settings.previous_encryption_secrets,
        )

    def encrypt(self, value: str | None) -> str | None:
        """Encrypt a plaintext field; None and empty strings are stored as None."""
        if not value:
            return None
        return self._fernet.encrypt(value.encode()).decode()

    def decrypt(self, token: str | None) -> str | None:
        """Decrypt a stored field.

        Raises:
            ValueError: If the token is invalid under every configured key.
        """
        if token is None:
            return None
        try:
            return self._fernet.decrypt(token.encode()).decode()
        except InvalidToken as e:
            raise ValueError(DECRYPTION_ERROR_MSG) from e

    def rotate(self, token: str | None) -> str | None:
        """Re-encrypt a stored field under the primary key.

        Raises:
            ValueError: If the token is invalid under every configured key.
        """
        if token is None:
            return None
        try:
            return self._fernet.rotate(token.encode()).decode()
        except InvalidToken as e:
            raise ValueError(DECRYPTION_ERROR_MSG) from e
