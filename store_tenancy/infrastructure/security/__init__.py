"""Security: credential encryption."""

from store_tenancy.infrastructure.security.credential_encryption import (
    DECRYPTION_ERROR_MSG,
    FieldEncryptor,
)

__all__ = ["DECRYPTION_ERROR_MSG", "FieldEncryptor"]
