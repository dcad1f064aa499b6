"""Unit tests for FieldEncryptor (Fernet field encryption, key rotation)."""

import pytest

from store_tenancy.infrastructure.security.credential_encryption import (
    DECRYPTION_ERROR_MSG,
    FieldEncryptor,
    derive_fernet_key,
)


def test_encrypt_decrypt_round_trip(encryptor: FieldEncryptor) -> None:
    """Encrypted values decrypt to the original and never contain the plaintext."""
    token = encryptor.encrypt("service-role-key")
    assert token is not None
    assert "service-role-key" not in token
    assert encryptor.decrypt(token) == "service-role-key"


def test_none_and_empty_pass_through(encryptor: FieldEncryptor) -> None:
    """None and empty strings are stored as None; None decrypts to None."""
    assert encryptor.encrypt(None) is None
    assert encryptor.encrypt("") is None
    assert encryptor.decrypt(None) is None


def test_same_value_encrypts_differently(encryptor: FieldEncryptor) -> None:
    """Fernet tokens are randomized, so equal secrets do not produce equal ciphertexts."""
    assert encryptor.encrypt("same") != encryptor.encrypt("same")


def test_wrong_secret_cannot_decrypt(encryptor: FieldEncryptor) -> None:
    """A token from another secret raises ValueError with a generic message."""
    token = encryptor.encrypt("secret-value")
    other = FieldEncryptor("another-secret", "unit-test-salt")
    with pytest.raises(ValueError, match=DECRYPTION_ERROR_MSG):
        other.decrypt(token)


def test_corrupted_token_raises_value_error(encryptor: FieldEncryptor) -> None:
    """Garbage ciphertext is reported the same way as a wrong key."""
    with pytest.raises(ValueError):
        encryptor.decrypt("not-a-fernet-token")


def test_previous_secret_still_decrypts_and_rotate_moves_to_primary() -> None:
    """Old tokens stay readable during rotation; rotate() re-encrypts under the new secret."""
    old = FieldEncryptor("old-secret", "unit-test-salt")
    token = old.encrypt("connection-string")

    rotated_encryptor = FieldEncryptor(
        "new-secret", "unit-test-salt", previous_secrets=["old-secret"]
    )
    assert rotated_encryptor.decrypt(token) == "connection-string"

    rotated = rotated_encryptor.rotate(token)
    new_only = FieldEncryptor("new-secret", "unit-test-salt")
    assert new_only.decrypt(rotated) == "connection-string"
    with pytest.raises(ValueError):
        old.decrypt(rotated)


def test_rotate_none_is_none(encryptor: FieldEncryptor) -> None:
    """Rotating an empty column is a no-op."""
    assert encryptor.rotate(None) is None


def test_derived_key_is_deterministic() -> None:
    """The same secret and salt always derive the same key; a different salt does not."""
    assert derive_fernet_key("s", "salt-a") == derive_fernet_key("s", "salt-a")
    assert derive_fernet_key("s", "salt-a") != derive_fernet_key("s", "salt-b")


def test_missing_secret_or_salt_is_rejected() -> None:
    """Both secret and salt are required."""
    with pytest.raises(ValueError):
        FieldEncryptor("", "salt")
    with pytest.raises(ValueError):
        FieldEncryptor("secret", "")


def test_from_settings_reads_previous_secrets(settings) -> None:
    """from_settings picks up comma-separated previous secrets."""
    old = FieldEncryptor("old-secret", "unit-test-salt")
    token = old.encrypt("value")
    rotated_settings = settings.model_copy(
        update={"credential_encryption_previous_secrets": "old-secret, older-secret"}
    )
    assert FieldEncryptor.from_settings(rotated_settings).decrypt(token) == "value"
