"""Unit tests for Settings validation."""

import pytest
from pydantic import ValidationError

from store_tenancy.core.config import Settings

_REQUIRED = {
    "database_url": "postgresql+asyncpg://u:p@localhost:5432/master",
    "credential_encryption_secret": "secret",
    "encryption_salt": "salt",
}


def test_settings_defaults() -> None:
    """Only the required fields need values; the rest have defaults."""
    settings = Settings(_env_file=None, **_REQUIRED)
    assert settings.connection_cache_max_entries == 512
    assert settings.provisioning_stale_after_seconds == 900
    assert settings.previous_encryption_secrets == []


@pytest.mark.parametrize("missing", sorted(_REQUIRED))
def test_required_settings(missing: str, monkeypatch: pytest.MonkeyPatch) -> None:
    """DATABASE_URL, CREDENTIAL_ENCRYPTION_SECRET and ENCRYPTION_SALT are required."""
    monkeypatch.delenv(missing.upper(), raising=False)
    values = {k: v for k, v in _REQUIRED.items() if k != missing}
    with pytest.raises(ValidationError, match=missing.upper()):
        Settings(_env_file=None, **values)


def test_non_positive_timeouts_are_rejected() -> None:
    """Timeouts must be positive."""
    with pytest.raises(ValidationError):
        Settings(_env_file=None, tenant_probe_timeout_seconds=0, **_REQUIRED)


def test_previous_secrets_are_split_and_trimmed() -> None:
    """Previous secrets are a comma-separated list."""
    settings = Settings(
        _env_file=None,
        credential_encryption_previous_secrets=" old-1 ,, old-2 ",
        **_REQUIRED,
    )
    assert settings.previous_encryption_secrets == ["old-1", "old-2"]
