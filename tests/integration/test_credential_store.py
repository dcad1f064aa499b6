"""Credential Store and Store Registry integration tests.

Require Postgres (DATABASE_URL). Rows are committed for real; every test
deletes the stores it created.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import text

from store_tenancy.application.services.credential_store import CredentialStore
from store_tenancy.application.services.store_registry import StoreRegistry
from store_tenancy.domain.enums import ConnectionStatus, StoreStatus
from store_tenancy.domain.exceptions import (
    CredentialDecryptionException,
    DatabaseAlreadyInUseException,
    SlugAlreadyTakenException,
    ValidationException,
)
from store_tenancy.infrastructure.security.credential_encryption import FieldEncryptor
from store_tenancy.schemas.connection import PostgresParams, SupabaseParams
from store_tenancy.shared.utils.datetime import utc_now
from store_tenancy.shared.utils.generators import generate_cuid


@pytest.fixture
def registry(session_factory) -> StoreRegistry:
    return StoreRegistry(session_factory)


@pytest.fixture
def store(session_factory, encryptor: FieldEncryptor) -> CredentialStore:
    return CredentialStore(session_factory, encryptor)


@pytest.fixture
async def make_store(registry: StoreRegistry):
    """Create pending stores with unique slugs; delete them after the test."""
    created: list[str] = []

    async def _make() -> str:
        slug = f"it-{generate_cuid()}"
        result = await registry.create_store("user-it", "Integration Store", slug)
        created.append(result.id)
        return result.id

    yield _make
    for store_id in created:
        await registry.delete_store(store_id)


def _host() -> str:
    return f"db-{generate_cuid()}.example.com"


def _params(host: str) -> PostgresParams:
    return PostgresParams(connection_string=f"postgresql://app:secret@{host}:5432/shop")


@pytest.mark.requires_db
async def test_save_and_find_round_trip(
    store: CredentialStore, make_store, session_factory
) -> None:
    """Saved credentials decrypt to the same params; secrets are not stored in plaintext."""
    store_id = await make_store()
    params = SupabaseParams(
        project_url="https://abcdwxyz.supabase.co",
        service_role_key="service-secret",
        anon_key="anon-secret",
    )

    saved = await store.save_credentials(store_id, params)
    found = await store.find_by_store(store_id)

    assert saved.host == "abcdwxyz.supabase.co"
    assert found is not None
    assert found.params == params
    assert found.is_active is True
    async with session_factory() as session:
        raw = (
            await session.execute(
                text("SELECT service_role_key_encrypted FROM store_databases WHERE store_id = :id"),
                {"id": store_id},
            )
        ).scalar_one()
    assert "service-secret" not in raw


@pytest.mark.requires_db
async def test_second_store_cannot_register_same_host(store: CredentialStore, make_store) -> None:
    """A host active for one store is rejected for another."""
    first, second = await make_store(), await make_store()
    host = _host()
    await store.save_credentials(first, _params(host))

    assert await store.check_host_in_use(host, second) is True
    assert await store.check_host_in_use(host, first) is False
    with pytest.raises(DatabaseAlreadyInUseException):
        await store.save_credentials(second, _params(host))


@pytest.mark.requires_db
async def test_concurrent_registration_of_one_host_admits_one_store(
    store: CredentialStore, make_store
) -> None:
    """Two stores racing for the same host: exactly one wins."""
    first, second = await make_store(), await make_store()
    host = _host()

    results = await asyncio.gather(
        store.save_credentials(first, _params(host)),
        store.save_credentials(second, _params(host)),
        return_exceptions=True,
    )

    errors = [r for r in results if isinstance(r, BaseException)]
    assert len(errors) == 1
    assert isinstance(errors[0], DatabaseAlreadyInUseException)


@pytest.mark.requires_db
async def test_placeholder_without_host(store: CredentialStore, make_store) -> None:
    """Host-less params need allow_pending_host and never count as in use."""
    store_id = await make_store()
    with pytest.raises(ValidationException):
        await store.save_credentials(store_id, SupabaseParams())

    saved = await store.save_credentials(store_id, SupabaseParams(), allow_pending_host=True)

    assert saved.host is None
    assert await store.check_host_in_use(None, "other") is False


@pytest.mark.requires_db
async def test_wrong_key_raises_decryption_error(
    store: CredentialStore, make_store, session_factory
) -> None:
    """Rows encrypted under another secret cannot be read."""
    store_id = await make_store()
    await store.save_credentials(store_id, _params(_host()))
    other = CredentialStore(session_factory, FieldEncryptor("another-secret", "unit-test-salt"))

    with pytest.raises(CredentialDecryptionException):
        await other.find_by_store(store_id)


@pytest.mark.requires_db
async def test_mark_connection_tested(store: CredentialStore, make_store) -> None:
    """The last test result and timestamp are recorded."""
    store_id = await make_store()
    await store.save_credentials(store_id, _params(_host()))

    await store.mark_connection_tested(store_id, ConnectionStatus.CONNECTED)
    found = await store.find_by_store(store_id)

    assert found is not None
    assert found.connection_status == ConnectionStatus.CONNECTED
    assert found.last_connection_test is not None


@pytest.mark.requires_db
async def test_status_transitions_are_compare_and_set(
    registry: StoreRegistry, make_store
) -> None:
    """A transition only applies from the expected status."""
    store_id = await make_store()
    pending, provisioning = (StoreStatus.PENDING_DATABASE,), (StoreStatus.PROVISIONING,)

    assert await registry.transition(store_id, pending, StoreStatus.PROVISIONING) is True
    assert await registry.transition(store_id, pending, StoreStatus.PROVISIONING) is False
    assert await registry.transition(store_id, provisioning, StoreStatus.ACTIVE) is True

    result = await registry.get_store(store_id)
    assert result is not None
    assert result.status == StoreStatus.ACTIVE
    assert result.is_active is True


@pytest.mark.requires_db
async def test_demote_clears_credentials_and_frees_host(
    registry: StoreRegistry, store: CredentialStore, make_store
) -> None:
    """Demotion resets the store to pending and deletes its credential row in one go."""
    first, second = await make_store(), await make_store()
    host = _host()
    await store.save_credentials(first, _params(host))
    await registry.transition(first, (StoreStatus.PENDING_DATABASE,), StoreStatus.PROVISIONING)
    await registry.transition(first, (StoreStatus.PROVISIONING,), StoreStatus.ACTIVE)

    assert await registry.demote_and_clear_credentials(first) is True

    result = await registry.get_store(first)
    assert result is not None
    assert result.status == StoreStatus.PENDING_DATABASE
    assert result.is_active is False
    assert await store.find_by_store(first) is None
    await store.save_credentials(second, _params(host))


@pytest.mark.requires_db
async def test_stale_provisioning_is_recovered(registry: StoreRegistry, make_store) -> None:
    """Only stores stuck in provisioning past the cutoff are reverted."""
    store_id = await make_store()
    await registry.transition(store_id, (StoreStatus.PENDING_DATABASE,), StoreStatus.PROVISIONING)

    earlier, later = utc_now() - timedelta(hours=1), utc_now() + timedelta(seconds=5)
    assert await registry.recover_stale_provisioning(store_id, earlier) is False
    assert await registry.recover_stale_provisioning(store_id, later) is True
    result = await registry.get_store(store_id)
    assert result is not None
    assert result.status == StoreStatus.PENDING_DATABASE


@pytest.mark.requires_db
async def test_live_slugs_are_unique(registry: StoreRegistry, make_store) -> None:
    """A second live store cannot take the same slug."""
    store_id = await make_store()
    existing = await registry.get_store(store_id)
    assert existing is not None

    with pytest.raises(SlugAlreadyTakenException):
        await registry.create_store("user-other", "Copy", existing.slug)


@pytest.mark.requires_db
async def test_delete_credentials_is_idempotent(store: CredentialStore, make_store) -> None:
    """The first delete removes the row; the second reports nothing removed."""
    store_id = await make_store()
    await store.save_credentials(store_id, _params(_host()))

    assert await store.delete_credentials(store_id) is True
    assert await store.delete_credentials(store_id) is False
    assert await store.find_by_store(store_id) is None


@pytest.mark.requires_db
async def test_reencrypt_all_moves_rows_to_new_primary_key(
    store: CredentialStore, make_store, session_factory
) -> None:
    """After rotation rows decrypt under the new secret alone."""
    store_id = await make_store()
    params = _params(_host())
    await store.save_credentials(store_id, params)
    rotating = CredentialStore(
        session_factory,
        FieldEncryptor(
            "rotated-secret", "unit-test-salt", previous_secrets=["unit-test-encryption-secret"]
        ),
    )

    assert await rotating.reencrypt_all() >= 1

    new_only = CredentialStore(session_factory, FieldEncryptor("rotated-secret", "unit-test-salt"))
    found = await new_only.find_by_store(store_id)
    assert found is not None
    assert found.params == params
