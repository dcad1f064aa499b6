"""Unit tests for StoreLifecycleService (mocked registry and router) and slug generation."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from store_tenancy.application.dtos.store import StoreResult
from store_tenancy.application.services.store_lifecycle_service import StoreLifecycleService
from store_tenancy.domain.enums import StoreStatus
from store_tenancy.domain.exceptions import (
    NotProvisionedException,
    SlugAlreadyTakenException,
    StoreNotFoundException,
    ValidationException,
)
from store_tenancy.shared.utils.generators import generate_cuid, generate_store_slug


def _store(
    status: StoreStatus = StoreStatus.PENDING_DATABASE, owner_id: str = "user-1"
) -> StoreResult:
    return StoreResult(
        id="store-1",
        user_id=owner_id,
        name="Acme Outdoor",
        slug="acme-outdoor",
        status=status,
        is_active=status == StoreStatus.ACTIVE,
    )


def _service(registry: AsyncMock, router: MagicMock | None = None) -> StoreLifecycleService:
    return StoreLifecycleService(registry, router or MagicMock())


def test_generate_store_slug() -> None:
    """Names become lowercase dash-separated slugs."""
    assert generate_store_slug("Acme Outdoor Gear!") == "acme-outdoor-gear"
    assert generate_store_slug("  --Café  Bar--  ") == "caf-bar"


def test_generate_store_slug_fallback() -> None:
    """Names without usable characters fall back to store-<timestamp>."""
    assert generate_store_slug("!!!").startswith("store-")


def test_generate_cuid_is_unique() -> None:
    """CUIDs are strings and do not repeat."""
    ids = {generate_cuid() for _ in range(100)}
    assert len(ids) == 100


@pytest.mark.asyncio
async def test_create_pending_store_creates_with_slug() -> None:
    """A free slug creates a new pending store."""
    registry = AsyncMock()
    registry.get_live_by_slug = AsyncMock(return_value=None)
    registry.create_store = AsyncMock(return_value=_store())

    store = await _service(registry).create_pending_store("user-1", "Acme Outdoor")

    assert store.status == StoreStatus.PENDING_DATABASE
    registry.create_store.assert_awaited_once_with("user-1", "Acme Outdoor", "acme-outdoor", None)


@pytest.mark.asyncio
async def test_create_pending_store_reuses_owners_pending_store() -> None:
    """Retrying creation returns the owner's existing pending store."""
    registry = AsyncMock()
    registry.get_live_by_slug = AsyncMock(return_value=_store())

    store = await _service(registry).create_pending_store("user-1", "Acme Outdoor")

    assert store.id == "store-1"
    registry.create_store.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_pending_store_rejects_taken_slug() -> None:
    """A slug held by another owner (or an active store) is taken."""
    registry = AsyncMock()
    registry.get_live_by_slug = AsyncMock(return_value=_store(owner_id="user-2"))

    with pytest.raises(SlugAlreadyTakenException) as exc_info:
        await _service(registry).create_pending_store("user-1", "Acme Outdoor")

    assert exc_info.value.details == {"slug": "acme-outdoor"}


@pytest.mark.asyncio
async def test_create_pending_store_requires_name() -> None:
    """Blank names are rejected before touching the registry."""
    registry = AsyncMock()
    with pytest.raises(ValidationException):
        await _service(registry).create_pending_store("user-1", "   ")
    registry.get_live_by_slug.assert_not_awaited()


@pytest.mark.asyncio
async def test_suspend_store_invalidates_router() -> None:
    """Suspending an active store drops its cached connection."""
    registry = AsyncMock()
    registry.transition = AsyncMock(return_value=True)
    registry.get_store = AsyncMock(return_value=_store(StoreStatus.SUSPENDED))
    router = MagicMock()

    store = await _service(registry, router).suspend_store("store-1")

    assert store.status == StoreStatus.SUSPENDED
    registry.transition.assert_awaited_once_with(
        "store-1", (StoreStatus.ACTIVE,), StoreStatus.SUSPENDED
    )
    router.invalidate.assert_called_once_with("store-1")


@pytest.mark.asyncio
async def test_suspend_non_active_store_is_rejected() -> None:
    """Only active stores can be suspended."""
    registry = AsyncMock()
    registry.transition = AsyncMock(return_value=False)
    registry.get_store = AsyncMock(return_value=_store())
    router = MagicMock()

    with pytest.raises(ValidationException):
        await _service(registry, router).suspend_store("store-1")
    router.invalidate.assert_not_called()


@pytest.mark.asyncio
async def test_suspend_unknown_store() -> None:
    """Unknown stores raise StoreNotFoundException."""
    registry = AsyncMock()
    registry.transition = AsyncMock(return_value=False)
    registry.get_store = AsyncMock(return_value=None)

    with pytest.raises(StoreNotFoundException):
        await _service(registry).suspend_store("store-1")


@pytest.mark.asyncio
async def test_delete_store_invalidates_router() -> None:
    """Deleting a store evicts its cached client."""
    registry = AsyncMock()
    registry.delete_store = AsyncMock(return_value=True)
    router = MagicMock()

    await _service(registry, router).delete_store("store-1")

    router.invalidate.assert_called_once_with("store-1")


@pytest.mark.asyncio
async def test_delete_unknown_store() -> None:
    """Deleting a missing store raises StoreNotFoundException."""
    registry = AsyncMock()
    registry.delete_store = AsyncMock(return_value=False)
    with pytest.raises(StoreNotFoundException):
        await _service(registry).delete_store("store-1")


@pytest.mark.asyncio
async def test_rename_store_updates_tenant_row() -> None:
    """With a database the tenant stores row is renamed too."""
    registry = AsyncMock()
    registry.rename = AsyncMock(return_value=True)
    registry.get_store = AsyncMock(return_value=_store(StoreStatus.ACTIVE))
    client = AsyncMock()
    router = MagicMock()
    router.get_connection = AsyncMock(return_value=client)

    await _service(registry, router).rename_store("store-1", " Acme Gear ")

    registry.rename.assert_awaited_once_with("store-1", "Acme Gear")
    client.update.assert_awaited_once_with(
        "stores", {"name": "Acme Gear"}, filters={"id": "store-1"}
    )


@pytest.mark.asyncio
async def test_rename_store_without_database_only_renames_master() -> None:
    """A pending store has no tenant row to update."""
    registry = AsyncMock()
    registry.rename = AsyncMock(return_value=True)
    registry.get_store = AsyncMock(return_value=_store())
    router = MagicMock()
    router.get_connection = AsyncMock(side_effect=NotProvisionedException("store-1"))

    store = await _service(registry, router).rename_store("store-1", "Acme Gear")

    assert store.id == "store-1"
    registry.rename.assert_awaited_once()


@pytest.mark.asyncio
async def test_is_slug_available_normalizes_slug() -> None:
    """Availability is checked against the normalized slug."""
    registry = AsyncMock()
    registry.get_live_by_slug = AsyncMock(return_value=None)

    assert await _service(registry).is_slug_available("Acme Outdoor") is True
    registry.get_live_by_slug.assert_awaited_once_with("acme-outdoor")


@pytest.mark.asyncio
async def test_list_stores_returns_owner_stores() -> None:
    """Listing delegates to the registry by owner."""
    registry = AsyncMock()
    registry.list_by_owner = AsyncMock(return_value=[_store()])

    stores = await _service(registry).list_stores("user-1")

    assert [s.id for s in stores] == ["store-1"]
    registry.list_by_owner.assert_awaited_once_with("user-1")
