"""Store lifecycle outside provisioning: create, rename, suspend, delete."""

import logging

from store_tenancy.application.dtos.store import StoreResult
from store_tenancy.application.interfaces.repositories import IStoreDirectory
from store_tenancy.application.interfaces.services import IConnectionRouter
from store_tenancy.domain.enums import StoreStatus
from store_tenancy.domain.exceptions import (
    NotProvisionedException,
    SlugAlreadyTakenException,
    StoreNotFoundException,
    ValidationException,
)
from store_tenancy.shared.telemetry.tracing import traced
from store_tenancy.shared.utils.generators import generate_store_slug

logger = logging.getLogger(__name__)


class StoreLifecycleService:
    """Owner-facing store operations that keep the master record and router cache in step."""

    def __init__(self, registry: IStoreDirectory, router: IConnectionRouter) -> None:
        self.registry = registry
        self.router = router

    @traced("lifecycle.create_pending_store")
    async def create_pending_store(
        self,
        owner_id: str,
        name: str,
        slug: str | None = None,
        theme_preset: str | None = None,
    ) -> StoreResult:
        """Create a store waiting for its database, or reuse the owner's pending one.

        Raises:
            ValidationException: Empty name.
            SlugAlreadyTakenException: Another live store holds the slug.
        """
        name = (name or "").strip()
        if not name:
            raise ValidationException("Store name is required", field="name")
        slug = generate_store_slug(slug or name)
        existing = await self.registry.get_live_by_slug(slug)
        if existing is not None:
            if existing.user_id == owner_id and existing.status == StoreStatus.PENDING_DATABASE:
                logger.info("Reusing pending store %s for slug %s", existing.id, slug)
                return existing
            raise SlugAlreadyTakenException(slug)
        return await self.registry.create_store(owner_id, name, slug, theme_preset)

    async def is_slug_available(self, slug: str) -> bool:
        return await self.registry.get_live_by_slug(generate_store_slug(slug)) is None

    async def list_stores(self, owner_id: str) -> list[StoreResult]:
        return await self.registry.list_by_owner(owner_id)

    @traced("lifecycle.suspend_store")
    async def suspend_store(self, store_id: str) -> StoreResult:
        """Suspend an active store. Its slug becomes free and requests stop routing.

        Raises:
            StoreNotFoundException: Unknown store.
            ValidationException: Store is not active.
        """
        if not await self.registry.transition(
            store_id, (StoreStatus.ACTIVE,), StoreStatus.SUSPENDED
        ):
            store = await self.registry.get_store(store_id)
            if store is None:
                raise StoreNotFoundException(store_id)
            raise ValidationException(
                f"Only active stores can be suspended (status: {store.status.value})",
                field="status",
            )
        self.router.invalidate(store_id)
        store = await self.registry.get_store(store_id)
        if store is None:
            raise StoreNotFoundException(store_id)
        return store

    @traced("lifecycle.delete_store")
    async def delete_store(self, store_id: str) -> None:
        """Hard delete the store and its credentials. The tenant database itself is untouched."""
        if not await self.registry.delete_store(store_id):
            raise StoreNotFoundException(store_id)
        self.router.invalidate(store_id)
        logger.info("Deleted store %s", store_id)

    @traced("lifecycle.rename_store")
    async def rename_store(self, store_id: str, name: str) -> StoreResult:
        """Rename in the master record and, when the store has a database, in the tenant stores row.

        Raises:
            StoreNotFoundException: Unknown store.
            ValidationException: Empty name.
            ConnectionFailedException: Tenant database unreachable (master already renamed).
        """
        name = (name or "").strip()
        if not name:
            raise ValidationException("Store name is required", field="name")
        if not await self.registry.rename(store_id, name):
            raise StoreNotFoundException(store_id)
        try:
            client = await self.router.get_connection(store_id)
        except NotProvisionedException:
            logger.debug("Store %s has no database yet; renamed master record only", store_id)
        else:
            await client.update("stores", {"name": name}, filters={"id": store_id})
        store = await self.registry.get_store(store_id)
        if store is None:
            raise StoreNotFoundException(store_id)
        return store
