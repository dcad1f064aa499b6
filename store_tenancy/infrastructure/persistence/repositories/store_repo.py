"""Store repository. Status writes are compare-and-set so concurrent runs cannot clobber."""

import logging
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from store_tenancy.application.dtos.store import StoreResult
from store_tenancy.domain.enums import StoreStatus
from store_tenancy.infrastructure.persistence.models.store import Store
from store_tenancy.infrastructure.persistence.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class StoreRepository(BaseRepository[Store]):
    """Store master records."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, Store)

    @staticmethod
    def to_result(store: Store) -> StoreResult:
        """Map ORM Store to StoreResult."""
        return StoreResult(
            id=store.id,
            user_id=store.user_id,
            name=store.name,
            slug=store.slug,
            status=StoreStatus(store.status),
            is_active=store.is_active,
            published=store.published,
            theme_preset=store.theme_preset,
            created_at=store.created_at,
            updated_at=store.updated_at,
        )

    async def get_live_by_slug(self, slug: str) -> Store | None:
        """Return the non-suspended store holding slug, or None."""
        result = await self.db.execute(
            select(Store).where(
                Store.slug == slug, Store.status != StoreStatus.SUSPENDED.value
            )
        )
        return result.scalar_one_or_none()

    async def list_by_owner(self, user_id: str) -> list[Store]:
        result = await self.db.execute(
            select(Store).where(Store.user_id == user_id).order_by(Store.created_at)
        )
        return list(result.scalars().all())

    async def compare_and_set_status(
        self,
        store_id: str,
        expected: tuple[StoreStatus, ...],
        new: StoreStatus,
    ) -> bool:
        """Set status (and the matching is_active flag) only if the current status is expected.

        Returns:
            True if the row was updated.
        """
        result = await self.db.execute(
            update(Store)
            .where(
                Store.id == store_id,
                Store.status.in_([s.value for s in expected]),
            )
            .values(
                status=new.value,
                is_active=new == StoreStatus.ACTIVE,
                updated_at=func.now(),
            )
            .returning(Store.id)
        )
        changed = result.scalar_one_or_none() is not None
        if changed:
            logger.info("Store %s status -> %s", store_id, new.value)
        return changed

    async def revert_stale_provisioning(self, store_id: str, older_than: datetime) -> bool:
        """Move a store stuck in 'provisioning' since before older_than back to pending_database."""
        result = await self.db.execute(
            update(Store)
            .where(
                Store.id == store_id,
                Store.status == StoreStatus.PROVISIONING.value,
                Store.updated_at < older_than,
            )
            .values(
                status=StoreStatus.PENDING_DATABASE.value,
                is_active=False,
                updated_at=func.now(),
            )
            .returning(Store.id)
        )
        reverted = result.scalar_one_or_none() is not None
        if reverted:
            logger.warning("Recovered store %s stuck in provisioning", store_id)
        return reverted

    async def rename(self, store_id: str, name: str) -> bool:
        result = await self.db.execute(
            update(Store)
            .where(Store.id == store_id)
            .values(name=name, updated_at=func.now())
            .returning(Store.id)
        )
        return result.scalar_one_or_none() is not None

    async def delete_by_id(self, store_id: str) -> bool:
        """Hard delete. store_databases rows cascade at the database level."""
        result = await self.db.execute(
            delete(Store).where(Store.id == store_id).returning(Store.id)
        )
        return result.scalar_one_or_none() is not None
