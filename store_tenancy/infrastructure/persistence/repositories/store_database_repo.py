"""StoreDatabase repository: credential rows and the duplicate-host lock."""

import logging
from datetime import datetime

from sqlalchemy import delete, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import func

from store_tenancy.domain.enums import ConnectionStatus
from store_tenancy.infrastructure.persistence.models.store_database import StoreDatabase
from store_tenancy.infrastructure.persistence.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class StoreDatabaseRepository(BaseRepository[StoreDatabase]):
    """Encrypted credential rows. Never decrypts; see CredentialStore."""

    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, StoreDatabase)

    async def get_by_store_id(
        self, store_id: str, *, for_update: bool = False
    ) -> StoreDatabase | None:
        stmt = select(StoreDatabase).where(StoreDatabase.store_id == store_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active_by_host(
        self, host: str, excluding_store_id: str
    ) -> StoreDatabase | None:
        """Return another store's active row for host, or None."""
        result = await self.db.execute(
            select(StoreDatabase)
            .where(
                StoreDatabase.host == host,
                StoreDatabase.is_active.is_(True),
                StoreDatabase.store_id != excluding_store_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def lock_host(self, host: str) -> None:
        """Serialize writers for one host until the transaction ends (PostgreSQL only).

        Other dialects rely on the partial unique index alone.
        """
        if self.db.get_bind().dialect.name != "postgresql":
            return
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:host))"), {"host": host}
        )

    async def delete_by_store_id(self, store_id: str) -> bool:
        result = await self.db.execute(
            delete(StoreDatabase)
            .where(StoreDatabase.store_id == store_id)
            .returning(StoreDatabase.id)
        )
        deleted = result.scalar_one_or_none() is not None
        if deleted:
            logger.info("Deleted credentials for store %s", store_id)
        return deleted

    async def set_connection_status(
        self, store_id: str, status: ConnectionStatus, tested_at: datetime
    ) -> None:
        await self.db.execute(
            update(StoreDatabase)
            .where(StoreDatabase.store_id == store_id)
            .values(
                connection_status=status.value,
                last_connection_test=tested_at,
                updated_at=func.now(),
            )
        )

    async def list_all(self) -> list[StoreDatabase]:
        result = await self.db.execute(select(StoreDatabase).order_by(StoreDatabase.id))
        return list(result.scalars().all())
