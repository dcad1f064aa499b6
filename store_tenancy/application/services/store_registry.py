"""Store registry: lifecycle state of stores in the master database.

Every status change is a compare-and-set, so two provisioning runs or a run
and a health check cannot overwrite each other's transition.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from store_tenancy.application.dtos.store import StoreResult
from store_tenancy.domain.enums import StoreStatus
from store_tenancy.domain.exceptions import SlugAlreadyTakenException
from store_tenancy.infrastructure.persistence.models.store import Store
from store_tenancy.infrastructure.persistence.repositories.store_database_repo import (
    StoreDatabaseRepository,
)
from store_tenancy.infrastructure.persistence.repositories.store_repo import StoreRepository
from store_tenancy.infrastructure.persistence.repositories.theme_default_repo import (
    ThemeDefaultRepository,
)

logger = logging.getLogger(__name__)

_DEMOTABLE = (StoreStatus.ACTIVE, StoreStatus.PROVISIONING, StoreStatus.PENDING_DATABASE)


class StoreRegistry:
    """Master-database access to store records and theme presets.

    Each method runs in its own short transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_store(self, store_id: str) -> StoreResult | None:
        async with self._session_factory() as session:
            store = await StoreRepository(session).get_by_id(store_id)
            return StoreRepository.to_result(store) if store else None

    async def get_live_by_slug(self, slug: str) -> StoreResult | None:
        async with self._session_factory() as session:
            store = await StoreRepository(session).get_live_by_slug(slug)
            return StoreRepository.to_result(store) if store else None

    async def list_by_owner(self, owner_id: str) -> list[StoreResult]:
        async with self._session_factory() as session:
            stores = await StoreRepository(session).list_by_owner(owner_id)
            return [StoreRepository.to_result(s) for s in stores]

    async def create_store(
        self,
        owner_id: str,
        name: str,
        slug: str,
        theme_preset: str | None = None,
    ) -> StoreResult:
        """Insert a store in pending_database.

        Raises:
            SlugAlreadyTakenException: Another live store holds slug.
        """
        try:
            async with self._session_factory() as session, session.begin():
                store = await StoreRepository(session).create(
                    Store(
                        user_id=owner_id,
                        name=name,
                        slug=slug,
                        status=StoreStatus.PENDING_DATABASE.value,
                        is_active=False,
                        theme_preset=theme_preset,
                    )
                )
                result = StoreRepository.to_result(store)
        except IntegrityError as e:
            raise SlugAlreadyTakenException(slug) from e
        logger.info("Created store %s (slug=%s, owner=%s)", result.id, slug, owner_id)
        return result

    async def transition(
        self, store_id: str, expected: tuple[StoreStatus, ...], new: StoreStatus
    ) -> bool:
        async with self._session_factory() as session, session.begin():
            return await StoreRepository(session).compare_and_set_status(
                store_id, expected, new
            )

    async def recover_stale_provisioning(self, store_id: str, older_than: datetime) -> bool:
        async with self._session_factory() as session, session.begin():
            return await StoreRepository(session).revert_stale_provisioning(
                store_id, older_than
            )

    async def demote_and_clear_credentials(self, store_id: str) -> bool:
        """Send the store back to pending_database and drop its credential row atomically.

        Suspended stores keep their status; their credentials are still removed.
        """
        async with self._session_factory() as session, session.begin():
            demoted = await StoreRepository(session).compare_and_set_status(
                store_id, _DEMOTABLE, StoreStatus.PENDING_DATABASE
            )
            deleted = await StoreDatabaseRepository(session).delete_by_store_id(store_id)
        logger.warning(
            "Demoted store %s (status_changed=%s, credentials_deleted=%s)",
            store_id,
            demoted,
            deleted,
        )
        return deleted

    async def rename(self, store_id: str, name: str) -> bool:
        async with self._session_factory() as session, session.begin():
            return await StoreRepository(session).rename(store_id, name)

    async def delete_store(self, store_id: str) -> bool:
        """Hard delete the store; its credential row is removed first in the same transaction."""
        async with self._session_factory() as session, session.begin():
            await StoreDatabaseRepository(session).delete_by_store_id(store_id)
            return await StoreRepository(session).delete_by_id(store_id)

    async def get_theme_settings(self, preset_name: str | None) -> dict[str, Any]:
        async with self._session_factory() as session:
            repo = ThemeDefaultRepository(session)
            preset = await repo.get_active_preset(preset_name) if preset_name else None
            if preset is None:
                if preset_name:
                    logger.warning("Theme preset %s not found; using system default", preset_name)
                preset = await repo.get_system_default()
            return dict(preset.theme_settings) if preset else {}
