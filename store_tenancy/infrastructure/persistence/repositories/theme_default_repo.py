"""ThemeDefault repository (read-only presets)."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from store_tenancy.infrastructure.persistence.models.theme_default import ThemeDefault
from store_tenancy.infrastructure.persistence.repositories.base import BaseRepository


class ThemeDefaultRepository(BaseRepository[ThemeDefault]):
    def __init__(self, db: AsyncSession) -> None:
        super().__init__(db, ThemeDefault)

    async def get_active_preset(self, preset_name: str) -> ThemeDefault | None:
        result = await self.db.execute(
            select(ThemeDefault).where(
                ThemeDefault.preset_name == preset_name,
                ThemeDefault.is_active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def get_system_default(self) -> ThemeDefault | None:
        result = await self.db.execute(
            select(ThemeDefault)
            .where(
                ThemeDefault.is_system_default.is_(True),
                ThemeDefault.is_active.is_(True),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
