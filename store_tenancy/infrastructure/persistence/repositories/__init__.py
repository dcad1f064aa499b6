"""Master database repositories."""

from store_tenancy.infrastructure.persistence.repositories.base import BaseRepository
from store_tenancy.infrastructure.persistence.repositories.store_database_repo import (
    StoreDatabaseRepository,
)
from store_tenancy.infrastructure.persistence.repositories.store_repo import StoreRepository
from store_tenancy.infrastructure.persistence.repositories.theme_default_repo import (
    ThemeDefaultRepository,
)

__all__ = [
    "BaseRepository",
    "StoreDatabaseRepository",
    "StoreRepository",
    "ThemeDefaultRepository",
]
