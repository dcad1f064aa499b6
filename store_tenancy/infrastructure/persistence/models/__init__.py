"""Master database models: ORM entities and mixins."""

from store_tenancy.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
)
from store_tenancy.infrastructure.persistence.models.store import Store
from store_tenancy.infrastructure.persistence.models.store_database import StoreDatabase
from store_tenancy.infrastructure.persistence.models.theme_default import ThemeDefault

__all__ = [
    "CuidMixin",
    "Store",
    "StoreDatabase",
    "ThemeDefault",
    "TimestampMixin",
]
