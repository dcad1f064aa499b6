"""ThemeDefault ORM model: named theme presets copied into new tenant stores."""

from typing import Any

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from store_tenancy.infrastructure.persistence.database import Base
from store_tenancy.infrastructure.persistence.models.mixins import CuidMixin, TimestampMixin


class ThemeDefault(CuidMixin, TimestampMixin, Base):
    """Theme preset. Table: theme_defaults. At most one row should be the system default."""

    __tablename__ = "theme_defaults"

    preset_name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    theme_settings: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=dict
    )
    is_system_default: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
