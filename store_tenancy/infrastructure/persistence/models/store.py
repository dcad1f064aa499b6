"""Store ORM model. Tenant identity record in the master database."""

from sqlalchemy import Boolean, CheckConstraint, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from store_tenancy.domain.enums import StoreStatus
from store_tenancy.infrastructure.persistence.database import Base
from store_tenancy.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
    enum_check,
)


class Store(CuidMixin, TimestampMixin, Base):
    """Store (tenant) identity. Table: stores.

    Slug is unique among non-suspended stores. Only status 'active' may
    carry is_active = true.
    """

    __tablename__ = "stores"

    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    slug: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String,
        nullable=False,
        default=StoreStatus.PENDING_DATABASE.value,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    theme_preset: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        CheckConstraint(
            enum_check("status", StoreStatus.values()), name="stores_status_check"
        ),
        CheckConstraint(
            "is_active = false OR status = 'active'",
            name="stores_active_requires_active_status",
        ),
        Index(
            "uq_stores_slug_live",
            "slug",
            unique=True,
            postgresql_where=text("status <> 'suspended'"),
        ),
    )
