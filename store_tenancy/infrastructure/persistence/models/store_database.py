"""StoreDatabase ORM model: encrypted tenant database credentials, one row per store."""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from store_tenancy.domain.enums import ConnectionStatus, DatabaseKind
from store_tenancy.infrastructure.persistence.database import Base
from store_tenancy.infrastructure.persistence.models.mixins import (
    CuidMixin,
    TimestampMixin,
    enum_check,
)


class StoreDatabase(CuidMixin, TimestampMixin, Base):
    """Tenant credential row. Table: store_databases.

    Secret fields are stored as individual Fernet tokens; host, kind and
    flags stay plaintext for indexing. The partial unique index on host is a
    backstop for the advisory-locked duplicate-host check.
    """

    __tablename__ = "store_databases"

    store_id: Mapped[str] = mapped_column(
        String,
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    database_kind: Mapped[str] = mapped_column(String, nullable=False)
    project_url_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    service_role_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    anon_key_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    connection_string_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    # NULL for a pending placeholder (OAuth started, no project yet).
    host: Mapped[str | None] = mapped_column(String, nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    connection_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ConnectionStatus.PENDING.value
    )
    last_connection_test: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint(
            enum_check("database_kind", DatabaseKind.values()),
            name="store_databases_kind_check",
        ),
        CheckConstraint(
            enum_check("connection_status", ConnectionStatus.values()),
            name="store_databases_connection_status_check",
        ),
        Index(
            "uq_store_databases_active_host",
            "host",
            unique=True,
            postgresql_where=text("is_active AND host IS NOT NULL"),
        ),
    )
