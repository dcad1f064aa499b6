"""Column mixins shared by the master models."""

from datetime import datetime

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from store_tenancy.shared.utils.generators import generate_cuid


class CuidMixin:
    id: Mapped[str] = mapped_column(String, primary_key=True, default=generate_cuid)


class TimestampMixin:
    """Server-side created_at/updated_at.

    Status transitions set updated_at explicitly (stale provisioning is
    detected from it), so bulk UPDATEs do not rely on onupdate.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )


def enum_check(column: str, values: list[str]) -> str:
    """CHECK expression limiting column to the given literals."""
    quoted = ", ".join("'{}'".format(v.replace("'", "''")) for v in values)
    return f"{column} IN ({quoted})"
