"""DTOs for store records and tenant credentials (no dependency on ORM)."""

from dataclasses import dataclass
from datetime import datetime

from store_tenancy.domain.enums import ConnectionStatus, DatabaseKind, StoreStatus
from store_tenancy.schemas.connection import PostgresParams, SupabaseParams


@dataclass(frozen=True)
class StoreResult:
    """Store read-model (master database identity and lifecycle state)."""

    id: str
    user_id: str
    name: str
    slug: str
    status: StoreStatus
    is_active: bool
    published: bool = False
    theme_preset: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class TenantCredential:
    """Decrypted tenant credential. Only produced by the Credential Store."""

    store_id: str
    params: SupabaseParams | PostgresParams
    host: str | None
    is_active: bool
    connection_status: ConnectionStatus = ConnectionStatus.PENDING
    last_connection_test: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def kind(self) -> DatabaseKind:
        return self.params.database_kind
