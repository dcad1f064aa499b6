"""Master-data interfaces (ports) for the application layer.

Protocols define contracts that infrastructure implementations fulfill
(DIP). All types reference application DTOs or schemas only.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

from store_tenancy.domain.enums import ConnectionStatus, StoreStatus

if TYPE_CHECKING:
    from store_tenancy.application.dtos.store import StoreResult, TenantCredential
    from store_tenancy.schemas.connection import PostgresParams, SupabaseParams


class ICredentialStore(Protocol):
    """Encrypted per-store connection parameters with duplicate-host detection."""

    async def save_credentials(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        *,
        allow_pending_host: bool = False,
    ) -> TenantCredential:
        """Encrypt and upsert. Raises ValidationException or DatabaseAlreadyInUseException."""

    async def find_by_store(self, store_id: str) -> TenantCredential | None:
        """Fetch and decrypt; None when the store has no credentials."""

    async def check_host_in_use(self, host: str | None, excluding_store_id: str) -> bool:
        """Return True when another store's active row uses host."""

    async def delete_credentials(self, store_id: str) -> bool:
        """Delete the row; idempotent. Returns whether a row was removed."""

    async def mark_connection_tested(self, store_id: str, status: ConnectionStatus) -> None:
        """Record the outcome and time of a connection test."""


class IStoreRegistry(Protocol):
    """Store lifecycle state in the master database."""

    async def get_store(self, store_id: str) -> StoreResult | None:
        """Return the store or None."""

    async def transition(
        self, store_id: str, expected: tuple[StoreStatus, ...], new: StoreStatus
    ) -> bool:
        """Compare-and-set status (and is_active). Returns False if status was not expected."""

    async def recover_stale_provisioning(self, store_id: str, older_than: datetime) -> bool:
        """Revert a provisioning store last updated before older_than; True if reverted."""

    async def demote_and_clear_credentials(self, store_id: str) -> bool:
        """In one transaction: status -> pending_database (unless suspended), delete credentials.

        Returns True if a credential row was deleted.
        """

    async def get_theme_settings(self, preset_name: str | None) -> dict[str, Any]:
        """Return the named preset, else the system default, else {}."""


class IStoreDirectory(IStoreRegistry, Protocol):
    """Registry plus the owner-facing store record operations."""

    async def get_live_by_slug(self, slug: str) -> StoreResult | None:
        """Return the non-deleted store holding slug, or None."""

    async def list_by_owner(self, owner_id: str) -> list[StoreResult]:
        """Return the owner's stores, oldest first."""

    async def create_store(
        self, owner_id: str, name: str, slug: str, theme_preset: str | None = None
    ) -> StoreResult:
        """Insert a pending_database store. Raises SlugAlreadyTakenException."""

    async def rename(self, store_id: str, name: str) -> bool:
        """Rename the master record; False if the store does not exist."""

    async def delete_store(self, store_id: str) -> bool:
        """Delete the store and its credential row; False if absent."""
