"""Service interfaces (ports) for tenant database access and external APIs.

Protocols define contracts that infrastructure implementations fulfill
(DIP). Application services depend on these, never on httpx or asyncpg.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy.sql.elements import TextClause

from store_tenancy.domain.enums import DatabaseKind

if TYPE_CHECKING:
    from store_tenancy.application.dtos.provisioning import DelegatedToken
    from store_tenancy.application.dtos.store import TenantCredential
    from store_tenancy.schemas.connection import PostgresParams, SupabaseParams


class ITenantClient(Protocol):
    """Live client for one tenant database."""

    kind: DatabaseKind

    async def ping(self) -> None:
        """Cheap round trip proving the database is reachable and accepts the credentials."""

    async def probe(self, table: str) -> list[dict[str, Any]]:
        """Minimal existence query against table (select id limit 1)."""

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows with equality filters."""

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert rows and return them as stored."""

    async def update(
        self, table: str, values: dict[str, Any], *, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update rows matching equality filters."""

    async def existing_tables(self, candidates: list[str]) -> list[str]:
        """Return the subset of candidate tables that exist."""

    async def aclose(self) -> None:
        """Release sockets and pools."""


class ITenantClientFactory(Protocol):
    """Builds tenant clients from decrypted connection parameters."""

    def build(self, params: SupabaseParams | PostgresParams) -> ITenantClient:
        """Construct a client without I/O. Raises ValueError for unusable params."""

    async def connect(self, credential: TenantCredential) -> ITenantClient:
        """Construct and verify a client. Raises ConnectionFailedException."""


class ISchemaExecutor(Protocol):
    """Runs DDL and seed statements against one tenant database."""

    async def execute_script(self, sql: str) -> None:
        """Run a multi-statement SQL script."""

    async def execute(self, statement: TextClause) -> None:
        """Run one parameterized statement."""

    async def aclose(self) -> None:
        """Release resources held by the executor."""


class ISchemaExecutorFactory(Protocol):
    """Chooses the migration channel for a provisioning run."""

    def for_target(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        delegated: DelegatedToken | None,
    ) -> ISchemaExecutor:
        """Return an executor, or raise ValidationException when no channel is available."""


class IManagementApi(Protocol):
    """Delegated project-management API (Supabase Management API)."""

    async def fetch_api_keys(self, project_ref: str, access_token: str) -> dict[str, str]:
        """Return {key_name: api_key} (e.g. service_role, anon) for the project."""


class ITokenRefresher(Protocol):
    """Exchanges a refresh token for a new delegated access token."""

    async def refresh(self, token: DelegatedToken) -> DelegatedToken:
        """Return a fresh token. Raises on rejection."""


class IConnectionInvalidator(Protocol):
    """The part of the Connection Router that services need for cache invalidation."""

    def invalidate(self, store_id: str) -> None:
        """Evict the cached client for store_id; never raises."""

    def invalidate_all(self) -> None:
        """Evict every cached client."""


class IConnectionRouter(IConnectionInvalidator, Protocol):
    """Connection Router as seen by services that also read tenant data."""

    async def get_connection(self, store_id: str) -> ITenantClient:
        """Return a ready client. Raises NotProvisioned or ConnectionFailed."""
