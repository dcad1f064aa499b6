"""Supabase tenant client over the PostgREST data API (httpx).

Authenticates with the project's service role key. Exposes only the
minimal probe/select/insert/update surface the tenancy services need;
request handlers may use the same methods for tenant-scoped reads.
"""

import logging
from typing import Any

import httpx

from store_tenancy.domain.enums import DatabaseKind
from store_tenancy.infrastructure.tenant.errors import (
    TenantDatabaseError,
    TenantTransportError,
    is_table_missing,
)

logger = logging.getLogger(__name__)


def _error_from_response(response: httpx.Response) -> TenantDatabaseError:
    """Build a TenantDatabaseError from a PostgREST error body."""
    code: str | None = None
    message = response.text[:300] or response.reason_phrase
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code") or None
        message = body.get("message") or body.get("error") or message
    return TenantDatabaseError(str(message), code=code, status_code=response.status_code)


class SupabaseRestClient:
    """Tenant client for a Supabase project (PostgREST at <project_url>/rest/v1)."""

    kind = DatabaseKind.SUPABASE

    def __init__(
        self,
        project_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the client. Performs no I/O.

        Args:
            project_url: Project base URL (https://<ref>.supabase.co).
            api_key: Service role key (or anon key for read-only probes).
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        self.project_url = project_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.project_url}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            raise TenantTransportError(f"timeout calling {self.project_url}") from e
        except httpx.TransportError as e:
            raise TenantTransportError(
                f"cannot reach {self.project_url}: {e.__class__.__name__}"
            ) from e
        if response.status_code >= 400:
            raise _error_from_response(response)
        if not response.content:
            return []
        return response.json()

    async def ping(self) -> None:
        """Verify the project answers and accepts the key (PostgREST root)."""
        await self._request("GET", "/")

    async def probe(self, table: str) -> list[dict[str, Any]]:
        """Minimal existence query: select id from table limit 1."""
        return await self.select(table, columns="id", limit=1)

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows with equality filters."""
        params: dict[str, Any] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        if limit is not None:
            params["limit"] = limit
        return await self._request("GET", f"/{table}", params=params)

    async def insert(
        self, table: str, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert rows and return the stored representation."""
        return await self._request(
            "POST",
            f"/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )

    async def update(
        self, table: str, values: dict[str, Any], *, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update rows matching equality filters; filters are mandatory."""
        if not filters:
            raise ValueError("update requires at least one filter")
        params = {column: f"eq.{value}" for column, value in filters.items()}
        return await self._request(
            "PATCH",
            f"/{table}",
            params=params,
            json=values,
            headers={"Prefer": "return=representation"},
        )

    async def existing_tables(self, candidates: list[str]) -> list[str]:
        """Return which candidate tables are exposed by the project."""
        found: list[str] = []
        for table in candidates:
            try:
                await self.probe(table)
            except TenantDatabaseError as e:
                if is_table_missing(e):
                    continue
                raise
            found.append(table)
        return found

    async def aclose(self) -> None:
        await self._client.aclose()
