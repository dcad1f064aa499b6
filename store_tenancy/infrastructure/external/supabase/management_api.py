"""Supabase Management API client (delegated access, httpx).

Runs SQL against a project (migration channel when the platform holds an
OAuth grant instead of a connection string) and discovers project API keys.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ManagementApiError(Exception):
    """Management API call failed (non-2xx or transport error)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DelegatedAccessRejectedError(ManagementApiError):
    """The delegated access token was rejected (HTTP 401/403): grant expired or revoked."""


class SupabaseManagementClient:
    """Thin async client for https://api.supabase.com/v1."""

    def __init__(
        self,
        base_url: str = "https://api.supabase.com/v1",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def _request(
        self,
        method: str,
        path: str,
        access_token: str,
        *,
        json: Any = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                json=json,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.TimeoutException as e:
            raise ManagementApiError(f"Management API timeout on {path}") from e
        except httpx.TransportError as e:
            raise ManagementApiError(
                f"Management API unreachable: {e.__class__.__name__}"
            ) from e
        if response.status_code in (401, 403):
            raise DelegatedAccessRejectedError(
                "Delegated access token rejected", response.status_code
            )
        if response.status_code >= 400:
            detail = response.text[:300]
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get("message") or body.get("error") or detail
            except ValueError:
                pass
            raise ManagementApiError(str(detail), response.status_code)
        if not response.content:
            return None
        return response.json()

    async def run_query(self, project_ref: str, sql: str, access_token: str) -> Any:
        """Execute SQL in the project's database (POST /projects/{ref}/database/query)."""
        return await self._request(
            "POST",
            f"/projects/{project_ref}/database/query",
            access_token,
            json={"query": sql},
        )

    async def fetch_api_keys(self, project_ref: str, access_token: str) -> dict[str, str]:
        """Return {key_name: api_key} for the project.

        Falls back to the project resource's service_api_keys when the
        api-keys endpoint is unavailable.
        """
        try:
            keys = await self._request(
                "GET", f"/projects/{project_ref}/api-keys", access_token
            )
            if isinstance(keys, list):
                return {
                    k["name"]: k["api_key"]
                    for k in keys
                    if isinstance(k, dict) and k.get("name") and k.get("api_key")
                }
        except DelegatedAccessRejectedError:
            raise
        except ManagementApiError as e:
            logger.info(
                "api-keys endpoint failed for project %s (%s); trying project resource",
                project_ref,
                e.status_code,
            )
        project = await self._request("GET", f"/projects/{project_ref}", access_token)
        service_keys = (project or {}).get("service_api_keys") or {}
        if isinstance(service_keys, dict):
            return {k: v for k, v in service_keys.items() if isinstance(v, str) and v}
        return {}

    async def aclose(self) -> None:
        await self._client.aclose()
