"""Unit tests for the Supabase Management API and OAuth clients (httpx.MockTransport)."""

import json
from datetime import timedelta

import httpx
import pytest

from store_tenancy.application.dtos.provisioning import DelegatedToken
from store_tenancy.infrastructure.external.supabase.management_api import (
    DelegatedAccessRejectedError,
    ManagementApiError,
    SupabaseManagementClient,
)
from store_tenancy.infrastructure.external.supabase.oauth_client import (
    SupabaseOAuthClient,
    TokenRefreshError,
)
from store_tenancy.shared.utils.datetime import utc_now


def _api(handler) -> SupabaseManagementClient:
    return SupabaseManagementClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_run_query_posts_sql_with_bearer_token() -> None:
    """run_query POSTs {"query": sql} to /projects/{ref}/database/query."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json=[])

    api = _api(handler)
    await api.run_query("abcd", "SELECT 1", "delegated-access")
    await api.aclose()

    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/projects/abcd/database/query"
    assert request.headers["Authorization"] == "Bearer delegated-access"
    assert json.loads(request.content) == {"query": "SELECT 1"}


@pytest.mark.asyncio
async def test_rejected_token_raises_delegated_access_rejected() -> None:
    """401/403 mean the grant is gone."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "Unauthorized"})

    api = _api(handler)
    with pytest.raises(DelegatedAccessRejectedError) as exc_info:
        await api.run_query("abcd", "SELECT 1", "expired")
    await api.aclose()

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_server_error_raises_management_api_error() -> None:
    """Other failures carry the API's message."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"message": "syntax error at or near"})

    api = _api(handler)
    with pytest.raises(ManagementApiError) as exc_info:
        await api.run_query("abcd", "SELEC 1", "token")
    await api.aclose()

    assert "syntax error" in exc_info.value.message
    assert not isinstance(exc_info.value, DelegatedAccessRejectedError)


@pytest.mark.asyncio
async def test_fetch_api_keys_from_api_keys_endpoint() -> None:
    """The api-keys list is turned into {name: key}."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/projects/abcd/api-keys"
        return httpx.Response(
            200,
            json=[
                {"name": "anon", "api_key": "anon-key"},
                {"name": "service_role", "api_key": "service-key"},
            ],
        )

    api = _api(handler)
    keys = await api.fetch_api_keys("abcd", "token")
    await api.aclose()

    assert keys == {"anon": "anon-key", "service_role": "service-key"}


@pytest.mark.asyncio
async def test_fetch_api_keys_falls_back_to_project_resource() -> None:
    """When api-keys fails the project's service_api_keys are used."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/api-keys"):
            return httpx.Response(404, json={"message": "not found"})
        return httpx.Response(
            200, json={"id": "abcd", "service_api_keys": {"service_role": "service-key"}}
        )

    api = _api(handler)
    keys = await api.fetch_api_keys("abcd", "token")
    await api.aclose()

    assert keys == {"service_role": "service-key"}


@pytest.mark.asyncio
async def test_fetch_api_keys_does_not_fall_back_on_rejected_token() -> None:
    """A rejected token is final; no second request is made."""
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(403)

    api = _api(handler)
    with pytest.raises(DelegatedAccessRejectedError):
        await api.fetch_api_keys("abcd", "token")
    await api.aclose()

    assert calls == ["/v1/projects/abcd/api-keys"]


@pytest.mark.asyncio
async def test_oauth_refresh_returns_new_token() -> None:
    """refresh posts the refresh token and keeps it when the server does not rotate it."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "new-access", "expires_in": 120})

    client = SupabaseOAuthClient(
        "https://api.supabase.com/v1/oauth/token",
        "client-id",
        "client-secret",
        transport=httpx.MockTransport(handler),
    )
    old = DelegatedToken(
        access_token="old-access",
        refresh_token="refresh-1",
        project_ref="abcd",
        expires_at=utc_now() - timedelta(minutes=1),
    )

    new = await client.refresh(old)

    assert new.access_token == "new-access"
    assert new.refresh_token == "refresh-1"
    assert new.project_ref == "abcd"
    assert new.is_expired() is False
    assert b"grant_type=refresh_token" in seen[0].content
    assert seen[0].headers["Authorization"].startswith("Basic ")


@pytest.mark.asyncio
async def test_oauth_refresh_failure_raises_token_refresh_error() -> None:
    """A non-200 answer is a TokenRefreshError (a ValueError)."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant"})

    client = SupabaseOAuthClient(
        "https://api.supabase.com/v1/oauth/token",
        "client-id",
        "client-secret",
        transport=httpx.MockTransport(handler),
    )
    token = DelegatedToken(access_token="a", refresh_token="r")

    with pytest.raises(TokenRefreshError):
        await client.refresh(token)
    with pytest.raises(ValueError):
        await client.refresh(DelegatedToken(access_token="a"))
