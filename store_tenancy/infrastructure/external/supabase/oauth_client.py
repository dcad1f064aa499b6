"""Supabase OAuth token refresh (delegated authorization).

The authorization-code dance lives in the external gateway; this client
only exchanges a refresh token for a new access token.
"""

import logging

import httpx

from store_tenancy.application.dtos.provisioning import DelegatedToken
from store_tenancy.shared.utils.datetime import seconds_from_now

logger = logging.getLogger(__name__)

_DEFAULT_EXPIRES_IN = 3600


class TokenRefreshError(ValueError):
    """The OAuth server refused or failed the refresh."""


class SupabaseOAuthClient:
    """Refreshes delegated tokens against the Supabase OAuth token endpoint."""

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token_url = token_url
        self.client_id = client_id
        self._client_secret = client_secret
        self._timeout = timeout
        self._transport = transport

    async def refresh(self, token: DelegatedToken) -> DelegatedToken:
        """Exchange token.refresh_token for a new access token.

        Keeps the old refresh token when the server does not rotate it.

        Raises:
            TokenRefreshError: Missing refresh token, non-200 response or transport failure.
        """
        if not token.refresh_token:
            raise TokenRefreshError("No refresh token available")
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.token_url,
                    data={
                        "grant_type": "refresh_token",
                        "refresh_token": token.refresh_token,
                    },
                    auth=(self.client_id, self._client_secret),
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                raise TokenRefreshError(
                    f"Token refresh request failed: {e.__class__.__name__}"
                ) from e
        if response.status_code != 200:
            logger.error("Supabase token refresh failed: status=%d", response.status_code)
            raise TokenRefreshError(
                f"Token refresh failed with status {response.status_code}"
            )
        data = response.json()
        access_token = data.get("access_token")
        if not access_token:
            raise TokenRefreshError("Token refresh response has no access_token")
        expires_in = int(data.get("expires_in") or _DEFAULT_EXPIRES_IN)
        return DelegatedToken(
            access_token=access_token,
            refresh_token=data.get("refresh_token") or token.refresh_token,
            project_ref=token.project_ref,
            expires_at=seconds_from_now(expires_in),
        )
