"""Delegated authorization: pending OAuth tokens per store and their refresh.

The authorization gateway drops a DelegatedToken under oauth:pending:{store_id}
once the store owner grants access to their project. Provisioning resolves
the token here before doing any work against the tenant project.
"""

import asyncio
import logging

from store_tenancy.application.dtos.provisioning import DelegatedToken
from store_tenancy.application.interfaces.services import ITokenRefresher
from store_tenancy.domain.exceptions import ReauthorizationRequiredException
from store_tenancy.infrastructure.cache.cache_protocol import CacheProtocol
from store_tenancy.infrastructure.cache.keys import pending_oauth_key
from store_tenancy.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class DelegatedTokenStore:
    """TTL-bounded storage of delegated tokens keyed by store id."""

    def __init__(self, cache: CacheProtocol, ttl_seconds: int = 600) -> None:
        self._cache = cache
        self._ttl = ttl_seconds

    async def save(self, store_id: str, token: DelegatedToken) -> bool:
        saved = await self._cache.set(pending_oauth_key(store_id), token.to_dict(), ttl=self._ttl)
        if not saved:
            logger.warning("Delegated token for store %s was not persisted", store_id)
        return saved

    async def get(self, store_id: str) -> DelegatedToken | None:
        data = await self._cache.get(pending_oauth_key(store_id))
        if not data:
            return None
        try:
            return DelegatedToken.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed delegated token for store %s", store_id)
            await self._cache.delete(pending_oauth_key(store_id))
            return None

    async def delete(self, store_id: str) -> bool:
        return await self._cache.delete(pending_oauth_key(store_id))


class DelegatedAuthorization:
    """Resolves a usable delegated token for a store, refreshing it when expired.

    Args:
        token_store: Where pending tokens live.
        refresher: OAuth refresh client; None disables refresh.
        skew_seconds: Tokens expiring within this window count as expired.
        timeout_seconds: Bound on one refresh call.
    """

    def __init__(
        self,
        token_store: DelegatedTokenStore,
        refresher: ITokenRefresher | None = None,
        *,
        skew_seconds: int = 60,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.token_store = token_store
        self._refresher = refresher
        self._skew = skew_seconds
        self._timeout = timeout_seconds

    async def resolve(
        self, store_id: str, supplied: DelegatedToken | None = None
    ) -> DelegatedToken:
        """Return a non-expired token for the store.

        Uses supplied when given, else the token store. An expired token is
        refreshed once and the new token saved.

        Raises:
            ReauthorizationRequiredException: No token, or expired and not refreshable.
        """
        token = supplied or await self.token_store.get(store_id)
        if token is None:
            raise ReauthorizationRequiredException(store_id, reason="missing")
        if not token.is_expired(utc_now(), self._skew):
            return token
        if self._refresher is None or not token.refresh_token:
            logger.info("Delegated token for store %s expired and cannot be refreshed", store_id)
            raise ReauthorizationRequiredException(store_id, reason="token_expired")
        try:
            refreshed = await asyncio.wait_for(self._refresher.refresh(token), self._timeout)
        except (ValueError, TimeoutError) as e:
            logger.warning("Delegated token refresh failed for store %s: %s", store_id, e)
            raise ReauthorizationRequiredException(store_id, reason="refresh_failed") from e
        await self.token_store.save(store_id, refreshed)
        logger.info("Refreshed delegated token for store %s", store_id)
        return refreshed
