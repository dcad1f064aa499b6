"""Connection Router: store id -> live tenant client, with a single-flight cache.

Cache hits return without I/O. Concurrent misses for one store share a
single construction task, so the Credential Store is read and a client is
built once no matter how many requests arrive together. Unrelated stores
never wait on each other.

Evicted clients are closed after a grace delay: callers that already hold
a client keep using it while it drains.
"""

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass

from store_tenancy.application.interfaces.repositories import ICredentialStore
from store_tenancy.application.interfaces.services import ITenantClient, ITenantClientFactory
from store_tenancy.domain.exceptions import NotProvisionedException

logger = logging.getLogger(__name__)


@dataclass
class ConnectionCacheEntry:
    """Cached client for one store. Valid only in the process that created it."""

    store_id: str
    client: ITenantClient
    resolved_at: float


class ConnectionRouter:
    """Resolves store ids to tenant clients and owns the process-local cache.

    Args:
        credential_store: Source of decrypted credentials on a miss.
        client_factory: Builds and verifies clients.
        ttl_seconds: Entry lifetime; None keeps entries until evicted.
        max_entries: Size bound; least recently used entries are evicted first.
        close_grace_seconds: Delay before closing an evicted client.
    """

    def __init__(
        self,
        credential_store: ICredentialStore,
        client_factory: ITenantClientFactory,
        *,
        ttl_seconds: float | None = 3600,
        max_entries: int = 512,
        close_grace_seconds: float = 30.0,
    ) -> None:
        self._credentials = credential_store
        self._factory = client_factory
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._close_grace = close_grace_seconds
        self._entries: OrderedDict[str, ConnectionCacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[ITenantClient]] = {}
        self._retiring: dict[asyncio.Task[None], ITenantClient] = {}

    def _is_fresh(self, entry: ConnectionCacheEntry) -> bool:
        if self._ttl is None:
            return True
        return time.monotonic() - entry.resolved_at < self._ttl

    async def get_connection(self, store_id: str) -> ITenantClient:
        """Return a ready client for the store.

        Raises:
            NotProvisionedException: The store has no active credentials.
            ConnectionFailedException: The client could not be built or
                verified; nothing is cached and the next call retries.
        """
        entry = self._entries.get(store_id)
        if entry is not None:
            if self._is_fresh(entry):
                self._entries.move_to_end(store_id)
                return entry.client
            self._evict(store_id)

        task = self._inflight.get(store_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._resolve(store_id), name=f"tenant-connect:{store_id}"
            )
            self._inflight[store_id] = task
            task.add_done_callback(lambda t, sid=store_id: self._on_resolved(sid, t))
        # shield: one waiter being cancelled must not cancel the shared construction.
        return await asyncio.shield(task)

    async def _resolve(self, store_id: str) -> ITenantClient:
        credential = await self._credentials.find_by_store(store_id)
        if credential is None:
            raise NotProvisionedException(store_id)
        if not credential.is_active:
            raise NotProvisionedException(store_id, reason="credentials_inactive")
        client = await self._factory.connect(credential)
        if self._inflight.get(store_id) is asyncio.current_task():
            self._store(store_id, client)
        else:
            logger.debug("Invalidated during resolve; retiring client store_id=%s", store_id)
            self._retire(client)
        return client

    def _on_resolved(self, store_id: str, task: asyncio.Task[ITenantClient]) -> None:
        if self._inflight.get(store_id) is task:
            del self._inflight[store_id]
        if not task.cancelled() and task.exception() is not None:
            logger.debug(
                "Tenant connection failed for store_id=%s: %s", store_id, task.exception()
            )

    def _store(self, store_id: str, client: ITenantClient) -> None:
        previous = self._entries.pop(store_id, None)
        if previous is not None and previous.client is not client:
            self._retire(previous.client)
        self._entries[store_id] = ConnectionCacheEntry(store_id, client, time.monotonic())
        while len(self._entries) > self._max_entries:
            old_id, old = self._entries.popitem(last=False)
            logger.debug("Evicting least recently used tenant client store_id=%s", old_id)
            self._retire(old.client)

    def _evict(self, store_id: str) -> None:
        entry = self._entries.pop(store_id, None)
        if entry is not None:
            self._retire(entry.client)

    def _retire(self, client: ITenantClient) -> None:
        """Close client after the grace delay; without a running loop it is left to GC."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._close_later(client))
        self._retiring[task] = client
        task.add_done_callback(lambda t: self._retiring.pop(t, None))

    async def _close_later(self, client: ITenantClient) -> None:
        if self._close_grace > 0:
            await asyncio.sleep(self._close_grace)
        try:
            await client.aclose()
        except Exception:
            logger.warning("Error closing retired tenant client", exc_info=True)

    def invalidate(self, store_id: str) -> None:
        """Evict the store's entry and detach any in-flight miss. Never raises."""
        self._inflight.pop(store_id, None)
        self._evict(store_id)
        logger.debug("Invalidated tenant connection store_id=%s", store_id)

    def invalidate_all(self) -> None:
        """Evict every entry (e.g. after encryption key rotation)."""
        self._inflight.clear()
        for store_id in list(self._entries):
            self._evict(store_id)
        logger.info("Invalidated all tenant connections")

    def cached_store_ids(self) -> list[str]:
        """Store ids with a fresh cached client, least recently used first."""
        return [sid for sid, entry in self._entries.items() if self._is_fresh(entry)]

    async def aclose(self) -> None:
        """Close every cached and retiring client immediately (shutdown)."""
        self._inflight.clear()
        clients = [entry.client for entry in self._entries.values()]
        self._entries.clear()
        for task, client in list(self._retiring.items()):
            task.cancel()
            clients.append(client)
        self._retiring.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:
                logger.warning("Error closing tenant client on shutdown", exc_info=True)
