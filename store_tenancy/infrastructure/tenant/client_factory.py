"""Builds tenant clients from decrypted credentials.

Supabase projects with a service key get a PostgREST client; anything with
only a raw connection string gets a direct Postgres client. connect()
verifies the client with a bounded ping and reports every failure as
ConnectionFailedException so the router never caches a broken client.
"""

import asyncio
import logging

import httpx
from sqlalchemy.exc import ArgumentError

from store_tenancy.application.dtos.store import TenantCredential
from store_tenancy.application.interfaces.services import ITenantClient
from store_tenancy.core.config import Settings, get_settings
from store_tenancy.domain.exceptions import ConnectionFailedException
from store_tenancy.infrastructure.tenant.errors import TenantDatabaseError
from store_tenancy.infrastructure.tenant.postgres_client import PostgresTenantClient
from store_tenancy.infrastructure.tenant.supabase_client import SupabaseRestClient
from store_tenancy.schemas.connection import PostgresParams, SupabaseParams, secret_or_none

logger = logging.getLogger(__name__)


class TenantClientFactory:
    """Creates SupabaseRestClient or PostgresTenantClient instances."""

    def __init__(
        self,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._http_transport = http_transport

    def build(self, params: SupabaseParams | PostgresParams) -> ITenantClient:
        """Construct a client without I/O.

        Raises:
            ValueError: If params carry nothing a client can be built from.
        """
        timeout = self.settings.tenant_connect_timeout_seconds
        if isinstance(params, SupabaseParams):
            service_key = secret_or_none(params.service_role_key)
            if params.project_url and service_key:
                return SupabaseRestClient(
                    params.project_url,
                    service_key,
                    timeout=timeout,
                    transport=self._http_transport,
                )
            connection_string = secret_or_none(params.connection_string)
            if connection_string:
                return self._postgres(connection_string)
            raise ValueError("service role key not configured")
        return self._postgres(params.connection_string.get_secret_value())

    def _postgres(self, connection_string: str) -> PostgresTenantClient:
        try:
            return PostgresTenantClient.from_connection_string(
                connection_string,
                timeout=self.settings.tenant_connect_timeout_seconds,
                pool_size=self.settings.tenant_pool_size,
            )
        except ArgumentError as e:
            raise ValueError("malformed connection string") from e

    async def connect(self, credential: TenantCredential) -> ITenantClient:
        """Build and ping a client for a stored credential.

        Raises:
            ConnectionFailedException: Malformed params, timeout, unreachable
                host or rejected key. The half-built client is closed.
        """
        store_id = credential.store_id
        try:
            client = self.build(credential.params)
        except ValueError as e:
            raise ConnectionFailedException(store_id, str(e)) from e
        try:
            await asyncio.wait_for(
                client.ping(), timeout=self.settings.tenant_connect_timeout_seconds
            )
        except TimeoutError as e:
            await client.aclose()
            raise ConnectionFailedException(store_id, "timed out connecting") from e
        except TenantDatabaseError as e:
            await client.aclose()
            raise ConnectionFailedException(store_id, e.message) from e
        except BaseException:
            await client.aclose()
            raise
        logger.debug("Tenant client ready: store_id=%s kind=%s", store_id, client.kind.value)
        return client
