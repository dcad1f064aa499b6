"""Runtime lifespan: build the tenancy services on startup, release them on shutdown.

Single place for wiring (SRP). Request handlers and job runners receive a
TenancyRuntime and never construct infrastructure themselves.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from store_tenancy.application.services.connection_router import ConnectionRouter
from store_tenancy.application.services.credential_store import CredentialStore
from store_tenancy.application.services.delegated_authorization import (
    DelegatedAuthorization,
    DelegatedTokenStore,
)
from store_tenancy.application.services.health_monitor import HealthMonitor
from store_tenancy.application.services.provisioning_service import ProvisioningPipeline
from store_tenancy.application.services.store_lifecycle_service import StoreLifecycleService
from store_tenancy.application.services.store_registry import StoreRegistry
from store_tenancy.core.config import Settings, get_settings
from store_tenancy.infrastructure.cache.cache_protocol import CacheProtocol
from store_tenancy.infrastructure.cache.memory_cache import InMemoryCache
from store_tenancy.infrastructure.cache.redis_cache import CacheService
from store_tenancy.infrastructure.external.supabase.management_api import (
    SupabaseManagementClient,
)
from store_tenancy.infrastructure.external.supabase.oauth_client import SupabaseOAuthClient
from store_tenancy.infrastructure.persistence import database
from store_tenancy.infrastructure.security.credential_encryption import FieldEncryptor
from store_tenancy.infrastructure.tenant.client_factory import TenantClientFactory
from store_tenancy.infrastructure.tenant.schema_executor import SchemaExecutorFactory
from store_tenancy.shared.telemetry.telemetry import (
    TenancyTelemetry,
    get_telemetry,
    set_telemetry,
)

logger = logging.getLogger(__name__)


@dataclass
class TenancyRuntime:
    """Process-wide service graph."""

    settings: Settings
    cache: CacheProtocol
    credential_store: CredentialStore
    registry: StoreRegistry
    router: ConnectionRouter
    token_store: DelegatedTokenStore
    authorization: DelegatedAuthorization
    provisioning: ProvisioningPipeline
    health: HealthMonitor
    lifecycle: StoreLifecycleService
    management_api: SupabaseManagementClient


def _setup_telemetry(settings: Settings) -> None:
    telemetry = TenancyTelemetry.from_settings(settings)
    if not telemetry.start(
        exporter=settings.telemetry_exporter,
        otlp_endpoint=settings.telemetry_otlp_endpoint,
        sample_rate=settings.telemetry_sample_rate,
    ):
        return
    telemetry.instrument(database.get_engine(), redis=settings.redis_enabled)
    set_telemetry(telemetry)


async def _build_cache(settings: Settings) -> CacheProtocol:
    """Redis when enabled and reachable, else an in-process store (single worker only)."""
    if settings.redis_enabled:
        cache = CacheService(settings=settings)
        await cache.connect()
        if cache.is_available():
            return cache
        logger.warning("Redis unavailable; delegated tokens are kept in process memory")
    return InMemoryCache()


def _build_oauth_client(settings: Settings) -> SupabaseOAuthClient | None:
    if not settings.supabase_oauth_client_id or not settings.supabase_oauth_client_secret:
        logger.info("Supabase OAuth client not configured; delegated tokens cannot be refreshed")
        return None
    return SupabaseOAuthClient(
        settings.supabase_oauth_token_url,
        settings.supabase_oauth_client_id,
        settings.supabase_oauth_client_secret.get_secret_value(),
        timeout=settings.management_api_timeout_seconds,
    )


async def create_runtime(settings: Settings | None = None) -> TenancyRuntime:
    """Build every service. Startup order: telemetry, cache, master database, services."""
    settings = settings or get_settings()
    if settings.telemetry_enabled:
        _setup_telemetry(settings)

    cache = await _build_cache(settings)
    session_factory = database.get_session_factory()
    encryptor = FieldEncryptor.from_settings(settings)

    credential_store = CredentialStore(session_factory, encryptor)
    registry = StoreRegistry(session_factory)
    client_factory = TenantClientFactory(settings)
    router = ConnectionRouter(
        credential_store,
        client_factory,
        ttl_seconds=settings.connection_cache_ttl_seconds,
        max_entries=settings.connection_cache_max_entries,
        close_grace_seconds=settings.connection_close_grace_seconds,
    )
    management_api = SupabaseManagementClient(
        settings.supabase_management_api_url,
        timeout=settings.management_api_timeout_seconds,
    )
    token_store = DelegatedTokenStore(cache, settings.delegated_token_ttl_seconds)
    authorization = DelegatedAuthorization(
        token_store,
        _build_oauth_client(settings),
        skew_seconds=settings.token_refresh_skew_seconds,
        timeout_seconds=settings.management_api_timeout_seconds,
    )
    provisioning = ProvisioningPipeline(
        registry=registry,
        credential_store=credential_store,
        router=router,
        client_factory=client_factory,
        executor_factory=SchemaExecutorFactory(management_api, settings),
        authorization=authorization,
        management_api=management_api,
        settings=settings,
    )
    health = HealthMonitor(registry, credential_store, router, client_factory, settings)
    lifecycle = StoreLifecycleService(registry, router)
    logger.info("Tenancy runtime ready (%s %s)", settings.app_name, settings.app_version)
    return TenancyRuntime(
        settings=settings,
        cache=cache,
        credential_store=credential_store,
        registry=registry,
        router=router,
        token_store=token_store,
        authorization=authorization,
        provisioning=provisioning,
        health=health,
        lifecycle=lifecycle,
        management_api=management_api,
    )


async def shutdown_runtime(runtime: TenancyRuntime) -> None:
    """Shutdown order: tenant clients, outbound HTTP, cache, telemetry, master engine."""
    await runtime.router.aclose()
    logger.info("Tenant connections closed")

    await runtime.management_api.aclose()

    if isinstance(runtime.cache, CacheService):
        await runtime.cache.disconnect()
        logger.info("Cache disconnected")

    telemetry = get_telemetry()
    if telemetry is not None:
        telemetry.shutdown()
        set_telemetry(None)

    await database.dispose_engine()


@asynccontextmanager
async def tenancy_lifespan(settings: Settings | None = None) -> AsyncIterator[TenancyRuntime]:
    """Run startup, yield the runtime, then run shutdown (also on error)."""
    runtime = await create_runtime(settings)
    try:
        yield runtime
    finally:
        await shutdown_runtime(runtime)
