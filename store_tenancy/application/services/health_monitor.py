"""Health & Recovery Monitor: detect tenant databases that lost their schema or vanished.

check_health probes the tenant and, when the database is empty or
unreachable, sends the store back to pending_database and drops its
credentials so the owner is asked to reconnect. diagnose gives a detailed,
read-only report for support tooling.
"""

import asyncio
import logging
from datetime import timedelta

from store_tenancy.application.dtos.health import TenantDiagnosis
from store_tenancy.application.interfaces.repositories import ICredentialStore, IStoreRegistry
from store_tenancy.application.interfaces.services import (
    IConnectionRouter,
    ITenantClient,
    ITenantClientFactory,
)
from store_tenancy.core.config import Settings, get_settings
from store_tenancy.core.constants import HEALTH_PROBE_TABLE, REQUIRED_TENANT_TABLES
from store_tenancy.domain.enums import ConnectionStatus, DiagnosisStatus, HealthStatus
from store_tenancy.domain.exceptions import (
    ConnectionFailedException,
    CredentialDecryptionException,
    NotProvisionedException,
)
from store_tenancy.infrastructure.tenant.errors import TenantDatabaseError, classify_probe_error
from store_tenancy.shared.telemetry.tracing import add_span_attributes, traced
from store_tenancy.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Probes tenant databases and demotes stores whose database is gone."""

    def __init__(
        self,
        registry: IStoreRegistry,
        credential_store: ICredentialStore,
        router: IConnectionRouter,
        client_factory: ITenantClientFactory,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.credential_store = credential_store
        self.router = router
        self.client_factory = client_factory
        self.settings = settings or get_settings()

    @traced("health.check_health")
    async def check_health(self, store_id: str) -> HealthStatus:
        """Probe the store's tenant database and recover the store if it is not healthy.

        Never raises: every failure is reported as a status.

        Returns:
            HEALTHY when the probe table answered (even with zero rows), EMPTY
            when the schema is missing, UNREACHABLE for everything else.
        """
        try:
            await self._recover_stale(store_id)
            status = await self._probe(store_id)
        except Exception as e:
            logger.warning("Health check error for store %s: %s", store_id, e, exc_info=True)
            status = HealthStatus.UNREACHABLE
        add_span_attributes(health_status=status.value)

        if status == HealthStatus.HEALTHY:
            try:
                await self.credential_store.mark_connection_tested(
                    store_id, ConnectionStatus.CONNECTED
                )
            except Exception:
                logger.warning("Could not record connection test for store %s", store_id)
            return status

        logger.warning("Store %s tenant database is %s; demoting", store_id, status.value)
        try:
            await self.registry.demote_and_clear_credentials(store_id)
        except Exception:
            logger.exception("Could not demote store %s after failed health check", store_id)
        self.router.invalidate(store_id)
        return status

    async def _recover_stale(self, store_id: str) -> None:
        older_than = utc_now() - timedelta(
            seconds=self.settings.provisioning_stale_after_seconds
        )
        await self.registry.recover_stale_provisioning(store_id, older_than)

    async def _probe(self, store_id: str) -> HealthStatus:
        try:
            client = await self.router.get_connection(store_id)
        except (NotProvisionedException, ConnectionFailedException) as e:
            logger.info("Health check for store %s: no usable client (%s)", store_id, e.error_code)
            return HealthStatus.UNREACHABLE
        try:
            await asyncio.wait_for(
                client.probe(HEALTH_PROBE_TABLE),
                timeout=self.settings.tenant_probe_timeout_seconds,
            )
        except Exception as e:
            return classify_probe_error(e)
        return HealthStatus.HEALTHY

    @traced("health.diagnose")
    async def diagnose(self, store_id: str) -> TenantDiagnosis:
        """Detailed report of the store's tenant database. Changes nothing.

        Uses a fresh client rather than the router cache so the report
        reflects the database as it is now.
        """
        store = await self.registry.get_store(store_id)
        if store is None:
            return TenantDiagnosis(store_id, DiagnosisStatus.NOT_FOUND, "Store not found")
        store_status = store.status.value

        try:
            credential = await self.credential_store.find_by_store(store_id)
        except CredentialDecryptionException as e:
            return TenantDiagnosis(
                store_id, DiagnosisStatus.CONNECTION_FAILED, e.message, store_status
            )
        if credential is None:
            return TenantDiagnosis(
                store_id, DiagnosisStatus.NO_DATABASE, "No database connected", store_status
            )
        if not credential.is_active:
            return TenantDiagnosis(
                store_id,
                DiagnosisStatus.DATABASE_INACTIVE,
                "Database connection is inactive",
                store_status,
            )

        try:
            client = await self.client_factory.connect(credential)
        except ConnectionFailedException as e:
            return TenantDiagnosis(
                store_id, DiagnosisStatus.CONNECTION_FAILED, e.message, store_status
            )
        try:
            return await asyncio.wait_for(
                self._inspect(store_id, store_status, client),
                timeout=self.settings.tenant_probe_timeout_seconds * 2,
            )
        except (TenantDatabaseError, TimeoutError) as e:
            timed_out = isinstance(e, TimeoutError)
            message = "Timed out inspecting tenant database" if timed_out else str(e)
            return TenantDiagnosis(
                store_id, DiagnosisStatus.CONNECTION_FAILED, message, store_status
            )
        finally:
            await client.aclose()

    async def _inspect(
        self, store_id: str, store_status: str, client: ITenantClient
    ) -> TenantDiagnosis:
        required = list(REQUIRED_TENANT_TABLES)
        existing = await client.existing_tables(required)
        missing = [t for t in required if t not in existing]
        if not existing:
            return TenantDiagnosis(
                store_id,
                DiagnosisStatus.EMPTY,
                "Database is empty; run provisioning",
                store_status,
                existing,
                missing,
            )
        if missing:
            return TenantDiagnosis(
                store_id,
                DiagnosisStatus.PARTIAL,
                f"Database is missing {len(missing)} required tables",
                store_status,
                existing,
                missing,
            )
        rows = await client.select(
            HEALTH_PROBE_TABLE, columns="id", filters={"id": store_id}, limit=1
        )
        if not rows:
            return TenantDiagnosis(
                store_id,
                DiagnosisStatus.MISSING_STORE_RECORD,
                "Tenant stores table has no row for this store",
                store_status,
                existing,
                missing,
            )
        return TenantDiagnosis(
            store_id, DiagnosisStatus.HEALTHY, "Database is healthy", store_status, existing
        )
