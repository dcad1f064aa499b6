"""Application services: credential store, connection router, provisioning, health, lifecycle."""

from store_tenancy.application.services.connection_router import (
    ConnectionCacheEntry,
    ConnectionRouter,
)
from store_tenancy.application.services.credential_store import CredentialStore
from store_tenancy.application.services.delegated_authorization import (
    DelegatedAuthorization,
    DelegatedTokenStore,
)
from store_tenancy.application.services.health_monitor import HealthMonitor
from store_tenancy.application.services.provisioning_service import (
    MISSING_SERVICE_KEY_WARNING,
    ProvisioningPipeline,
    ProvisioningStep,
)
from store_tenancy.application.services.store_lifecycle_service import StoreLifecycleService
from store_tenancy.application.services.store_registry import StoreRegistry

__all__ = [
    "ConnectionCacheEntry",
    "ConnectionRouter",
    "CredentialStore",
    "DelegatedAuthorization",
    "DelegatedTokenStore",
    "HealthMonitor",
    "MISSING_SERVICE_KEY_WARNING",
    "ProvisioningPipeline",
    "ProvisioningStep",
    "StoreLifecycleService",
    "StoreRegistry",
]
