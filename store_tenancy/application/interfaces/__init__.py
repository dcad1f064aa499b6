"""Application ports (Protocols) implemented by infrastructure."""

from store_tenancy.application.interfaces.repositories import (
    ICredentialStore,
    IStoreDirectory,
    IStoreRegistry,
)
from store_tenancy.application.interfaces.services import (
    IConnectionInvalidator,
    IConnectionRouter,
    IManagementApi,
    ISchemaExecutor,
    ISchemaExecutorFactory,
    ITenantClient,
    ITenantClientFactory,
    ITokenRefresher,
)

__all__ = [
    "IConnectionInvalidator",
    "IConnectionRouter",
    "ICredentialStore",
    "IManagementApi",
    "ISchemaExecutor",
    "ISchemaExecutorFactory",
    "IStoreDirectory",
    "IStoreRegistry",
    "ITenantClient",
    "ITenantClientFactory",
    "ITokenRefresher",
]
