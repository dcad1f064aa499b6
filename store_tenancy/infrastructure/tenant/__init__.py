"""Tenant database adapters: clients, client factory, migration channels and errors."""

from store_tenancy.infrastructure.tenant.client_factory import TenantClientFactory
from store_tenancy.infrastructure.tenant.errors import (
    TenantDatabaseError,
    TenantTransportError,
    classify_probe_error,
    is_auth_error,
    is_table_missing,
)
from store_tenancy.infrastructure.tenant.postgres_client import PostgresTenantClient
from store_tenancy.infrastructure.tenant.schema_executor import (
    ManagementApiExecutor,
    PostgresSchemaExecutor,
    SchemaExecutorFactory,
    load_tenant_script,
    render_sql,
)
from store_tenancy.infrastructure.tenant.supabase_client import SupabaseRestClient

__all__ = [
    "ManagementApiExecutor",
    "PostgresSchemaExecutor",
    "PostgresTenantClient",
    "SchemaExecutorFactory",
    "SupabaseRestClient",
    "TenantClientFactory",
    "TenantDatabaseError",
    "TenantTransportError",
    "classify_probe_error",
    "is_auth_error",
    "is_table_missing",
    "load_tenant_script",
    "render_sql",
]
