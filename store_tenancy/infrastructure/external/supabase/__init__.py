"""Supabase platform APIs: Management API and OAuth token refresh."""

from store_tenancy.infrastructure.external.supabase.management_api import (
    DelegatedAccessRejectedError,
    ManagementApiError,
    SupabaseManagementClient,
)
from store_tenancy.infrastructure.external.supabase.oauth_client import (
    SupabaseOAuthClient,
    TokenRefreshError,
)

__all__ = [
    "DelegatedAccessRejectedError",
    "ManagementApiError",
    "SupabaseManagementClient",
    "SupabaseOAuthClient",
    "TokenRefreshError",
]
