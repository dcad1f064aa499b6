"""Application DTOs: read-models and run records passed between services."""

from store_tenancy.application.dtos.health import TenantDiagnosis
from store_tenancy.application.dtos.provisioning import (
    DelegatedToken,
    PlatformUser,
    ProvisioningOptions,
    ProvisioningRun,
    StepResult,
)
from store_tenancy.application.dtos.store import StoreResult, TenantCredential

__all__ = [
    "DelegatedToken",
    "PlatformUser",
    "ProvisioningOptions",
    "ProvisioningRun",
    "StepResult",
    "StoreResult",
    "TenantCredential",
    "TenantDiagnosis",
]
