"""Domain layer: enums and exceptions.

No dependencies on infrastructure. Used by application and
infrastructure layers.
"""

from store_tenancy.domain.enums import (
    ConnectionStatus,
    DatabaseKind,
    DiagnosisStatus,
    HealthStatus,
    ProvisioningOperation,
    StoreStatus,
)
from store_tenancy.domain.exceptions import (
    AlreadyConnectedException,
    ConnectionFailedException,
    CredentialDecryptionException,
    DatabaseAlreadyInUseException,
    InvalidCredentialsException,
    NotProvisionedException,
    ProvisioningFailedException,
    ReauthorizationRequiredException,
    SlugAlreadyTakenException,
    StoreNotFoundException,
    StoreTenancyException,
    ValidationException,
)

__all__ = [
    "AlreadyConnectedException",
    "ConnectionFailedException",
    "ConnectionStatus",
    "CredentialDecryptionException",
    "DatabaseAlreadyInUseException",
    "DatabaseKind",
    "DiagnosisStatus",
    "HealthStatus",
    "InvalidCredentialsException",
    "NotProvisionedException",
    "ProvisioningFailedException",
    "ProvisioningOperation",
    "ReauthorizationRequiredException",
    "SlugAlreadyTakenException",
    "StoreNotFoundException",
    "StoreStatus",
    "StoreTenancyException",
    "ValidationException",
]
