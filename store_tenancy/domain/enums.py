"""Domain enumerations for store tenancy.

Enums represent fixed sets of domain values (store status, database kind,
health classification).
"""

from enum import Enum


class StoreStatus(str, Enum):
    """Store provisioning lifecycle status.

    pending_database -> provisioning -> active, with active|provisioning ->
    pending_database on detected failure and active -> suspended by owner.
    Only ACTIVE may carry is_active=True.
    """

    PENDING_DATABASE = "pending_database"
    PROVISIONING = "provisioning"
    ACTIVE = "active"
    SUSPENDED = "suspended"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid status values as strings.

        Returns:
            List of enum value strings (e.g. for check constraints).
        """
        return [status.value for status in cls]


class DatabaseKind(str, Enum):
    """Kind of tenant database; tags the connection parameter variant."""

    SUPABASE = "supabase"
    POSTGRESQL = "postgresql"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid kind values as strings."""
        return [kind.value for kind in cls]


class HealthStatus(str, Enum):
    """Outcome of a tenant liveness probe."""

    HEALTHY = "healthy"
    EMPTY = "empty"
    UNREACHABLE = "unreachable"


class ConnectionStatus(str, Enum):
    """Last observed connection state stored on the credential row."""

    PENDING = "pending"
    CONNECTED = "connected"
    FAILED = "failed"

    @classmethod
    def values(cls) -> list[str]:
        """Return all valid connection status values as strings."""
        return [status.value for status in cls]


class DiagnosisStatus(str, Enum):
    """Detailed tenant diagnosis result (read-only, never demotes)."""

    NOT_FOUND = "not_found"
    NO_DATABASE = "no_database"
    DATABASE_INACTIVE = "database_inactive"
    CONNECTION_FAILED = "connection_failed"
    EMPTY = "empty"
    PARTIAL = "partial"
    MISSING_STORE_RECORD = "missing_store_record"
    HEALTHY = "healthy"


class ProvisioningOperation(str, Enum):
    """Which pipeline entry point produced a provisioning run."""

    CONNECT = "connect"
    REPROVISION = "reprovision"
