"""Tenant database errors and their classification.

Adapters raise TenantDatabaseError (query rejected) or TenantTransportError
(database not reachable). The helpers here decide what an error means:
missing schema, rejected credentials, or an unreachable database.
"""

from store_tenancy.core.constants import (
    AUTH_ERROR_CODES,
    AUTH_ERROR_MESSAGES,
    TABLE_MISSING_CODES,
    TABLE_MISSING_MESSAGES,
)
from store_tenancy.domain.enums import HealthStatus


class TenantDatabaseError(Exception):
    """A tenant database answered but rejected the request.

    Attributes:
        message: Error message from the database or API (no secrets).
        code: PostgREST code (e.g. PGRST205) or Postgres SQLSTATE (e.g. 42P01).
        status_code: HTTP status for REST-backed tenants, else None.
    """

    def __init__(
        self, message: str, code: str | None = None, status_code: int | None = None
    ) -> None:
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(f"[{code or status_code or 'error'}] {message}")


class TenantTransportError(TenantDatabaseError):
    """The tenant database could not be reached (timeout, DNS, refused connection)."""


def is_table_missing(exc: BaseException) -> bool:
    """Return True for 'relation does not exist' and schema-cache-miss errors."""
    if not isinstance(exc, TenantDatabaseError) or isinstance(exc, TenantTransportError):
        return False
    if exc.code and exc.code in TABLE_MISSING_CODES:
        return True
    message = (exc.message or "").lower()
    return any(fragment in message for fragment in TABLE_MISSING_MESSAGES)


def is_auth_error(exc: BaseException) -> bool:
    """Return True when the database rejected the key/JWT or password."""
    if not isinstance(exc, TenantDatabaseError) or isinstance(exc, TenantTransportError):
        return False
    if exc.status_code in (401, 403):
        return True
    if exc.code and exc.code in AUTH_ERROR_CODES:
        return True
    message = (exc.message or "").lower()
    return any(fragment in message for fragment in AUTH_ERROR_MESSAGES)


def classify_probe_error(exc: BaseException) -> HealthStatus:
    """Map an exception raised by a liveness probe to a health status.

    Missing tables mean the schema was dropped (EMPTY). Everything else,
    including transport errors, timeouts and unexpected exceptions, is
    UNREACHABLE.
    """
    if is_table_missing(exc):
        return HealthStatus.EMPTY
    return HealthStatus.UNREACHABLE
