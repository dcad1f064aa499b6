"""Domain exceptions for store tenancy.

Defines the error taxonomy of connection routing and provisioning. These
exceptions are independent of infrastructure concerns; callers (HTTP
handlers, job runners) map them to responses using message, error_code,
details and retryable.
"""

from typing import Any


class StoreTenancyException(Exception):
    """Base exception for all store tenancy errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. store_id, failed_step).
        retryable: Whether the same call may succeed later without new input.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(StoreTenancyException):
    """Raised when input validation fails (e.g. credentials without a resolvable host)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class StoreNotFoundException(StoreTenancyException):
    """Raised when a store does not exist in the master database."""

    def __init__(self, store_id: str) -> None:
        super().__init__(
            f"Store not found: {store_id}",
            "STORE_NOT_FOUND",
            {"store_id": store_id},
        )


class SlugAlreadyTakenException(StoreTenancyException):
    """Raised when creating a store whose slug is held by another live store."""

    def __init__(self, slug: str) -> None:
        super().__init__(
            f"Store slug '{slug}' is already taken",
            "SLUG_ALREADY_TAKEN",
            {"slug": slug},
        )


class NotProvisionedException(StoreTenancyException):
    """Raised when a store has no (active) tenant database credentials yet.

    Expected state for new stores: surface as "store needs setup", not as a
    transient failure.
    """

    def __init__(self, store_id: str, reason: str = "no_credentials") -> None:
        super().__init__(
            f"Store {store_id} has no connected database",
            "NOT_PROVISIONED",
            {"store_id": store_id, "reason": reason},
        )


class ConnectionFailedException(StoreTenancyException):
    """Raised when a registered tenant database cannot be reached. Retryable."""

    retryable = True

    def __init__(self, store_id: str | None, reason: str) -> None:
        """Initialize with the store and a short reason.

        Args:
            store_id: Store whose database failed (None when validating new params).
            reason: Short description (never contains secrets).
        """
        super().__init__(
            f"Could not connect to tenant database: {reason}",
            "CONNECTION_FAILED",
            {"store_id": store_id, "reason": reason},
        )


class InvalidCredentialsException(StoreTenancyException):
    """Raised when the target database actively rejects the supplied key or password."""

    def __init__(self, reason: str = "Credentials rejected by the target database") -> None:
        super().__init__(reason, "INVALID_CREDENTIALS", {})


class DatabaseAlreadyInUseException(StoreTenancyException):
    """Raised when another store already holds an active credential for the host."""

    def __init__(self, host: str) -> None:
        super().__init__(
            f"Database host {host} is already connected to another store",
            "DATABASE_ALREADY_IN_USE",
            {"host": host},
        )


class AlreadyConnectedException(StoreTenancyException):
    """Raised when connecting a database for a store that is not pending_database."""

    def __init__(self, store_id: str, status: str) -> None:
        super().__init__(
            f"Store {store_id} already has a database (status: {status})",
            "ALREADY_CONNECTED",
            {"store_id": store_id, "status": status},
        )


class ReauthorizationRequiredException(StoreTenancyException):
    """Raised when the delegated authorization is missing, expired or revoked."""

    def __init__(self, store_id: str, reason: str = "token_expired") -> None:
        super().__init__(
            "Delegated authorization expired; the store owner must reconnect",
            "REAUTHORIZATION_REQUIRED",
            {"store_id": store_id, "reason": reason},
        )


class ProvisioningFailedException(StoreTenancyException):
    """Raised when a mandatory provisioning step fails. The store is back in pending_database."""

    retryable = True

    def __init__(self, store_id: str, step: str, reason: str) -> None:
        super().__init__(
            f"Provisioning failed at step '{step}': {reason}",
            "PROVISIONING_FAILED",
            {"store_id": store_id, "failed_step": step, "reason": reason},
        )


class CredentialDecryptionException(StoreTenancyException):
    """Raised when stored credentials cannot be decrypted with any configured key."""

    def __init__(self, store_id: str) -> None:
        super().__init__(
            f"Stored credentials for store {store_id} could not be decrypted",
            "CREDENTIAL_DECRYPTION_FAILED",
            {"store_id": store_id},
        )
