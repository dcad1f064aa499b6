"""DTOs for provisioning runs, options and delegated authorization."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from store_tenancy.core.constants import DEFAULT_CURRENCY, DEFAULT_TIMEZONE
from store_tenancy.domain.enums import ProvisioningOperation
from store_tenancy.shared.utils.datetime import has_passed, parse_utc, utc_now


@dataclass(frozen=True)
class DelegatedToken:
    """Delegated access to a tenant's database project (from the OAuth gateway).

    Treated as an opaque bearer credential with an expiry. Token values are
    excluded from repr so they never reach logs.
    """

    access_token: str = field(repr=False)
    project_ref: str | None = None
    expires_at: datetime | None = None
    refresh_token: str | None = field(default=None, repr=False)

    def is_expired(self, now: datetime | None = None, skew_seconds: int = 0) -> bool:
        """Return True when the token is past (or within skew of) its expiry."""
        if self.expires_at is None:
            return False
        return has_passed(self.expires_at, skew_seconds=skew_seconds, now=now)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the token store (JSON-safe)."""
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "project_ref": self.project_ref,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DelegatedToken":
        """Deserialize a token store value."""
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            project_ref=data.get("project_ref"),
            expires_at=parse_utc(data.get("expires_at")),
        )


@dataclass(frozen=True)
class PlatformUser:
    """The platform user requesting provisioning; seeded as the tenant's admin."""

    id: str
    email: str
    password_hash: str | None = field(default=None, repr=False)
    first_name: str = ""
    last_name: str = ""


@dataclass(frozen=True)
class ProvisioningOptions:
    """Inputs for connect_database and reprovision beyond the credentials.

    store_name/store_slug default to the master store record. delegated is
    required for the Management API channel and for reprovision.
    """

    owner: PlatformUser
    store_name: str | None = None
    store_slug: str | None = None
    theme_preset: str | None = None
    currency: str = DEFAULT_CURRENCY
    timezone: str = DEFAULT_TIMEZONE
    custom_domain: str | None = None
    delegated: DelegatedToken | None = None


@dataclass(frozen=True)
class StepResult:
    """Outcome of one provisioning step."""

    name: str
    required: bool
    succeeded: bool
    error: str | None = None
    duration_ms: float = 0.0
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProvisioningRun:
    """Ephemeral record of one provisioning attempt.

    Steps are appended in execution order. succeeded is set only after the
    store was activated; a failed run names the step that failed.
    """

    store_id: str
    operation: ProvisioningOperation
    steps: list[StepResult] = field(default_factory=list)
    succeeded: bool = False
    failed_step: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None

    def record(self, result: StepResult) -> None:
        self.steps.append(result)
        if not result.succeeded:
            if result.required:
                self.failed_step = result.name
                self.error = result.error
            else:
                self.warnings.append(f"{result.name}: {result.error}")

    def fail(self, step: str, error: str) -> None:
        """Mark the run failed at a step that is not a recorded pipeline step (e.g. validation)."""
        self.failed_step = step
        self.error = error
        self.finished_at = utc_now()

    def complete(self) -> None:
        self.succeeded = True
        self.finished_at = utc_now()

    @property
    def completed_steps(self) -> list[str]:
        return [s.name for s in self.steps if s.succeeded]

    def summary(self) -> list[dict[str, Any]]:
        """Per-step summary for error details and logs (no secrets)."""
        return [
            {
                "step": s.name,
                "required": s.required,
                "succeeded": s.succeeded,
                "error": s.error,
            }
            for s in self.steps
        ]
