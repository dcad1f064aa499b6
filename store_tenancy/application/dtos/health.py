"""DTOs for tenant health diagnosis."""

from dataclasses import dataclass, field

from store_tenancy.domain.enums import DiagnosisStatus


@dataclass(frozen=True)
class TenantDiagnosis:
    """Detailed, read-only view of a tenant database's state.

    existing_tables/missing_tables are filled when the database was reachable.
    """

    store_id: str
    status: DiagnosisStatus
    message: str
    store_status: str | None = None
    existing_tables: list[str] = field(default_factory=list)
    missing_tables: list[str] = field(default_factory=list)

    @property
    def needs_provisioning(self) -> bool:
        return self.status in (
            DiagnosisStatus.EMPTY,
            DiagnosisStatus.PARTIAL,
            DiagnosisStatus.MISSING_STORE_RECORD,
        )
