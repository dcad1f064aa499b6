"""Tenant database connection parameters.

A tagged variant keyed by database kind. Each kind has a fixed set of named
fields, validated once at the Credential Store boundary so callers never pass
loosely-typed credential payloads around.
"""

from typing import Annotated, Literal
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, SecretStr, TypeAdapter, field_validator
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from store_tenancy.domain.enums import DatabaseKind

_SUPABASE_HOST_SUFFIX = ".supabase.co"


def secret_or_none(value: SecretStr | None) -> str | None:
    """Return the plain value of a SecretStr, treating empty strings as None."""
    if value is None:
        return None
    plain = value.get_secret_value()
    return plain or None


def host_from_connection_string(connection_string: str | None) -> str | None:
    """Return the hostname of a database URL, or None when it cannot be parsed."""
    if not connection_string:
        return None
    try:
        url = make_url(connection_string)
    except ArgumentError:
        return None
    return url.host.lower() if url.host else None


def project_url_for_ref(project_ref: str) -> str:
    """Public URL of a Supabase project (https://<ref>.supabase.co)."""
    return f"https://{project_ref}{_SUPABASE_HOST_SUFFIX}"


class SupabaseParams(BaseModel):
    """Supabase project credentials.

    project_url may be None only for a pending placeholder (OAuth handshake
    started, project not created yet); such rows carry no host.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["supabase"] = "supabase"
    project_url: str | None = None
    service_role_key: SecretStr | None = None
    anon_key: SecretStr | None = None
    connection_string: SecretStr | None = None

    @field_validator("project_url", mode="before")
    @classmethod
    def normalize_project_url(cls, v: str | None) -> str | None:
        """Strip whitespace and trailing slash; require an http(s) URL with a host."""
        if v is None:
            return None
        value = str(v).strip().rstrip("/")
        if not value:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ValueError("project_url must be an http(s) URL, e.g. https://abc.supabase.co")
        return value

    @property
    def database_kind(self) -> DatabaseKind:
        return DatabaseKind.SUPABASE

    @property
    def host(self) -> str | None:
        """Physical host used for duplicate detection (project URL, else connection string)."""
        if self.project_url:
            hostname = urlparse(self.project_url).hostname
            return hostname.lower() if hostname else None
        return host_from_connection_string(secret_or_none(self.connection_string))

    @property
    def project_ref(self) -> str | None:
        """Supabase project reference (subdomain of <ref>.supabase.co), if derivable."""
        host = self.host
        if host and host.endswith(_SUPABASE_HOST_SUFFIX):
            return host[: -len(_SUPABASE_HOST_SUFFIX)]
        return None

    @property
    def has_service_key(self) -> bool:
        return secret_or_none(self.service_role_key) is not None


class PostgresParams(BaseModel):
    """Plain PostgreSQL credentials: a single connection string."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: Literal["postgresql"] = "postgresql"
    connection_string: SecretStr

    @field_validator("connection_string")
    @classmethod
    def validate_connection_string(cls, v: SecretStr) -> SecretStr:
        """Require a parseable postgres URL."""
        raw = v.get_secret_value().strip()
        try:
            url = make_url(raw)
        except ArgumentError as e:
            raise ValueError("connection_string is not a valid database URL") from e
        if not url.drivername.startswith("postgres"):
            raise ValueError("connection_string must be a postgresql:// URL")
        return SecretStr(raw)

    @property
    def database_kind(self) -> DatabaseKind:
        return DatabaseKind.POSTGRESQL

    @property
    def host(self) -> str | None:
        return host_from_connection_string(self.connection_string.get_secret_value())

    @property
    def project_ref(self) -> str | None:
        return None

    @property
    def has_service_key(self) -> bool:
        return False


ConnectionParams = Annotated[SupabaseParams | PostgresParams, Field(discriminator="kind")]

connection_params_adapter: TypeAdapter[SupabaseParams | PostgresParams] = TypeAdapter(
    ConnectionParams
)


def parse_connection_params(data: dict) -> SupabaseParams | PostgresParams:
    """Validate a raw dict (e.g. request body) into the matching params variant.

    Raises:
        pydantic.ValidationError: If kind is unknown or fields are invalid.
    """
    return connection_params_adapter.validate_python(data)
