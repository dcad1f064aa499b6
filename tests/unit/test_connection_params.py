"""Unit tests for connection parameter variants (host derivation, discriminator)."""

import pytest
from pydantic import ValidationError

from store_tenancy.domain.enums import DatabaseKind
from store_tenancy.schemas.connection import (
    PostgresParams,
    SupabaseParams,
    host_from_connection_string,
    parse_connection_params,
    project_url_for_ref,
)


def test_supabase_host_from_project_url() -> None:
    """Host comes from the project URL, lowercased, trailing slash ignored."""
    params = SupabaseParams(project_url=" https://AbCd.supabase.co/ ")
    assert params.project_url == "https://AbCd.supabase.co"
    assert params.host == "abcd.supabase.co"
    assert params.project_ref == "abcd"
    assert params.database_kind == DatabaseKind.SUPABASE


def test_supabase_host_falls_back_to_connection_string() -> None:
    """Without a project URL the connection string host is used."""
    params = SupabaseParams(
        connection_string="postgresql://postgres:pw@db.abcd.supabase.co:5432/postgres"
    )
    assert params.host == "db.abcd.supabase.co"
    assert params.project_ref is None


def test_supabase_placeholder_has_no_host() -> None:
    """A pending placeholder carries no host and no service key."""
    params = SupabaseParams()
    assert params.host is None
    assert params.has_service_key is False


def test_empty_service_key_is_not_a_key() -> None:
    """An empty string is treated as a missing key."""
    url = "https://x.supabase.co"
    assert SupabaseParams(project_url=url, service_role_key="").has_service_key is False
    assert SupabaseParams(project_url=url, service_role_key="k").has_service_key is True


def test_supabase_rejects_non_http_project_url() -> None:
    """project_url must be an http(s) URL with a host."""
    with pytest.raises(ValidationError):
        SupabaseParams(project_url="abcd.supabase.co")


def test_postgres_host_and_kind() -> None:
    """Plain Postgres params expose the connection string host."""
    params = PostgresParams(connection_string="postgresql://u:p@DB.Example.com:5432/shop")
    assert params.host == "db.example.com"
    assert params.project_ref is None
    assert params.has_service_key is False
    assert params.database_kind == DatabaseKind.POSTGRESQL


def test_postgres_rejects_other_drivers() -> None:
    """Only postgres URLs are accepted."""
    with pytest.raises(ValidationError):
        PostgresParams(connection_string="mysql://u:p@db.example.com/shop")


def test_secrets_are_masked_in_repr() -> None:
    """Secrets never appear in repr (and therefore in logs)."""
    params = SupabaseParams(project_url="https://x.supabase.co", service_role_key="super-secret")
    assert "super-secret" not in repr(params)
    assert "super-secret" not in str(params)


def test_parse_connection_params_uses_kind_discriminator() -> None:
    """The kind field selects the variant."""
    supabase = parse_connection_params(
        {"kind": "supabase", "project_url": "https://abcd.supabase.co", "service_role_key": "k"}
    )
    postgres = parse_connection_params(
        {"kind": "postgresql", "connection_string": "postgresql://u:p@h:5432/d"}
    )
    assert isinstance(supabase, SupabaseParams)
    assert isinstance(postgres, PostgresParams)


def test_parse_connection_params_rejects_unknown_kind_and_fields() -> None:
    """Unknown kinds and stray fields fail validation."""
    with pytest.raises(ValidationError):
        parse_connection_params({"kind": "mysql", "connection_string": "x"})
    with pytest.raises(ValidationError):
        parse_connection_params(
            {"kind": "postgresql", "connection_string": "postgresql://u:p@h/d", "extra": 1}
        )


def test_host_from_connection_string_handles_garbage() -> None:
    """Unparseable or empty strings give None."""
    assert host_from_connection_string(None) is None
    assert host_from_connection_string("") is None
    assert host_from_connection_string("not a url") is None


def test_project_url_for_ref() -> None:
    """Project refs map to their public Supabase URL."""
    assert project_url_for_ref("abcd") == "https://abcd.supabase.co"
