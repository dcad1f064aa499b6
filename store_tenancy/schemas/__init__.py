"""Pydantic schemas validated at subsystem boundaries."""

from store_tenancy.schemas.connection import (
    ConnectionParams,
    PostgresParams,
    SupabaseParams,
    parse_connection_params,
    project_url_for_ref,
)

__all__ = [
    "ConnectionParams",
    "PostgresParams",
    "SupabaseParams",
    "parse_connection_params",
    "project_url_for_ref",
]
