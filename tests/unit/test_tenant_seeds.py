"""Unit tests for tenant seed statements, SQL rendering and executor channel selection."""

import json
from datetime import timedelta

import pytest

from store_tenancy.application.dtos.provisioning import DelegatedToken, PlatformUser
from store_tenancy.application.services.tenant_seeds import (
    admin_user_statement,
    default_robots_txt,
    default_store_settings,
    seo_settings_statement,
    store_record_statement,
)
from store_tenancy.domain.exceptions import ValidationException
from store_tenancy.infrastructure.external.supabase.management_api import (
    SupabaseManagementClient,
)
from store_tenancy.infrastructure.tenant.schema_executor import (
    ManagementApiExecutor,
    PostgresSchemaExecutor,
    SchemaExecutorFactory,
    load_tenant_script,
    render_sql,
)
from store_tenancy.schemas.connection import PostgresParams, SupabaseParams
from store_tenancy.shared.utils.datetime import utc_now


def test_admin_user_statement_binds_owner_fields() -> None:
    """The owner is inserted as store_owner; values are bound, not formatted."""
    owner = PlatformUser(id="user-1", email="o'neil@example.com", first_name="Pat")
    statement = admin_user_statement(owner)
    assert ":email" in statement.text
    assert "'store_owner'" in statement.text
    assert "ON CONFLICT DO NOTHING" in statement.text


def test_render_sql_escapes_quotes() -> None:
    """Literal rendering for the Management API escapes single quotes."""
    owner = PlatformUser(id="user-1", email="o'neil@example.com")
    sql = render_sql(admin_user_statement(owner))
    assert "'o''neil@example.com'" in sql
    assert ":email" not in sql


def test_store_record_statement_serializes_settings() -> None:
    """Settings are sent as JSON and cast to jsonb."""
    settings = default_store_settings({"colors": {"primary": "#000"}}, "EUR", "Europe/Paris")
    statement = store_record_statement(
        store_id="store-1",
        owner_id="user-1",
        name="Acme",
        slug="acme",
        currency="EUR",
        timezone="Europe/Paris",
        settings=settings,
    )
    assert "CAST(:settings AS jsonb)" in statement.text
    assert "ON CONFLICT (id) DO UPDATE" in statement.text
    bound = json.loads(statement.compile().params["settings"])
    assert bound["theme"] == {"colors": {"primary": "#000"}}
    assert bound["currency"] == "EUR"
    assert bound["default_language"] == "en"
    assert bound["supported_languages"] == ["en"]


def test_default_robots_txt_for_platform_subpath() -> None:
    """Without a custom domain the sitemap lives under /public/<slug>."""
    robots = default_robots_txt("https://shop.example.com/", "acme")
    lines = robots.splitlines()
    assert lines[0] == "User-agent: *"
    assert "Disallow: /admin/" in lines
    assert "Disallow: /checkout" in lines
    assert "Sitemap: https://shop.example.com/public/acme/sitemap.xml" in lines


def test_default_robots_txt_for_custom_domain() -> None:
    """A custom domain gets its own sitemap URL."""
    robots = default_robots_txt("https://shop.example.com", "acme", "www.acme.test/")
    assert "Sitemap: https://www.acme.test/sitemap.xml" in robots.splitlines()


def test_seo_settings_statement_is_idempotent() -> None:
    """Re-running the SEO seed never overwrites owner edits."""
    statement = seo_settings_statement("store-1", "User-agent: *")
    assert "ON CONFLICT (store_id) DO NOTHING" in statement.text


def test_tenant_script_is_packaged() -> None:
    """The schema script ships with the package and creates the required tables."""
    script = load_tenant_script()
    for table in ("stores", "products", "categories", "orders", "customers", "languages"):
        assert table in script


def test_executor_factory_prefers_management_api_with_delegated_token(settings) -> None:
    """A delegated token and a project ref select the Management API channel."""
    factory = SchemaExecutorFactory(SupabaseManagementClient(), settings)
    token = DelegatedToken(
        access_token="a", project_ref="abcd", expires_at=utc_now() + timedelta(hours=1)
    )
    executor = factory.for_target(
        "store-1", SupabaseParams(project_url="https://abcd.supabase.co"), token
    )
    assert isinstance(executor, ManagementApiExecutor)
    assert executor.project_ref == "abcd"


@pytest.mark.asyncio
async def test_executor_factory_falls_back_to_connection_string(settings) -> None:
    """Without delegation a connection string selects a direct Postgres executor."""
    factory = SchemaExecutorFactory(SupabaseManagementClient(), settings)
    executor = factory.for_target(
        "store-1",
        PostgresParams(connection_string="postgresql://u:p@db.example.com:5432/shop"),
        None,
    )
    assert isinstance(executor, PostgresSchemaExecutor)
    await executor.aclose()


def test_executor_factory_without_channel_is_a_validation_error(settings) -> None:
    """No token and no connection string leaves nothing to migrate through."""
    factory = SchemaExecutorFactory(SupabaseManagementClient(), settings)
    with pytest.raises(ValidationException):
        factory.for_target("store-1", SupabaseParams(project_url="https://abcd.supabase.co"), None)
