"""Seed statements for a freshly migrated tenant database.

All statements are idempotent (ON CONFLICT) so reprovisioning can re-run
them against a database that was partially seeded.
"""

import json
from typing import Any

from sqlalchemy import String, bindparam, text
from sqlalchemy.sql.elements import TextClause

from store_tenancy.application.dtos.provisioning import PlatformUser
from store_tenancy.core.constants import DEFAULT_LANGUAGE_CODE

_ADMIN_USER_SQL = """
INSERT INTO users (id, email, password, first_name, last_name, role, account_type,
                   is_active, email_verified)
VALUES (:id, :email, :password, :first_name, :last_name, 'store_owner', 'individual',
        TRUE, TRUE)
ON CONFLICT DO NOTHING
"""

# The theme is only filled in when the existing row has none.
_STORE_RECORD_SQL = """
INSERT INTO stores (id, user_id, name, slug, currency, timezone, is_active, settings)
VALUES (:id, :user_id, :name, :slug, :currency, :timezone, TRUE, CAST(:settings AS jsonb))
ON CONFLICT (id) DO UPDATE SET
    settings = CASE
        WHEN stores.settings -> 'theme' IS NULL
        THEN stores.settings || jsonb_build_object('theme', EXCLUDED.settings -> 'theme')
        ELSE stores.settings
    END,
    updated_at = NOW()
"""

_SEO_SETTINGS_SQL = """
INSERT INTO seo_settings (store_id, robots_txt_content)
VALUES (:store_id, :robots)
ON CONFLICT (store_id) DO NOTHING
"""


def _statement(sql: str, values: dict[str, Any]) -> TextClause:
    # String-typed binds render as quoted literals for the Management API channel.
    return text(sql).bindparams(
        *(bindparam(name, value, type_=String) for name, value in values.items())
    )


def admin_user_statement(owner: PlatformUser) -> TextClause:
    """Insert the platform user as the tenant's store owner."""
    values = {
        "id": owner.id,
        "email": owner.email,
        "password": owner.password_hash,
        "first_name": owner.first_name,
        "last_name": owner.last_name,
    }
    return _statement(_ADMIN_USER_SQL, values)


def default_store_settings(
    theme: dict[str, Any], currency: str, timezone: str
) -> dict[str, Any]:
    return {
        "theme": theme,
        "currency": currency,
        "timezone": timezone,
        "default_language": DEFAULT_LANGUAGE_CODE,
        "supported_languages": [DEFAULT_LANGUAGE_CODE],
    }


def store_record_statement(
    *,
    store_id: str,
    owner_id: str,
    name: str,
    slug: str,
    currency: str,
    timezone: str,
    settings: dict[str, Any],
) -> TextClause:
    """Upsert the tenant-side stores row that mirrors the master record."""
    values = {
        "id": store_id,
        "user_id": owner_id,
        "name": name,
        "slug": slug,
        "currency": currency,
        "timezone": timezone,
        "settings": json.dumps(settings),
    }
    return _statement(_STORE_RECORD_SQL, values)


def default_robots_txt(
    platform_base_url: str, slug: str, custom_domain: str | None = None
) -> str:
    """robots.txt for a new store: storefront open, admin and checkout paths closed."""
    if custom_domain:
        base = f"https://{custom_domain.strip().rstrip('/')}"
    else:
        base = f"{platform_base_url.rstrip('/')}/public/{slug}"
    return "\n".join(
        [
            "User-agent: *",
            "Allow: /",
            "Disallow: /admin/",
            "Disallow: /api/",
            "Disallow: /cart",
            "Disallow: /checkout",
            "",
            f"Sitemap: {base}/sitemap.xml",
            "",
        ]
    )


def seo_settings_statement(store_id: str, robots_txt: str) -> TextClause:
    values = {"store_id": store_id, "robots": robots_txt}
    return _statement(_SEO_SETTINGS_SQL, values)
