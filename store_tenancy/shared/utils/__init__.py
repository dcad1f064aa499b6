"""Shared utilities: UTC datetimes and id/slug generators."""

from store_tenancy.shared.utils.datetime import (
    ensure_utc,
    has_passed,
    parse_utc,
    seconds_from_now,
    utc_now,
)
from store_tenancy.shared.utils.generators import generate_cuid, generate_store_slug

__all__ = [
    "generate_cuid",
    "generate_store_slug",
    "utc_now",
    "ensure_utc",
    "parse_utc",
    "seconds_from_now",
    "has_passed",
]
