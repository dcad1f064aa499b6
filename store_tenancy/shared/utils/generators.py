"""ID and slug generators."""

import re

from cuid2 import cuid_wrapper

from store_tenancy.shared.utils.datetime import utc_now

cuid_generator = cuid_wrapper()

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def generate_cuid() -> str:
    """Generate a collision-resistant unique identifier (CUID2).

    Returns:
        A new CUID string.
    """
    result = cuid_generator()
    if not isinstance(result, str):
        raise TypeError(
            f"Expected str from cuid_generator, got {type(result).__name__}"
        )
    return result


def generate_store_slug(name: str) -> str:
    """Build a URL-safe slug from a store name.

    Lowercases, collapses runs of non-alphanumerics into '-' and trims dashes.
    Names with no usable characters fall back to 'store-<unix-ms>'.

    Args:
        name: Display name of the store.

    Returns:
        Slug such as 'acme-outdoor-gear'.
    """
    slug = _NON_SLUG_CHARS.sub("-", (name or "").lower()).strip("-")
    if slug:
        return slug
    return f"store-{int(utc_now().timestamp() * 1000)}"
