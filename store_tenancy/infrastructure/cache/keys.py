"""Cache key builders. Single place for key format.

Key components (store_id) must not contain CACHE_KEY_SEP to avoid
ambiguous or colliding keys.
"""

from store_tenancy.core.constants import CACHE_KEY_SEP, CACHE_PREFIX_OAUTH


def _validate_key_component(value: str, name: str) -> None:
    """Raise ValueError if value is empty or contains the cache key separator."""
    if not value:
        raise ValueError(f"Cache key component {name!r} must not be empty")
    if CACHE_KEY_SEP in value:
        raise ValueError(
            f"Cache key component {name!r} must not contain separator {CACHE_KEY_SEP!r}"
        )


def pending_oauth_key(store_id: str) -> str:
    """Key for the delegated OAuth token of a store (oauth:pending:<store_id>)."""
    _validate_key_component(store_id, "store_id")
    return f"{CACHE_PREFIX_OAUTH}{CACHE_KEY_SEP}pending{CACHE_KEY_SEP}{store_id}"
