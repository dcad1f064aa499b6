"""Core constants: cache key prefixes, probe tables and error classification codes."""

# Cache key prefixes
CACHE_PREFIX_OAUTH = "oauth"
CACHE_KEY_SEP = ":"

# Tenant table used for liveness probes and the table every tenant must have.
HEALTH_PROBE_TABLE = "stores"
# Absent table: a missing-table answer proves the key was accepted.
CREDENTIAL_PROBE_TABLE = "_connection_probe_"

REQUIRED_TENANT_TABLES = (
    "stores",
    "products",
    "categories",
    "orders",
    "customers",
    "languages",
)

# PostgREST / Postgres error codes meaning "table or schema is missing".
TABLE_MISSING_CODES = frozenset({"PGRST204", "PGRST205", "42P01", "3F000"})
TABLE_MISSING_MESSAGES = ("does not exist", "schema cache")

# Auth-shaped rejections from PostgREST (JWT) and Postgres (SQLSTATE class 28).
AUTH_ERROR_CODES = frozenset({"PGRST301", "PGRST302", "28P01", "28000"})
AUTH_ERROR_MESSAGES = ("invalid api key", "invalid jwt", "jwt")

DEFAULT_CURRENCY = "USD"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LANGUAGE_CODE = "en"
