"""Direct PostgreSQL tenant client (SQLAlchemy async engine over asyncpg).

Used for tenants registered with a raw connection string. Queries are plain
SQL with bound values; table and column names are validated identifiers.
"""

import logging
import re
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from store_tenancy.domain.enums import DatabaseKind
from store_tenancy.infrastructure.tenant.errors import (
    TenantDatabaseError,
    TenantTransportError,
)

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")
_SSL_QUERY_KEYS = ("sslmode", "ssl")


def _identifier(name: str) -> str:
    """Return a double-quoted identifier, rejecting anything but plain names."""
    if not _IDENTIFIER_RE.fullmatch(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


def _columns_sql(columns: str) -> str:
    if columns.strip() == "*":
        return "*"
    return ", ".join(_identifier(c.strip()) for c in columns.split(","))


def to_async_url(connection_string: str) -> tuple[URL, dict[str, Any]]:
    """Convert a libpq-style URL to an asyncpg URL plus connect_args.

    sslmode/ssl query parameters are moved into connect_args since asyncpg
    takes ssl as a keyword.
    """
    url = make_url(connection_string).set(drivername="postgresql+asyncpg")
    connect_args: dict[str, Any] = {}
    query = dict(url.query)
    for key in _SSL_QUERY_KEYS:
        value = query.pop(key, None)
        if isinstance(value, tuple):
            value = value[0]
        if value and value != "disable":
            connect_args["ssl"] = "require" if value in ("require", "true") else value
    return url.set(query=query), connect_args


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def translate_dbapi_error(exc: DBAPIError) -> TenantDatabaseError:
    """Map a SQLAlchemy DBAPIError to a tenant error (transport vs rejected query)."""
    code = _sqlstate(exc)
    message = str(exc.orig) if exc.orig is not None else str(exc)
    if exc.connection_invalidated or (code and code.startswith("08")):
        return TenantTransportError(message, code=code)
    if code is None and isinstance(exc, (OperationalError, InterfaceError)):
        return TenantTransportError(message)
    return TenantDatabaseError(message, code=code)


class PostgresTenantClient:
    """Tenant client backed by a small asyncpg connection pool."""

    kind = DatabaseKind.POSTGRESQL

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_connection_string(
        cls,
        connection_string: str,
        *,
        timeout: float = 10.0,
        pool_size: int = 5,
    ) -> "PostgresTenantClient":
        """Build the client (no I/O; the pool connects on first query)."""
        url, connect_args = to_async_url(connection_string)
        connect_args.setdefault("timeout", timeout)
        connect_args.setdefault("command_timeout", timeout)
        engine = create_async_engine(
            url,
            pool_size=pool_size,
            max_overflow=0,
            pool_pre_ping=True,
            pool_recycle=1800,
            connect_args=connect_args,
        )
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def _fetch(self, sql: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(text(sql), params or {})
                if not result.returns_rows:
                    return []
                return [dict(row) for row in result.mappings().all()]
        except DBAPIError as e:
            raise translate_dbapi_error(e) from e
        except (OSError, TimeoutError) as e:
            reason = e.__class__.__name__
            raise TenantTransportError(f"cannot reach tenant database: {reason}") from e

    async def ping(self) -> None:
        await self._fetch("SELECT 1")

    async def probe(self, table: str) -> list[dict[str, Any]]:
        """Minimal existence query: select id from table limit 1."""
        return await self.select(table, columns="id", limit=1)

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Select rows with equality filters."""
        sql = f"SELECT {_columns_sql(columns)} FROM {_identifier(table)}"
        params: dict[str, Any] = {}
        if filters:
            clauses = []
            for i, (column, value) in enumerate(filters.items()):
                clauses.append(f"{_identifier(column)} = :f{i}")
                params[f"f{i}"] = value
            sql += " WHERE " + " AND ".join(clauses)
        if limit is not None:
            sql += " LIMIT :limit"
            params["limit"] = int(limit)
        return await self._fetch(sql, params)

    async def insert(
        self, table: str, rows: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert rows one statement per row and return them as stored."""
        inserted: list[dict[str, Any]] = []
        for row in rows:
            columns = list(row)
            sql = (
                f"INSERT INTO {_identifier(table)} "
                f"({', '.join(_identifier(c) for c in columns)}) "
                f"VALUES ({', '.join(f':v{i}' for i in range(len(columns)))}) RETURNING *"
            )
            params = {f"v{i}": row[c] for i, c in enumerate(columns)}
            inserted.extend(await self._fetch(sql, params))
        return inserted

    async def update(
        self, table: str, values: dict[str, Any], *, filters: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update rows matching equality filters; filters are mandatory."""
        if not filters:
            raise ValueError("update requires at least one filter")
        params: dict[str, Any] = {}
        sets = []
        for i, (column, value) in enumerate(values.items()):
            sets.append(f"{_identifier(column)} = :s{i}")
            params[f"s{i}"] = value
        wheres = []
        for i, (column, value) in enumerate(filters.items()):
            wheres.append(f"{_identifier(column)} = :w{i}")
            params[f"w{i}"] = value
        sql = (
            f"UPDATE {_identifier(table)} SET {', '.join(sets)} "
            f"WHERE {' AND '.join(wheres)} RETURNING *"
        )
        return await self._fetch(sql, params)

    async def existing_tables(self, candidates: list[str]) -> list[str]:
        """Return which candidate tables exist in the public schema."""
        rows = await self._fetch(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ANY(:names)",
            {"names": list(candidates)},
        )
        present = {r["table_name"] for r in rows}
        return [t for t in candidates if t in present]

    async def aclose(self) -> None:
        await self._engine.dispose()
