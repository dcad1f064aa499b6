"""Migration channels for tenant databases.

ManagementApiExecutor sends SQL through the Supabase Management API using a
delegated token. PostgresSchemaExecutor runs it over a direct asyncpg
connection. Parameterized statements are compiled with literal binds for
the Management API since it accepts only a SQL string.
"""

import logging
from importlib import resources

from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import TextClause

from store_tenancy.application.dtos.provisioning import DelegatedToken
from store_tenancy.application.interfaces.services import ISchemaExecutor
from store_tenancy.core.config import Settings, get_settings
from store_tenancy.domain.exceptions import (
    ReauthorizationRequiredException,
    ValidationException,
)
from store_tenancy.infrastructure.external.supabase.management_api import (
    DelegatedAccessRejectedError,
    SupabaseManagementClient,
)
from store_tenancy.infrastructure.tenant.postgres_client import (
    to_async_url,
    translate_dbapi_error,
)
from store_tenancy.schemas.connection import PostgresParams, SupabaseParams, secret_or_none

logger = logging.getLogger(__name__)

TENANT_SCHEMA_SCRIPT = "001_tenant_schema.sql"


def load_tenant_script(name: str = TENANT_SCHEMA_SCRIPT) -> str:
    """Read a packaged tenant SQL script."""
    return (
        resources.files("store_tenancy.infrastructure.tenant")
        .joinpath("sql", name)
        .read_text(encoding="utf-8")
    )


def render_sql(statement: TextClause) -> str:
    """Compile a statement to PostgreSQL text with bound values inlined."""
    compiled = statement.compile(
        dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}
    )
    return str(compiled)


class ManagementApiExecutor:
    """Runs SQL through POST /projects/{ref}/database/query."""

    def __init__(
        self,
        api: SupabaseManagementClient,
        store_id: str,
        project_ref: str,
        access_token: str,
    ) -> None:
        self._api = api
        self._store_id = store_id
        self.project_ref = project_ref
        self._access_token = access_token

    async def execute_script(self, sql: str) -> None:
        try:
            await self._api.run_query(self.project_ref, sql, self._access_token)
        except DelegatedAccessRejectedError as e:
            raise ReauthorizationRequiredException(self._store_id, "token_rejected") from e

    async def execute(self, statement: TextClause) -> None:
        await self.execute_script(render_sql(statement))

    async def aclose(self) -> None:
        """The Management API client is shared; nothing to release."""


class PostgresSchemaExecutor:
    """Runs SQL over a dedicated single-connection engine."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_connection_string(
        cls, connection_string: str, *, timeout: float
    ) -> "PostgresSchemaExecutor":
        url, connect_args = to_async_url(connection_string)
        connect_args.setdefault("timeout", timeout)
        connect_args.setdefault("command_timeout", timeout)
        return cls(
            create_async_engine(url, pool_size=1, max_overflow=0, connect_args=connect_args)
        )

    async def execute_script(self, sql: str) -> None:
        """Run a multi-statement script in one simple-query round trip (implicitly atomic)."""
        try:
            async with self._engine.connect() as conn:
                raw = await conn.get_raw_connection()
                await raw.driver_connection.execute(sql)
        except DBAPIError as e:
            raise translate_dbapi_error(e) from e

    async def execute(self, statement: TextClause) -> None:
        try:
            async with self._engine.begin() as conn:
                await conn.execute(statement)
        except DBAPIError as e:
            raise translate_dbapi_error(e) from e

    async def aclose(self) -> None:
        await self._engine.dispose()


class SchemaExecutorFactory:
    """Chooses the migration channel: delegated Management API first, then a connection string."""

    def __init__(
        self,
        management_api: SupabaseManagementClient,
        settings: Settings | None = None,
    ) -> None:
        self._api = management_api
        self.settings = settings or get_settings()

    def for_target(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        delegated: DelegatedToken | None,
    ) -> ISchemaExecutor:
        """Return an executor for the target database.

        Raises:
            ValidationException: Neither a delegated token with a project ref
                nor a connection string is available.
        """
        project_ref = (delegated.project_ref if delegated else None) or params.project_ref
        if delegated is not None and project_ref:
            logger.debug("Using Management API channel: store_id=%s", store_id)
            return ManagementApiExecutor(
                self._api, store_id, project_ref, delegated.access_token
            )
        connection_string = secret_or_none(params.connection_string)
        if connection_string:
            logger.debug("Using direct Postgres channel: store_id=%s", store_id)
            return PostgresSchemaExecutor.from_connection_string(
                connection_string,
                timeout=self.settings.provisioning_step_timeout_seconds,
            )
        raise ValidationException(
            "No migration channel: provide a connection string or delegated authorization",
            field="connection_string",
        )
