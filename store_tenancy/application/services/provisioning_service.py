"""Provisioning Pipeline: take a store from pending_database to active.

A run validates the target, claims the store (pending_database ->
provisioning), runs the ordered steps, persists credentials and activates.
Any failure before activation sends the store back to pending_database and
removes only the credential row the run itself created, so a store is never
left half-provisioned. Every step is idempotent; reprovision re-runs them
against a database the health monitor found empty.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from pydantic import SecretStr

from store_tenancy.application.dtos.provisioning import (
    DelegatedToken,
    ProvisioningOptions,
    ProvisioningRun,
    StepResult,
)
from store_tenancy.application.dtos.store import StoreResult, TenantCredential
from store_tenancy.application.interfaces.repositories import ICredentialStore, IStoreRegistry
from store_tenancy.application.interfaces.services import (
    IConnectionInvalidator,
    IManagementApi,
    ISchemaExecutor,
    ISchemaExecutorFactory,
    ITenantClientFactory,
)
from store_tenancy.application.services.tenant_seeds import (
    admin_user_statement,
    default_robots_txt,
    default_store_settings,
    seo_settings_statement,
    store_record_statement,
)
from store_tenancy.core.config import Settings, get_settings
from store_tenancy.core.constants import CREDENTIAL_PROBE_TABLE
from store_tenancy.domain.enums import ProvisioningOperation, StoreStatus
from store_tenancy.domain.exceptions import (
    AlreadyConnectedException,
    ConnectionFailedException,
    DatabaseAlreadyInUseException,
    InvalidCredentialsException,
    ProvisioningFailedException,
    StoreNotFoundException,
    StoreTenancyException,
    ValidationException,
)
from store_tenancy.infrastructure.tenant.errors import (
    TenantDatabaseError,
    TenantTransportError,
    is_auth_error,
    is_table_missing,
)
from store_tenancy.infrastructure.tenant.schema_executor import load_tenant_script
from store_tenancy.schemas.connection import (
    PostgresParams,
    SupabaseParams,
    project_url_for_ref,
    secret_or_none,
)
from store_tenancy.shared.telemetry.tracing import add_span_event, set_span_error, traced
from store_tenancy.shared.utils.datetime import utc_now

if TYPE_CHECKING:
    from store_tenancy.application.services.delegated_authorization import (
        DelegatedAuthorization,
    )

logger = logging.getLogger(__name__)

MISSING_SERVICE_KEY_WARNING = "missing_service_key"


@dataclass
class _RunContext:
    """Mutable state shared by the steps of one run."""

    store: StoreResult
    options: ProvisioningOptions
    params: SupabaseParams | PostgresParams
    executor: ISchemaExecutor
    delegated: DelegatedToken | None = None
    project_ref: str | None = None

    @property
    def store_id(self) -> str:
        return self.store.id


@dataclass(frozen=True)
class ProvisioningStep:
    """One named step. Required steps abort the run; best-effort ones only warn."""

    name: str
    action: Callable[[_RunContext], Awaitable[dict[str, Any] | None]]
    required: bool = True


@dataclass
class _Claim:
    """What a run changed in the master database (for rollback)."""

    status_moved: bool = False
    credentials_created: bool = False


class ProvisioningPipeline:
    """Connects, provisions and reprovisions tenant databases.

    Args:
        registry: Store lifecycle state (compare-and-set transitions).
        credential_store: Encrypted credential rows.
        router: Connection cache to invalidate after credential writes.
        client_factory: Builds clients for the validation probe.
        executor_factory: Chooses the migration channel.
        authorization: Resolves and refreshes delegated tokens.
        management_api: Key discovery; None disables discover_service_key.
        settings: Timeouts and platform URLs.
    """

    def __init__(
        self,
        registry: IStoreRegistry,
        credential_store: ICredentialStore,
        router: IConnectionInvalidator,
        client_factory: ITenantClientFactory,
        executor_factory: ISchemaExecutorFactory,
        authorization: DelegatedAuthorization,
        management_api: IManagementApi | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.registry = registry
        self.credential_store = credential_store
        self.router = router
        self.client_factory = client_factory
        self.executor_factory = executor_factory
        self.authorization = authorization
        self.management_api = management_api
        self.settings = settings or get_settings()
        self.steps: tuple[ProvisioningStep, ...] = (
            ProvisioningStep("create_schema", self._create_schema),
            ProvisioningStep("seed_admin_user", self._seed_admin_user),
            ProvisioningStep("seed_store_record", self._seed_store_record),
            ProvisioningStep("seed_seo_settings", self._seed_seo_settings, required=False),
            ProvisioningStep(
                "discover_service_key", self._discover_service_key, required=False
            ),
        )

    # --- public operations -------------------------------------------------

    @traced("provisioning.connect_database")
    async def connect_database(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        options: ProvisioningOptions,
    ) -> ProvisioningRun:
        """Connect a tenant database to a pending store and provision it.

        Returns:
            The completed run (succeeded, steps, warnings).

        Raises:
            StoreNotFoundException: Unknown store.
            AlreadyConnectedException: Store is not pending_database, or another
                run claimed it first.
            ValidationException: No resolvable host or no migration channel.
            ReauthorizationRequiredException: Delegated token expired and not refreshable.
            InvalidCredentialsException: Target rejected the key or password.
            ConnectionFailedException: Target unreachable.
            DatabaseAlreadyInUseException: Another store holds the host.
            ProvisioningFailedException: A required step failed. The store is
                back in pending_database and details name the failed step.
        """
        run = ProvisioningRun(store_id=store_id, operation=ProvisioningOperation.CONNECT)
        await self._recover_if_stale(store_id)
        store = await self._require_store(store_id)
        if store.status != StoreStatus.PENDING_DATABASE:
            raise AlreadyConnectedException(store_id, store.status.value)

        claim = _Claim()
        executor: ISchemaExecutor | None = None
        stage = "validate"
        try:
            if params.host is None:
                raise ValidationException(
                    "Connection parameters have no resolvable database host",
                    field="project_url",
                )
            delegated = await self._delegated_for_connect(store_id, params, options)
            await self._validate_target(store_id, params)

            stage = "check_host"
            if await self.credential_store.check_host_in_use(params.host, store_id):
                raise DatabaseAlreadyInUseException(params.host)

            stage = "select_channel"
            executor = self.executor_factory.for_target(store_id, params, delegated)

            stage = "claim_store"
            await self._claim(store_id, claim)

            context = _RunContext(
                store=store,
                options=options,
                params=params,
                executor=executor,
                delegated=delegated,
                project_ref=(delegated.project_ref if delegated else None) or params.project_ref,
            )
            stage = "run_steps"
            await self._run_steps(run, context)

            stage = "save_credentials"
            await self._persist_credentials(store_id, context.params, None, claim)

            stage = "activate"
            await self._activate(store_id, claim)
            self._finish(run, context.params)
        except StoreTenancyException as e:
            self._annotate_failure(run, stage, e)
            raise
        except Exception as e:
            raise self._wrap_failure(run, stage, e) from e
        finally:
            if not run.succeeded:
                await asyncio.shield(self._roll_back(store_id, claim))
            if executor is not None:
                await executor.aclose()

        return run

    @traced("provisioning.reprovision")
    async def reprovision(self, store_id: str, options: ProvisioningOptions) -> ProvisioningRun:
        """Re-run the provisioning steps for a store whose tenant database is empty or broken.

        The delegated token is resolved before anything else; when it is
        expired and cannot be refreshed nothing is attempted. Credentials the
        health monitor removed are re-created from the project ref.

        Raises:
            StoreNotFoundException: Unknown store.
            ReauthorizationRequiredException: No usable delegated token.
            AlreadyConnectedException: Another run is provisioning the store.
            ValidationException: Store suspended, or no project ref to rebuild credentials.
            ProvisioningFailedException: A required step failed.
        """
        run = ProvisioningRun(store_id=store_id, operation=ProvisioningOperation.REPROVISION)
        await self._recover_if_stale(store_id)
        store = await self._require_store(store_id)
        if store.status == StoreStatus.SUSPENDED:
            raise ValidationException("Suspended stores cannot be reprovisioned", field="status")
        if store.status == StoreStatus.PROVISIONING:
            raise AlreadyConnectedException(store_id, store.status.value)

        delegated = await self.authorization.resolve(store_id, options.delegated)
        credential = await self.credential_store.find_by_store(store_id)
        params = self._params_for_reprovision(store_id, credential, delegated)

        claim = _Claim()
        executor: ISchemaExecutor | None = None
        stage = "select_channel"
        try:
            executor = self.executor_factory.for_target(store_id, params, delegated)
            if store.status == StoreStatus.PENDING_DATABASE:
                stage = "claim_store"
                await self._claim(store_id, claim)

            context = _RunContext(
                store=store,
                options=options,
                params=params,
                executor=executor,
                delegated=delegated,
                project_ref=delegated.project_ref or params.project_ref,
            )
            stage = "run_steps"
            await self._run_steps(run, context)

            stage = "save_credentials"
            await self._persist_credentials(store_id, context.params, credential, claim)

            if claim.status_moved:
                stage = "activate"
                await self._activate(store_id, claim)
            else:
                self.router.invalidate(store_id)
            self._finish(run, context.params)
        except StoreTenancyException as e:
            self._annotate_failure(run, stage, e)
            raise
        except Exception as e:
            raise self._wrap_failure(run, stage, e) from e
        finally:
            if not run.succeeded:
                await asyncio.shield(self._roll_back(store_id, claim))
            if executor is not None:
                await executor.aclose()

        return run

    @traced("provisioning.rotate_credentials")
    async def rotate_credentials(
        self, store_id: str, params: SupabaseParams | PostgresParams
    ) -> TenantCredential:
        """Replace the credentials of an active store after probing the new ones.

        Raises:
            StoreNotFoundException: Unknown store.
            ValidationException: Store not active, or params without a host.
            InvalidCredentialsException: Target rejected the new credentials.
            ConnectionFailedException: Target unreachable.
            DatabaseAlreadyInUseException: Another store holds the host.
        """
        store = await self._require_store(store_id)
        if store.status != StoreStatus.ACTIVE:
            raise ValidationException(
                "Credentials can only be rotated for active stores", field="status"
            )
        if params.host is None:
            raise ValidationException(
                "Connection parameters have no resolvable database host",
                field="project_url",
            )
        await self._validate_target(store_id, params)
        credential = await self.credential_store.save_credentials(store_id, params)
        self.router.invalidate(store_id)
        logger.info("Rotated credentials for store %s (host=%s)", store_id, params.host)
        return credential

    # --- run plumbing ------------------------------------------------------

    async def _require_store(self, store_id: str) -> StoreResult:
        store = await self.registry.get_store(store_id)
        if store is None:
            raise StoreNotFoundException(store_id)
        return store

    async def _recover_if_stale(self, store_id: str) -> None:
        older_than = utc_now() - timedelta(
            seconds=self.settings.provisioning_stale_after_seconds
        )
        await self.registry.recover_stale_provisioning(store_id, older_than)

    async def _claim(self, store_id: str, claim: _Claim) -> None:
        if not await self.registry.transition(
            store_id, (StoreStatus.PENDING_DATABASE,), StoreStatus.PROVISIONING
        ):
            current = await self.registry.get_store(store_id)
            raise AlreadyConnectedException(
                store_id, current.status.value if current else "unknown"
            )
        claim.status_moved = True

    async def _activate(self, store_id: str, claim: _Claim) -> None:
        if not await self.registry.transition(
            store_id, (StoreStatus.PROVISIONING,), StoreStatus.ACTIVE
        ):
            raise ProvisioningFailedException(
                store_id, "activate", "store status changed while provisioning"
            )
        # Active now; rollback must not touch status or credentials any more.
        claim.status_moved = False
        claim.credentials_created = False
        self.router.invalidate(store_id)

    async def _persist_credentials(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        existing: TenantCredential | None,
        claim: _Claim,
    ) -> None:
        if existing is not None and existing.params == params:
            return
        await self.credential_store.save_credentials(store_id, params)
        if existing is None:
            claim.credentials_created = True

    async def _roll_back(self, store_id: str, claim: _Claim) -> None:
        """Undo what this run changed. Errors are logged; the original failure propagates."""
        if claim.credentials_created:
            try:
                await self.credential_store.delete_credentials(store_id)
            except Exception:
                logger.exception("Rollback: could not delete credentials for store %s", store_id)
        if claim.status_moved:
            try:
                await self.registry.transition(
                    store_id, (StoreStatus.PROVISIONING,), StoreStatus.PENDING_DATABASE
                )
            except Exception:
                logger.exception("Rollback: could not revert status of store %s", store_id)
            else:
                logger.warning("Store %s reverted to pending_database", store_id)
        self.router.invalidate(store_id)

    def _annotate_failure(
        self, run: ProvisioningRun, stage: str, exc: StoreTenancyException
    ) -> None:
        failed_step = run.failed_step or stage
        if run.failed_step is None:
            run.fail(failed_step, exc.message)
        run.finished_at = run.finished_at or utc_now()
        exc.details.setdefault("failed_step", failed_step)
        exc.details["steps"] = run.summary()
        set_span_error(exc)
        logger.warning(
            "Provisioning %s failed for store %s at %s: %s",
            run.operation.value,
            run.store_id,
            failed_step,
            exc.error_code,
        )

    def _wrap_failure(
        self, run: ProvisioningRun, stage: str, exc: Exception
    ) -> ProvisioningFailedException:
        failed_step = run.failed_step or stage
        reason = "timed out" if isinstance(exc, TimeoutError) else str(exc) or type(exc).__name__
        error = ProvisioningFailedException(run.store_id, failed_step, reason)
        self._annotate_failure(run, stage, error)
        return error

    def _finish(self, run: ProvisioningRun, params: SupabaseParams | PostgresParams) -> None:
        if isinstance(params, SupabaseParams) and not params.has_service_key:
            run.warnings.append(MISSING_SERVICE_KEY_WARNING)
        run.complete()
        logger.info(
            "Provisioning %s succeeded for store %s (%d steps, %d warnings)",
            run.operation.value,
            run.store_id,
            len(run.steps),
            len(run.warnings),
        )

    async def _run_steps(self, run: ProvisioningRun, context: _RunContext) -> None:
        """Run every step in order; a failing required step re-raises its error."""
        timeout = self.settings.provisioning_step_timeout_seconds
        for step in self.steps:
            started = time.perf_counter()
            try:
                detail = await asyncio.wait_for(step.action(context), timeout)
            except Exception as e:
                error = f"timed out after {timeout:g}s" if isinstance(e, TimeoutError) else str(e)
                result = StepResult(
                    name=step.name,
                    required=step.required,
                    succeeded=False,
                    error=error or type(e).__name__,
                    duration_ms=(time.perf_counter() - started) * 1000,
                )
                run.record(result)
                add_span_event(
                    f"provisioning.step.{step.name}",
                    {"succeeded": False, "required": step.required},
                )
                if step.required:
                    raise
                logger.warning(
                    "Best-effort step %s failed for store %s: %s",
                    step.name,
                    context.store_id,
                    result.error,
                )
                continue
            run.record(
                StepResult(
                    name=step.name,
                    required=step.required,
                    succeeded=True,
                    duration_ms=(time.perf_counter() - started) * 1000,
                    detail=detail or {},
                )
            )
            add_span_event(
                f"provisioning.step.{step.name}", {"succeeded": True, "required": step.required}
            )
            logger.debug("Step %s done for store %s", step.name, context.store_id)

    # --- validation --------------------------------------------------------

    async def _delegated_for_connect(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        options: ProvisioningOptions,
    ) -> DelegatedToken | None:
        """A usable delegated token, or None when a connection string makes it unnecessary."""
        if options.delegated is None and secret_or_none(params.connection_string):
            return None
        return await self.authorization.resolve(store_id, options.delegated)

    async def _validate_target(
        self, store_id: str, params: SupabaseParams | PostgresParams
    ) -> None:
        """Probe the target with the supplied credentials.

        With a service key, select from a table that does not exist: a
        missing-table answer (not a bare 404) proves the key was accepted. With only a
        connection string, a ping. Without either there is nothing to probe
        yet (the key is discovered after migration).
        """
        if not params.has_service_key and not secret_or_none(params.connection_string):
            return
        try:
            client = self.client_factory.build(params)
        except ValueError as e:
            raise ValidationException(str(e), field="connection_string") from e
        timeout = self.settings.tenant_probe_timeout_seconds
        try:
            if params.has_service_key:
                await asyncio.wait_for(client.probe(CREDENTIAL_PROBE_TABLE), timeout)
            else:
                await asyncio.wait_for(client.ping(), timeout)
        except TimeoutError as e:
            raise ConnectionFailedException(store_id, "timed out validating credentials") from e
        except TenantTransportError as e:
            raise ConnectionFailedException(store_id, e.message) from e
        except TenantDatabaseError as e:
            if is_auth_error(e):
                raise InvalidCredentialsException() from e
            if not is_table_missing(e):
                raise ConnectionFailedException(store_id, e.message) from e
        finally:
            await client.aclose()
        logger.debug("Validated credentials for store %s (host=%s)", store_id, params.host)

    def _params_for_reprovision(
        self,
        store_id: str,
        credential: TenantCredential | None,
        delegated: DelegatedToken,
    ) -> SupabaseParams | PostgresParams:
        if credential is not None:
            return credential.params
        if not delegated.project_ref:
            raise ValidationException(
                "No stored credentials and no project ref to rebuild them from",
                field="project_ref",
            )
        logger.info("Rebuilding credentials for store %s from project ref", store_id)
        return SupabaseParams(project_url=project_url_for_ref(delegated.project_ref))

    # --- steps -------------------------------------------------------------

    async def _create_schema(self, context: _RunContext) -> dict[str, Any]:
        await context.executor.execute_script(load_tenant_script())
        return {"script": "001_tenant_schema.sql"}

    async def _seed_admin_user(self, context: _RunContext) -> dict[str, Any]:
        await context.executor.execute(admin_user_statement(context.options.owner))
        return {"user_id": context.options.owner.id}

    async def _seed_store_record(self, context: _RunContext) -> dict[str, Any]:
        options = context.options
        preset = options.theme_preset or context.store.theme_preset
        theme = await self.registry.get_theme_settings(preset)
        settings = default_store_settings(theme, options.currency, options.timezone)
        await context.executor.execute(
            store_record_statement(
                store_id=context.store_id,
                owner_id=options.owner.id,
                name=options.store_name or context.store.name,
                slug=options.store_slug or context.store.slug,
                currency=options.currency,
                timezone=options.timezone,
                settings=settings,
            )
        )
        return {"theme_applied": bool(theme)}

    async def _seed_seo_settings(self, context: _RunContext) -> dict[str, Any]:
        robots = default_robots_txt(
            self.settings.platform_base_url,
            context.options.store_slug or context.store.slug,
            context.options.custom_domain,
        )
        await context.executor.execute(seo_settings_statement(context.store_id, robots))
        return {}

    async def _discover_service_key(self, context: _RunContext) -> dict[str, Any]:
        """Fetch the project's API keys through the Management API when no service key was given."""
        params = context.params
        if not isinstance(params, SupabaseParams) or params.has_service_key:
            return {"skipped": True}
        if self.management_api is None or context.delegated is None or not context.project_ref:
            raise ValueError("no delegated access to discover the service key")
        keys = await self.management_api.fetch_api_keys(
            context.project_ref, context.delegated.access_token
        )
        service_key = keys.get("service_role")
        if not service_key:
            raise ValueError("service_role key not found for project")
        update: dict[str, Any] = {"service_role_key": SecretStr(service_key)}
        if params.anon_key is None and keys.get("anon"):
            update["anon_key"] = SecretStr(keys["anon"])
        context.params = params.model_copy(update=update)
        return {"project_ref": context.project_ref}
