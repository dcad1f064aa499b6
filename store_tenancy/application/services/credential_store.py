"""Credential Store: encrypted per-store connection parameters in the master database.

Secrets are encrypted field by field; host, kind and flags stay plaintext
so duplicate detection can query them. This is the only place where
credentials are encrypted or decrypted.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from store_tenancy.application.dtos.store import TenantCredential
from store_tenancy.domain.enums import ConnectionStatus
from store_tenancy.domain.exceptions import (
    CredentialDecryptionException,
    DatabaseAlreadyInUseException,
    StoreNotFoundException,
    ValidationException,
)
from store_tenancy.infrastructure.persistence.models.store_database import StoreDatabase
from store_tenancy.infrastructure.persistence.repositories.store_database_repo import (
    StoreDatabaseRepository,
)
from store_tenancy.infrastructure.security.credential_encryption import FieldEncryptor
from store_tenancy.schemas.connection import (
    PostgresParams,
    SupabaseParams,
    parse_connection_params,
    secret_or_none,
)
from store_tenancy.shared.telemetry.tracing import traced
from store_tenancy.shared.utils.datetime import utc_now

logger = logging.getLogger(__name__)

_ACTIVE_HOST_INDEX = "uq_store_databases_active_host"


class CredentialStore:
    """Durable, encrypted storage of tenant connection parameters.

    Does not touch the Connection Router cache; callers invalidate after
    writes.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        encryptor: FieldEncryptor,
    ) -> None:
        self._session_factory = session_factory
        self._encryptor = encryptor

    def _encrypted_fields(
        self, params: SupabaseParams | PostgresParams
    ) -> dict[str, str | None]:
        if isinstance(params, SupabaseParams):
            return {
                "project_url_encrypted": self._encryptor.encrypt(params.project_url),
                "service_role_key_encrypted": self._encryptor.encrypt(
                    secret_or_none(params.service_role_key)
                ),
                "anon_key_encrypted": self._encryptor.encrypt(
                    secret_or_none(params.anon_key)
                ),
                "connection_string_encrypted": self._encryptor.encrypt(
                    secret_or_none(params.connection_string)
                ),
            }
        return {
            "project_url_encrypted": None,
            "service_role_key_encrypted": None,
            "anon_key_encrypted": None,
            "connection_string_encrypted": self._encryptor.encrypt(
                params.connection_string.get_secret_value()
            ),
        }

    def _decrypt_params(self, row: StoreDatabase) -> SupabaseParams | PostgresParams:
        try:
            data = {
                "kind": row.database_kind,
                "project_url": self._encryptor.decrypt(row.project_url_encrypted),
                "service_role_key": self._encryptor.decrypt(row.service_role_key_encrypted),
                "anon_key": self._encryptor.decrypt(row.anon_key_encrypted),
                "connection_string": self._encryptor.decrypt(
                    row.connection_string_encrypted
                ),
            }
        except ValueError as e:
            logger.error("Credential decryption failed for store %s", row.store_id)
            raise CredentialDecryptionException(row.store_id) from e
        # Postgres rows carry only a connection string.
        if row.database_kind == "postgresql":
            data = {"kind": "postgresql", "connection_string": data["connection_string"]}
        return parse_connection_params({k: v for k, v in data.items() if v is not None})

    def _to_credential(
        self, row: StoreDatabase, params: SupabaseParams | PostgresParams | None = None
    ) -> TenantCredential:
        return TenantCredential(
            store_id=row.store_id,
            params=params if params is not None else self._decrypt_params(row),
            host=row.host,
            is_active=row.is_active,
            connection_status=ConnectionStatus(row.connection_status),
            last_connection_test=row.last_connection_test,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @traced("credential_store.save_credentials")
    async def save_credentials(
        self,
        store_id: str,
        params: SupabaseParams | PostgresParams,
        *,
        allow_pending_host: bool = False,
    ) -> TenantCredential:
        """Encrypt and upsert credentials for a store.

        The duplicate-host check and the write run in one transaction under
        a per-host advisory lock, so two stores cannot register the same
        host concurrently.

        Args:
            store_id: Store the credentials belong to.
            params: Validated connection parameters.
            allow_pending_host: Accept params without a host (OAuth placeholder).

        Returns:
            The stored credential.

        Raises:
            ValidationException: Host-bearing params without a resolvable host.
            DatabaseAlreadyInUseException: Another store holds the host.
            StoreNotFoundException: store_id does not exist.
        """
        host = params.host
        if host is None and not allow_pending_host:
            raise ValidationException(
                "Connection parameters have no resolvable database host",
                field="project_url",
            )
        fields = self._encrypted_fields(params)
        try:
            async with self._session_factory() as session, session.begin():
                repo = StoreDatabaseRepository(session)
                if host is not None:
                    await repo.lock_host(host)
                    if await repo.find_active_by_host(host, store_id) is not None:
                        raise DatabaseAlreadyInUseException(host)
                row = await repo.get_by_store_id(store_id, for_update=True)
                if row is None:
                    row = StoreDatabase(
                        store_id=store_id,
                        database_kind=params.database_kind.value,
                        host=host,
                        is_active=True,
                        connection_status=ConnectionStatus.PENDING.value,
                        **fields,
                    )
                    row = await repo.create(row)
                else:
                    row.database_kind = params.database_kind.value
                    row.host = host
                    row.is_active = True
                    for name, value in fields.items():
                        setattr(row, name, value)
                    await session.flush()
                    await session.refresh(row)
                credential = self._to_credential(row, params)
        except IntegrityError as e:
            detail = str(e.orig)
            if host is not None and _ACTIVE_HOST_INDEX in detail:
                raise DatabaseAlreadyInUseException(host) from e
            if "foreign key" in detail.lower():
                raise StoreNotFoundException(store_id) from e
            raise
        logger.info(
            "Saved credentials: store_id=%s kind=%s host=%s",
            store_id,
            params.database_kind.value,
            host or "<pending>",
        )
        return credential

    async def find_by_store(self, store_id: str) -> TenantCredential | None:
        """Fetch and decrypt credentials; None when the store has none.

        Raises:
            CredentialDecryptionException: Row exists but no configured key can decrypt it.
        """
        async with self._session_factory() as session:
            row = await StoreDatabaseRepository(session).get_by_store_id(store_id)
            if row is None:
                return None
            return self._to_credential(row)

    async def check_host_in_use(self, host: str | None, excluding_store_id: str) -> bool:
        """Return True if another store's active credential uses host.

        A None host (pending placeholder) is never considered in use.
        """
        if not host:
            return False
        async with self._session_factory() as session:
            row = await StoreDatabaseRepository(session).find_active_by_host(
                host.lower(), excluding_store_id
            )
            return row is not None

    async def delete_credentials(self, store_id: str) -> bool:
        """Delete the store's credential row; no error when absent."""
        async with self._session_factory() as session, session.begin():
            return await StoreDatabaseRepository(session).delete_by_store_id(store_id)

    async def mark_connection_tested(self, store_id: str, status: ConnectionStatus) -> None:
        async with self._session_factory() as session, session.begin():
            await StoreDatabaseRepository(session).set_connection_status(
                store_id, status, utc_now()
            )

    async def reencrypt_all(self) -> int:
        """Re-encrypt every credential row under the primary key.

        Run after rotating CREDENTIAL_ENCRYPTION_SECRET (old secret listed in
        CREDENTIAL_ENCRYPTION_PREVIOUS_SECRETS), then invalidate all router
        entries.

        Returns:
            Number of rows rewritten.
        """
        count = 0
        async with self._session_factory() as session, session.begin():
            for row in await StoreDatabaseRepository(session).list_all():
                try:
                    row.project_url_encrypted = self._encryptor.rotate(row.project_url_encrypted)
                    row.service_role_key_encrypted = self._encryptor.rotate(
                        row.service_role_key_encrypted
                    )
                    row.anon_key_encrypted = self._encryptor.rotate(row.anon_key_encrypted)
                    row.connection_string_encrypted = self._encryptor.rotate(
                        row.connection_string_encrypted
                    )
                except ValueError as e:
                    raise CredentialDecryptionException(row.store_id) from e
                count += 1
            await session.flush()
        logger.info("Re-encrypted %d credential rows", count)
        return count
