"""
User Secret Service: create, list, update and delete encrypted user secrets.

Data flow on write::

    variant → validate → codec.encode → gateway.encrypt(org) → store

and the reverse on read. Callers only ever see ``UserSecret`` values with
the decrypted variant attached; ciphertext never leaves this module.

Collaborators are injected: a ``UserSecretStore`` and a
``KeyManagementService``. There are no module-level service instances.

Security Note:
    Never log plaintext or ciphertext values. Only log secret ids, types,
    organization and user ids.
"""
import asyncio
import logging
from typing import Any, Optional

from . import codec
from .dal import UserSecretStore
from .exceptions import (
    DecodeError,
    DecryptError,
    NotFoundError,
    UnsupportedTypeError,
    ValidationError,
)
from .gateway import EncryptionGateway
from .models import StoredUserSecret, UserSecret, UserSecretList, UserSecretPatch
from .types import SecretVariant, validate
from .vault.kms import KeyManagementService

logger = logging.getLogger("user_secrets.service")

_DEFAULT_DECRYPT_CONCURRENCY = 10

# Per-row failures that make one stored secret unreadable.
_UNREADABLE = (DecryptError, DecodeError, UnsupportedTypeError)


def _clean_name(name: Any) -> str:
    """Trim a secret name; it must stay non-empty."""
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(
            "Name is required", [{"field": "name", "message": "Name is required"}],
        )
    return name.strip()


class UserSecretService:
    """Encrypted CRUD over user secrets, scoped to organization data keys.

    Args:
        store: Persistence collaborator (see ``UserSecretStore``).
        kms: Key-management collaborator handing out per-org cipher pairs.
        decrypt_concurrency: Max payloads decrypted at once by ``list``.
    """

    def __init__(
        self,
        store: UserSecretStore,
        kms: KeyManagementService,
        decrypt_concurrency: int = _DEFAULT_DECRYPT_CONCURRENCY,
    ):
        if decrypt_concurrency < 1:
            raise ValueError("decrypt_concurrency must be at least 1")
        self._store = store
        self._gateway = EncryptionGateway(kms)
        self._decrypt_concurrency = decrypt_concurrency

    # ------------------------------------------------------------------
    # Envelope helpers
    # ------------------------------------------------------------------

    async def _seal(self, org_id: str, variant: SecretVariant) -> bytes:
        return await self._gateway.encrypt(org_id, codec.encode(variant))

    async def _open(self, row: StoredUserSecret) -> UserSecret:
        """Decrypt and decode a stored row into a ``UserSecret``.

        Raises:
            DecryptError, DecodeError, UnsupportedTypeError: Unreadable row.
        """
        plaintext = await self._gateway.decrypt(row.org_id, row.data)
        variant = codec.decode(plaintext)
        if variant.type != row.type:
            raise DecodeError(
                f"Stored type {row.type!r} does not match envelope of secret {row.id}"
            )
        return UserSecret(
            id=row.id,
            name=row.name,
            type=row.type,
            org_id=row.org_id,
            user_id=row.user_id,
            data=variant,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    @staticmethod
    def _owned(
        row: StoredUserSecret, org_id: Optional[str], user_id: Optional[str]
    ) -> bool:
        if org_id is not None and row.org_id != str(org_id):
            return False
        if user_id is not None and row.user_id != str(user_id):
            return False
        return True

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create(
        self, org_id: str, user_id: str, name: str, data: Any
    ) -> UserSecret:
        """Encrypt and persist a new secret owned by ``(org_id, user_id)``.

        Args:
            org_id: Owning organization; also the encryption scope.
            user_id: Owning user.
            name: Human-readable label (trimmed, non-empty).
            data: Secret variant, or raw data with a ``type`` discriminant.

        Returns:
            The stored secret with its decrypted variant.

        Raises:
            ValidationError: Invalid name or variant fields.
            UnsupportedTypeError: Unknown variant type.
            DependencyError: Store or key management failure.
        """
        name = _clean_name(name)
        variant = validate(data)
        blob = await self._seal(str(org_id), variant)
        row = await self._store.insert({
            "name": name,
            "type": variant.type,
            "org_id": str(org_id),
            "user_id": str(user_id),
            "data": blob,
        })
        logger.info(
            "Created user secret id=%s type=%s org=%s user=%s",
            row.id, row.type, row.org_id, row.user_id,
        )
        return await self._open(row)

    async def list(
        self, org_id: str, user_id: str, offset: int = 0, limit: int = 25
    ) -> UserSecretList:
        """Return one page of the user's secrets, ordered by name.

        Payloads are decrypted concurrently. A row that cannot be decrypted
        or decoded is left out and its id reported in ``skipped``; store or
        key-management failures still fail the whole call.

        ``total_count`` is the number of secrets of the whole organization,
        independent of ``offset`` and ``limit``.
        """
        rows = await self._store.find_many(
            {"org_id": str(org_id), "user_id": str(user_id)},
            offset=offset,
            limit=limit,
            sort=[("name", "asc")],
        )
        semaphore = asyncio.Semaphore(self._decrypt_concurrency)

        async def _open_row(row: StoredUserSecret) -> Optional[UserSecret]:
            async with semaphore:
                try:
                    return await self._open(row)
                except _UNREADABLE as err:
                    logger.error(
                        "Skipping unreadable user secret id=%s org=%s: %s",
                        row.id, row.org_id, type(err).__name__,
                    )
                    return None

        # gather keeps input order, which is the store's name ordering.
        opened = await asyncio.gather(*(_open_row(row) for row in rows))
        total_count = await self._store.count({"org_id": str(org_id)})
        return UserSecretList(
            secrets=[secret for secret in opened if secret is not None],
            total_count=total_count,
            skipped=[row.id for row, secret in zip(rows, opened) if secret is None],
        )

    async def update(
        self,
        secret_id: str,
        name: Optional[str] = None,
        data: Any = None,
        *,
        org_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> UserSecret:
        """Rename a secret and/or replace its whole variant.

        A new variant is re-encrypted under the record's own organization and
        replaces the old payload in a single row update; there is no
        field-level merge into the previous variant.

        When ``org_id``/``user_id`` are given, a secret owned by someone else
        is reported as not found. With neither ``name`` nor ``data`` the row
        is left untouched and returned as stored.

        Raises:
            NotFoundError: No such secret (or not owned by the caller).
            ValidationError, UnsupportedTypeError: Invalid replacement data.
            DependencyError: Store or key management failure.
        """
        patch = UserSecretPatch(
            name=_clean_name(name) if name is not None else None,
            data=validate(data) if data is not None else None,
        )
        existing = await self._store.find_by_id(str(secret_id))
        if existing is None or not self._owned(existing, org_id, user_id):
            raise NotFoundError(secret_id)
        if patch.empty:
            return await self._open(existing)

        changes = await self._merge(existing, patch)
        updated = await self._store.update_by_id(existing.id, changes)
        if updated is None:
            # deleted between the read and the write
            raise NotFoundError(secret_id)
        logger.info(
            "Updated user secret id=%s fields=%s org=%s",
            updated.id, sorted(changes), updated.org_id,
        )
        return await self._open(updated)

    async def _merge(
        self, existing: StoredUserSecret, patch: UserSecretPatch
    ) -> dict[str, Any]:
        """Column changes for ``patch``; ownership columns never change."""
        changes: dict[str, Any] = {}
        if patch.name is not None:
            changes["name"] = patch.name
        if patch.data is not None:
            changes["type"] = patch.data.type
            changes["data"] = await self._seal(existing.org_id, patch.data)
        return changes

    async def delete(
        self,
        secret_id: str,
        *,
        org_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        """Delete a secret by id.

        Deleting a nonexistent secret (or one not owned by the given
        ``org_id``/``user_id``) is a silent no-op.
        """
        if org_id is not None or user_id is not None:
            existing = await self._store.find_by_id(str(secret_id))
            if existing is None or not self._owned(existing, org_id, user_id):
                logger.debug("Delete of missing user secret id=%s ignored", secret_id)
                return
        deleted = await self._store.delete_by_id(str(secret_id))
        if deleted is None:
            logger.debug("Delete of missing user secret id=%s ignored", secret_id)
            return
        logger.info(
            "Deleted user secret id=%s org=%s user=%s",
            deleted.id, deleted.org_id, deleted.user_id,
        )


def user_secret_service_factory(
    store: UserSecretStore,
    kms: KeyManagementService,
    **kwargs: Any,
) -> UserSecretService:
    """Wire a ``UserSecretService`` from its two collaborators."""
    return UserSecretService(store=store, kms=kms, **kwargs)
