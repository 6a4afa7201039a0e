"""
Vault Key Rotation: Batch re-encryption of user secrets when rotating master keys.

Walks every stored secret by id in configurable batches and re-encrypts the
ones whose blob header names the old key version under the new one. The
operation is idempotent: blobs already at another version are skipped.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any, Optional

from ..exceptions import DependencyError
from .config import VaultConfig
from .crypto import CIPHERS, decrypt_for_scope, encrypt_for_scope, peek_key_id

logger = logging.getLogger("user_secrets.vault")


async def rotate_master_key(
    store: Any,
    old_key_id: int,
    new_key_id: int,
    config: VaultConfig,
    batch_size: Optional[int] = None,
) -> dict:
    """Re-encrypt all secrets from old_key_id to new_key_id in batches.

    Args:
        store: A ``UserSecretStore`` (needs ``find_batch`` and ``rewrite_data``).
        old_key_id: Source key version to rotate from.
        new_key_id: Target key version to rotate to.
        config: Vault configuration holding every key version involved.
        batch_size: Rows per batch; defaults to ``config.rotation_batch_size``.

    Returns:
        Stats dict with keys: total, rotated, errors, skipped.

    Raises:
        KeyError: If old_key_id or new_key_id is not in the key ring.
        DependencyError: If the store fails; rows rotated so far stay rotated.
    """
    master_keys = config.master_keys
    if old_key_id not in master_keys:
        raise KeyError(
            f"Old key version {old_key_id} not found in master_keys"
        )
    if new_key_id not in master_keys:
        raise KeyError(
            f"New key version {new_key_id} not found in master_keys"
        )

    batch_size = batch_size or config.rotation_batch_size
    cipher_cls = CIPHERS[config.cipher_backend]
    new_master_key = master_keys[new_key_id]
    stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}
    after_id = None
    batch_num = 0

    logger.info(
        "Starting key rotation from v%d to v%d (batch_size=%d)",
        old_key_id, new_key_id, batch_size,
    )

    while True:
        rows = await store.find_batch(after_id, batch_size)
        if not rows:
            break

        batch_num += 1
        logger.info(
            "Processing batch %d (%d rows)", batch_num, len(rows),
        )

        for row in rows:
            stats["total"] += 1
            try:
                if peek_key_id(row.data) != old_key_id:
                    stats["skipped"] += 1
                    continue
                plaintext = decrypt_for_scope(
                    row.data, row.org_id, master_keys, cipher_cls,
                )
                new_blob = encrypt_for_scope(
                    plaintext, row.org_id, new_key_id, new_master_key, cipher_cls,
                )
                await store.rewrite_data(row.id, new_blob)
                stats["rotated"] += 1
            except DependencyError:
                raise
            except Exception as err:
                logger.error(
                    "Error rotating user secret id=%s org=%s: %s",
                    row.id, row.org_id, type(err).__name__,
                )
                stats["errors"] += 1

        after_id = rows[-1].id

    logger.info(
        "Key rotation complete: %s", stats,
    )
    return stats
