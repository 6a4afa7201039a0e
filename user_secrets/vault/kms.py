"""
Key Management: per-organization cipher pairs.

``KeyManagementService`` is the contract the rest of the package consumes:
given a scope (organization id) it hands back a ``CipherPair`` whose
``encrypt``/``decrypt`` callables are bound to that scope's data key.

``LocalKeyManagementService`` implements it in-process over the master key
ring of a ``VaultConfig``. A remote KMS only has to provide the same
``get_cipher_pair`` coroutine.

Security Note:
    Derived data keys stay in process memory until evicted from the
    bounded cache. Never log them; only log scope ids and key versions.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Protocol

from .config import VaultConfig
from .crypto import (
    CIPHERS,
    decrypt_with_data_key,
    derive_scope_key,
    encrypt_with_data_key,
    split_blob,
)

logger = logging.getLogger("user_secrets.vault")


@dataclass(frozen=True)
class CipherPair:
    """Encrypt/decrypt callables bound to one scope's data key."""

    scope_id: str
    encrypt: Callable[[bytes], bytes]
    decrypt: Callable[[bytes], bytes]


class KeyManagementService(Protocol):
    """Provider of per-scope data keys."""

    async def get_cipher_pair(self, scope_id: str) -> CipherPair:
        """Return the cipher pair of ``scope_id``, creating its key if needed."""
        ...


class LocalKeyManagementService:
    """In-process KMS deriving organization data keys from master keys.

    New blobs always use the active master key version; blobs written under
    an older version decrypt as long as that version stays configured.
    Derived data keys are kept in a least-recently-used cache bounded by
    ``config.data_key_cache_size``.
    """

    def __init__(self, config: VaultConfig):
        self._config = config
        self._cipher_cls = CIPHERS[config.cipher_backend]
        self._cache_size = config.data_key_cache_size
        self._data_keys: OrderedDict[tuple[str, int], bytes] = OrderedDict()

    @classmethod
    def from_env(cls) -> "LocalKeyManagementService":
        return cls(VaultConfig.from_env())

    @property
    def active_key_id(self) -> int:
        return self._config.active_key_id

    def _data_key(self, scope_id: str, key_id: int, master_key: bytes) -> bytes:
        cache_key = (scope_id, key_id)
        data_key = self._data_keys.get(cache_key)
        if data_key is not None:
            self._data_keys.move_to_end(cache_key)
            return data_key
        data_key = derive_scope_key(master_key, scope_id, key_id)
        self._data_keys[cache_key] = data_key
        if len(self._data_keys) > self._cache_size:
            self._data_keys.popitem(last=False)
        logger.debug(
            "Derived data key for scope=%s version=%d", scope_id, key_id,
        )
        return data_key

    def _master_key(self, key_id: int) -> bytes:
        master_key = self._config.master_keys.get(key_id)
        if master_key is None:
            raise KeyError(
                f"Master key version {key_id} not found in provided keys"
            )
        return master_key

    async def get_cipher_pair(self, scope_id: str) -> CipherPair:
        scope = str(scope_id)
        if not scope:
            raise ValueError("Key scope cannot be empty")
        aad = scope.encode("utf-8")
        cipher_cls = self._cipher_cls

        def encrypt(plaintext: bytes) -> bytes:
            key_id, master_key = self._config.active_master_key
            return encrypt_with_data_key(
                plaintext, key_id, self._data_key(scope, key_id, master_key),
                aad, cipher_cls,
            )

        def decrypt(blob: bytes) -> bytes:
            key_id, nonce, ct = split_blob(blob)
            data_key = self._data_key(scope, key_id, self._master_key(key_id))
            return decrypt_with_data_key(nonce, ct, data_key, aad, cipher_cls)

        return CipherPair(scope_id=scope, encrypt=encrypt, decrypt=decrypt)
