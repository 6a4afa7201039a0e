"""
Encryption Gateway: the seam between user secrets and key management.

Wraps a ``KeyManagementService`` and turns its failures into the package's
error taxonomy: no cipher pair means ``DependencyError``; a blob that does
not authenticate under the scope's key means ``DecryptError``.

Security Note:
    Never log plaintext, ciphertext or key material. Error messages only
    name the scope.
"""
import logging

from .exceptions import DecryptError, DependencyError, UserSecretError
from .vault.kms import CipherPair, KeyManagementService

logger = logging.getLogger("user_secrets.gateway")


class EncryptionGateway:
    """Scope-bound encrypt/decrypt over an external key-management service."""

    def __init__(self, kms: KeyManagementService):
        self._kms = kms

    async def _cipher_pair(self, scope_id: str) -> CipherPair:
        try:
            return await self._kms.get_cipher_pair(str(scope_id))
        except UserSecretError:
            raise
        except Exception as err:
            logger.error(
                "Key management unavailable for org=%s: %s",
                scope_id, type(err).__name__,
            )
            raise DependencyError(
                f"Unable to obtain data key for organization {scope_id}"
            ) from err

    async def encrypt(self, scope_id: str, plaintext: bytes) -> bytes:
        """Encrypt ``plaintext`` under the data key of ``scope_id``.

        Raises:
            DependencyError: If the data key cannot be obtained or used.
        """
        pair = await self._cipher_pair(scope_id)
        try:
            return pair.encrypt(plaintext)
        except Exception as err:
            logger.error(
                "Encryption failed for org=%s: %s", scope_id, type(err).__name__,
            )
            raise DependencyError(
                f"Unable to encrypt secret for organization {scope_id}"
            ) from err

    async def decrypt(self, scope_id: str, blob: bytes) -> bytes:
        """Decrypt a blob written under ``scope_id``.

        Raises:
            DecryptError: Malformed blob, foreign scope, unknown key version
                or failed authentication. Nothing partial is returned.
            DependencyError: If the data key cannot be obtained.
        """
        if not isinstance(blob, (bytes, bytearray, memoryview)):
            raise DecryptError(
                f"Secret of organization {scope_id} is not a ciphertext blob"
            )
        pair = await self._cipher_pair(scope_id)
        try:
            return pair.decrypt(bytes(blob))
        except Exception as err:
            logger.warning(
                "Unable to decrypt secret envelope for org=%s: %s",
                scope_id, type(err).__name__,
            )
            raise DecryptError(
                f"Unable to decrypt secret for organization {scope_id}"
            ) from err
