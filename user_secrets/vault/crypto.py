"""
Vault Crypto Core: Organization data keys and authenticated encryption.

Each organization (scope) gets its own data key per master key version:
    HKDF(MASTER_KEY_vN, "user-secret-org:{scope}:v{N}") → 32-byte data key

Blobs are self-describing so they can be decrypted after a rotation:
    [key_id 2B uint16 BE][nonce 12B][encrypted_payload + tag 16B]

The scope id is also passed as AEAD associated data, so a blob copied to
another organization fails authentication even if keys were shared.

Security Note:
    Never log plaintext, ciphertext or key values.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import struct

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

NONCE_SIZE = 12  # 96-bit nonce
KEY_ID_SIZE = 2  # uint16 big-endian
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16
MIN_BLOB_SIZE = KEY_ID_SIZE + NONCE_SIZE + TAG_SIZE

CIPHERS: dict[str, type] = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (master key bytes).
        context: Context string for domain separation.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic: the same scope must always get the same key
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def derive_scope_key(master_key: bytes, scope_id: str, key_id: int) -> bytes:
    """Derive the data key of ``scope_id`` under master key version ``key_id``."""
    return derive_key(master_key, f"user-secret-org:{scope_id}:v{key_id}")


# ---------------------------------------------------------------------------
# Blob format
# ---------------------------------------------------------------------------

def split_blob(blob: bytes) -> tuple[int, bytes, bytes]:
    """Split a blob into (key_id, nonce, ciphertext).

    Raises:
        ValueError: If the blob is too short to hold header, nonce and tag.
    """
    if len(blob) < MIN_BLOB_SIZE:
        raise ValueError(
            f"ciphertext blob too short: {len(blob)} bytes "
            f"(minimum {MIN_BLOB_SIZE})"
        )
    key_id = struct.unpack("!H", blob[:KEY_ID_SIZE])[0]
    nonce = blob[KEY_ID_SIZE:KEY_ID_SIZE + NONCE_SIZE]
    return key_id, nonce, blob[KEY_ID_SIZE + NONCE_SIZE:]


def peek_key_id(blob: bytes) -> int:
    """Return the master key version a blob was encrypted under."""
    return split_blob(blob)[0]


def encrypt_with_data_key(
    plaintext: bytes,
    key_id: int,
    data_key: bytes,
    aad: bytes,
    cipher_cls: type = AESGCM,
) -> bytes:
    """Encrypt plaintext with an already-derived data key.

    Returns:
        Blob in format [key_id 2B][nonce 12B][payload+tag].
    """
    cipher = cipher_cls(data_key)
    nonce = os.urandom(NONCE_SIZE)
    ct = cipher.encrypt(nonce, plaintext, aad)
    return struct.pack("!H", key_id) + nonce + ct


def decrypt_with_data_key(
    nonce: bytes,
    ciphertext: bytes,
    data_key: bytes,
    aad: bytes,
    cipher_cls: type = AESGCM,
) -> bytes:
    """Decrypt a payload with an already-derived data key.

    Raises:
        cryptography.exceptions.InvalidTag: On tampering or a wrong key.
    """
    return cipher_cls(data_key).decrypt(nonce, ciphertext, aad)


# ---------------------------------------------------------------------------
# Scope-level helpers (master key ring in, blob out)
# ---------------------------------------------------------------------------

def encrypt_for_scope(
    plaintext: bytes,
    scope_id: str,
    key_id: int,
    master_key: bytes,
    cipher_cls: type = AESGCM,
) -> bytes:
    """Encrypt plaintext under the data key of ``scope_id``.

    Args:
        plaintext: Data to encrypt.
        scope_id: Organization identifier.
        key_id: Master key version identifier.
        master_key: Raw 32-byte master key for this version.
        cipher_cls: AEAD class (AESGCM or ChaCha20Poly1305).

    Returns:
        Blob with key_id prefix.
    """
    data_key = derive_scope_key(master_key, scope_id, key_id)
    return encrypt_with_data_key(
        plaintext, key_id, data_key, scope_id.encode("utf-8"), cipher_cls,
    )


def decrypt_for_scope(
    blob: bytes,
    scope_id: str,
    master_keys: dict[int, bytes],
    cipher_cls: type = AESGCM,
) -> bytes:
    """Decrypt a blob of ``scope_id`` using its embedded key version.

    Raises:
        ValueError: If the blob is malformed.
        KeyError: If the embedded key version is not in master_keys.
        cryptography.exceptions.InvalidTag: On tampering or a foreign scope.
    """
    key_id, nonce, ct = split_blob(blob)
    if key_id not in master_keys:
        raise KeyError(
            f"Master key version {key_id} not found in provided keys"
        )
    data_key = derive_scope_key(master_keys[key_id], scope_id, key_id)
    return decrypt_with_data_key(
        nonce, ct, data_key, scope_id.encode("utf-8"), cipher_cls,
    )
