"""
Vault Configuration: Master key loading and validated settings.

Reads master keys from environment variables in the format:
    USER_SECRETS_MASTER_KEY_v{N} = <base64-encoded 32-byte key>
    USER_SECRETS_ACTIVE_KEY_ID = <integer>
    USER_SECRETS_CIPHER_BACKEND = aesgcm | chacha20   (optional)
    USER_SECRETS_DATA_KEY_CACHE_SIZE = <integer>        (optional, default 1024)

Organization data keys are derived from these master keys, one per
(organization, key version).

Security Note:
    Never log key material. Only log key IDs and version numbers.
"""
import os
import re
import base64
import secrets
import logging

from pydantic import BaseModel, Field, field_validator, model_validator

logger = logging.getLogger("user_secrets.vault")

_KEY_ENV_PATTERN = re.compile(r"^USER_SECRETS_MASTER_KEY_v(\d+)$")

ACTIVE_KEY_ENV = "USER_SECRETS_ACTIVE_KEY_ID"
CIPHER_BACKEND_ENV = "USER_SECRETS_CIPHER_BACKEND"
CACHE_SIZE_ENV = "USER_SECRETS_DATA_KEY_CACHE_SIZE"
SUPPORTED_CIPHERS = ("aesgcm", "chacha20")


def load_master_keys() -> dict[int, bytes]:
    """Load master keys from USER_SECRETS_MASTER_KEY_v{N} environment variables.

    Each env var value must be base64-encoded and decode to exactly 32 bytes.

    Returns:
        Mapping of key version (int) to raw 32-byte key.

    Raises:
        RuntimeError: If no master keys are found in the environment.
        ValueError: If a key is not valid base64 or not exactly 32 bytes.
    """
    keys: dict[int, bytes] = {}
    for name, value in os.environ.items():
        match = _KEY_ENV_PATTERN.match(name)
        if match:
            version = int(match.group(1))
            try:
                key_bytes = base64.b64decode(value, validate=True)
            except ValueError:
                raise ValueError(f"{name} is not valid base64") from None
            if len(key_bytes) != 32:
                raise ValueError(
                    f"{name} must decode to exactly 32 bytes, "
                    f"got {len(key_bytes)}"
                )
            keys[version] = key_bytes
    if not keys:
        raise RuntimeError(
            "No user secrets master keys found in environment. "
            "Set USER_SECRETS_MASTER_KEY_v1=<base64-encoded-32-byte-key>"
        )
    logger.debug("Loaded %d master key version(s): %s", len(keys), sorted(keys.keys()))
    return keys


def get_active_key_id() -> int:
    """Read the active master key version from USER_SECRETS_ACTIVE_KEY_ID.

    Raises:
        RuntimeError: If USER_SECRETS_ACTIVE_KEY_ID is not set.
        ValueError: If the value is not a valid integer.
    """
    raw = os.environ.get(ACTIVE_KEY_ENV)
    if raw is None:
        raise RuntimeError(
            f"{ACTIVE_KEY_ENV} environment variable is not set"
        )
    return int(raw)


def generate_master_key() -> str:
    """Generate a random 32-byte master key and return as base64 string.

    This is a utility for operators to generate new keys.
    """
    return base64.b64encode(secrets.token_bytes(32)).decode("ascii")


class VaultConfig(BaseModel):
    """Validated key-management configuration."""

    master_keys: dict[int, bytes]
    active_key_id: int
    cipher_backend: str = Field(default="aesgcm")
    rotation_batch_size: int = Field(default=100, ge=1, le=10000)
    data_key_cache_size: int = Field(default=1024, ge=1)

    model_config = {"arbitrary_types_allowed": True}

    @field_validator("master_keys")
    @classmethod
    def validate_key_sizes(cls, v: dict[int, bytes]) -> dict[int, bytes]:
        """Every master key must be exactly 32 bytes and versions fit uint16."""
        for version, key in v.items():
            if not 0 <= version <= 0xFFFF:
                raise ValueError(f"Key version {version} out of range (0-65535)")
            if len(key) != 32:
                raise ValueError(
                    f"Master key v{version} must be 32 bytes, got {len(key)}"
                )
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in SUPPORTED_CIPHERS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @model_validator(mode="after")
    def validate_active_key_exists(self) -> "VaultConfig":
        """Ensure active_key_id is present in master_keys."""
        if self.active_key_id not in self.master_keys:
            raise ValueError(
                f"active_key_id {self.active_key_id} not found in "
                f"master_keys (available: {sorted(self.master_keys.keys())})"
            )
        return self

    @property
    def active_master_key(self) -> tuple[int, bytes]:
        """Return the active (key_id, key_bytes) tuple."""
        return self.active_key_id, self.master_keys[self.active_key_id]

    @classmethod
    def from_env(cls) -> "VaultConfig":
        """Create VaultConfig by loading values from environment."""
        return cls(
            master_keys=load_master_keys(),
            active_key_id=get_active_key_id(),
            cipher_backend=os.environ.get(CIPHER_BACKEND_ENV, "aesgcm"),
            data_key_cache_size=int(os.environ.get(CACHE_SIZE_ENV, "1024")),
        )
