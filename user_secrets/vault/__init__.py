"""User Secrets Vault: Organization-scoped key management.

Security Note (Threat Model):
    Organization data keys are derived in process memory from the master
    keys and kept in a bounded cache of the key-management service. A memory
    dump of the application process could expose them. This is an accepted
    limitation: mitigation requires HSM/remote KMS integration, which only
    needs to implement ``KeyManagementService``.
"""

from .kms import CipherPair, KeyManagementService, LocalKeyManagementService
from .key_rotation import rotate_master_key
from .config import VaultConfig, load_master_keys, generate_master_key

__all__ = [
    "CipherPair",
    "KeyManagementService",
    "LocalKeyManagementService",
    "rotate_master_key",
    "VaultConfig",
    "load_master_keys",
    "generate_master_key",
]
