"""User Secrets: per-user encrypted web logins, credit cards and secure notes.

Secrets are validated as typed variants, serialized to a canonical envelope
and encrypted under their organization's data key before they are stored.
"""
from .version import __version__
from .exceptions import (
    UserSecretError,
    ValidationError,
    UnsupportedTypeError,
    DecodeError,
    DecryptError,
    NotFoundError,
    DependencyError,
)
from .types import (
    UserSecretType,
    WebSecret,
    CreditCardSecret,
    SecureNoteSecret,
    SecretVariant,
    validate,
)
from .codec import encode, decode
from .gateway import EncryptionGateway
from .models import (
    StoredUserSecret,
    UserSecret,
    UserSecretList,
    UserSecretPatch,
    CreateUserSecretRequest,
    UpdateUserSecretRequest,
    ListUserSecretsQuery,
)
from .dal import UserSecretDAL, UserSecretStore
from .service import UserSecretService, user_secret_service_factory

__all__ = [
    "__version__",
    "UserSecretError",
    "ValidationError",
    "UnsupportedTypeError",
    "DecodeError",
    "DecryptError",
    "NotFoundError",
    "DependencyError",
    "UserSecretType",
    "WebSecret",
    "CreditCardSecret",
    "SecureNoteSecret",
    "SecretVariant",
    "validate",
    "encode",
    "decode",
    "EncryptionGateway",
    "StoredUserSecret",
    "UserSecret",
    "UserSecretList",
    "UserSecretPatch",
    "CreateUserSecretRequest",
    "UpdateUserSecretRequest",
    "ListUserSecretsQuery",
    "UserSecretDAL",
    "UserSecretStore",
    "UserSecretService",
    "user_secret_service_factory",
]
