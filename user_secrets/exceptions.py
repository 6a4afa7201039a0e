"""
User Secrets exceptions.

Every error raised by this package derives from ``UserSecretError`` and
carries an HTTP-like ``status_code`` so the transport owner can map it
without inspecting the message.

Security Note:
    Messages never include plaintext, ciphertext or key material.
"""
from typing import Any, Optional


class UserSecretError(Exception):
    """Base exception for user secret errors."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(UserSecretError):
    """Raised when a secret variant (or a record field) fails its constraints.

    ``errors`` lists every failing field as ``{"field": ..., "message": ...}``.
    """

    status_code = 422

    def __init__(self, message: str, errors: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []

    @property
    def fields(self) -> list[str]:
        return [err["field"] for err in self.errors]


class UnsupportedTypeError(UserSecretError):
    """Raised for an unknown secret discriminant, on input or on stored data."""

    status_code = 422

    def __init__(self, secret_type: Any):
        super().__init__(f"Unsupported secret type: {secret_type!r}")
        self.secret_type = secret_type


class DecodeError(UserSecretError):
    """Raised when a serialized envelope cannot be turned back into a variant."""


class DecryptError(UserSecretError):
    """Raised when a ciphertext blob cannot be authenticated or decrypted."""

    status_code = 502


class NotFoundError(UserSecretError):
    """Raised when an operation targets a nonexistent secret."""

    status_code = 404

    def __init__(self, secret_id: Any):
        super().__init__(f"User secret not found: {secret_id}")
        self.secret_id = secret_id


class DependencyError(UserSecretError):
    """Raised when the persistence or key-management collaborator fails."""

    status_code = 503
