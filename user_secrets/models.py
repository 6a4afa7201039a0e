"""
User secret records and boundary schemas.

``StoredUserSecret`` is the persisted row (ciphertext in ``data``);
``UserSecret`` is what callers get back, with the decrypted variant attached.
The request schemas validate what the transport owner receives before it
calls the service.
"""
from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StringConstraints,
)

from .types import SecretVariant


def _as_identifier(value: Any) -> Any:
    # asyncpg hands back uuid.UUID for uuid columns.
    return value if value is None or isinstance(value, str) else str(value)


Identifier = Annotated[str, BeforeValidator(_as_identifier)]
SecretName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class StoredUserSecret(BaseModel):
    """A row of the ``user_secrets`` table."""

    model_config = ConfigDict(from_attributes=True)

    id: Identifier
    name: str
    type: str
    org_id: Identifier
    user_id: Identifier
    data: bytes
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSecret(BaseModel):
    """A user secret as returned to callers (never carries ciphertext)."""

    id: str
    name: str
    type: str
    org_id: str
    user_id: str
    data: SecretVariant
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserSecretList(BaseModel):
    """One page of user secrets.

    ``total_count`` counts every secret of the organization, regardless of
    the page window. ``skipped`` holds ids of rows that could not be
    decrypted or decoded and were left out of ``secrets``.
    """

    secrets: list[UserSecret] = Field(default_factory=list)
    total_count: int = 0
    skipped: list[str] = Field(default_factory=list)


class UserSecretPatch(BaseModel):
    """Explicit partial update: only the fields set here change."""

    model_config = ConfigDict(frozen=True)

    name: Optional[SecretName] = None
    data: Optional[SecretVariant] = None

    @property
    def empty(self) -> bool:
        return self.name is None and self.data is None


class CreateUserSecretRequest(BaseModel):
    name: SecretName
    data: SecretVariant


class UpdateUserSecretRequest(BaseModel):
    name: Optional[SecretName] = None
    data: Optional[SecretVariant] = None


class ListUserSecretsQuery(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=25, ge=1, le=100)
