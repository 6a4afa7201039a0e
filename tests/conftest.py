"""
Shared fixtures for the user secrets test suite.

Provides an in-memory ``UserSecretStore``, a local key-management service
over freshly generated master keys, and a wired ``UserSecretService``.
"""
import base64
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import pytest

from user_secrets import UserSecretService, StoredUserSecret
from user_secrets.vault import LocalKeyManagementService, VaultConfig, generate_master_key


class MemoryUserSecretStore:
    """Dict-backed ``UserSecretStore`` with the same semantics as the DAL."""

    def __init__(self):
        self.rows: dict[str, StoredUserSecret] = {}

    async def insert(self, record: dict[str, Any]) -> StoredUserSecret:
        now = datetime.now(timezone.utc)
        row = StoredUserSecret(
            id=str(uuid.uuid4()), created_at=now, updated_at=now, **record,
        )
        self.rows[row.id] = row
        return row

    async def find_by_id(self, secret_id: str) -> Optional[StoredUserSecret]:
        return self.rows.get(secret_id)

    def _match(self, filters: dict[str, Any]) -> list[StoredUserSecret]:
        return [
            row for row in self.rows.values()
            if all(getattr(row, k) == v for k, v in filters.items())
        ]

    async def find_many(
        self,
        filters: dict[str, Any],
        offset: int = 0,
        limit: Optional[int] = None,
        sort: Sequence[tuple[str, str]] = (),
    ) -> list[StoredUserSecret]:
        rows = self._match(filters)
        for column, direction in reversed(list(sort)):
            rows.sort(key=lambda r: getattr(r, column), reverse=direction == "desc")
        end = None if limit is None else offset + limit
        return rows[offset:end]

    async def update_by_id(
        self, secret_id: str, patch: dict[str, Any]
    ) -> Optional[StoredUserSecret]:
        row = self.rows.get(secret_id)
        if row is None:
            return None
        updated = row.model_copy(
            update={**patch, "updated_at": datetime.now(timezone.utc)}
        )
        self.rows[secret_id] = updated
        return updated

    async def delete_by_id(self, secret_id: str) -> Optional[StoredUserSecret]:
        return self.rows.pop(secret_id, None)

    async def count(self, filters: dict[str, Any]) -> int:
        return len(self._match(filters))

    async def find_batch(
        self, after_id: Optional[str], limit: int
    ) -> list[StoredUserSecret]:
        ids = sorted(i for i in self.rows if after_id is None or i > after_id)
        return [self.rows[i] for i in ids[:limit]]

    async def rewrite_data(
        self, secret_id: str, data: bytes
    ) -> Optional[StoredUserSecret]:
        row = self.rows.get(secret_id)
        if row is None:
            return None
        rewritten = row.model_copy(update={"data": data})
        self.rows[secret_id] = rewritten
        return rewritten


def make_config(*versions: int, active: Optional[int] = None, **kwargs) -> VaultConfig:
    versions = versions or (1,)
    keys = {v: base64.b64decode(generate_master_key()) for v in versions}
    return VaultConfig(
        master_keys=keys,
        active_key_id=active if active is not None else versions[-1],
        **kwargs,
    )


ORG_ID = "6f1c1f6e-2c53-4a8b-9a55-5b8d0e1d7a01"
OTHER_ORG_ID = "0b7d9a7e-8e34-4c4f-a5f7-3c0a0f8c2b02"
USER_ID = "c2a9f0a4-5a2e-4e0f-8f3b-1d2e3f4a5b03"
OTHER_USER_ID = "9e8d7c6b-5a49-4837-a261-504f3e2d1c04"


@pytest.fixture
def web_data():
    return {
        "type": "web",
        "url": "https://example.com/login",
        "username": "alice",
        "password": "s3cr3t!",
    }


@pytest.fixture
def card_data():
    return {
        "type": "credit_card",
        "cardNumber": "4111111111111111",
        "expirationDate": "09/28",
        "cvv": "123",
    }


@pytest.fixture
def note_data():
    return {"type": "secure_note", "content": "door code is 4242"}


@pytest.fixture
def vault_config():
    return make_config(1)


@pytest.fixture
def kms(vault_config):
    return LocalKeyManagementService(vault_config)


@pytest.fixture
def store():
    return MemoryUserSecretStore()


@pytest.fixture
def service(store, kms):
    return UserSecretService(store=store, kms=kms)
