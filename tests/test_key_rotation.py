"""
Tests for master key rotation over stored user secrets.
"""
import pytest

from user_secrets import UserSecretService
from user_secrets.vault import LocalKeyManagementService, rotate_master_key
from user_secrets.vault.crypto import peek_key_id

from conftest import ORG_ID, OTHER_ORG_ID, USER_ID, MemoryUserSecretStore, make_config


@pytest.fixture
def config():
    return make_config(1, 2, active=1)


async def _seed(store, config, count=3):
    service = UserSecretService(store=store, kms=LocalKeyManagementService(config))
    for i in range(count):
        org = ORG_ID if i % 2 == 0 else OTHER_ORG_ID
        await service.create(org, USER_ID, f"note-{i}", {"type": "secure_note", "content": f"n{i}"})


class TestRotateMasterKey:
    """Tests for rotate_master_key."""

    @pytest.mark.asyncio
    async def test_rotates_all_rows(self, config):
        store = MemoryUserSecretStore()
        await _seed(store, config, count=5)
        stats = await rotate_master_key(store, 1, 2, config, batch_size=2)
        assert stats == {"total": 5, "rotated": 5, "errors": 0, "skipped": 0}
        assert {peek_key_id(row.data) for row in store.rows.values()} == {2}

        # readable with v2 active and v1 still configured
        rotated = config.model_copy(update={"active_key_id": 2})
        service = UserSecretService(store=store, kms=LocalKeyManagementService(rotated))
        result = await service.list(ORG_ID, USER_ID)
        assert [s.data.content for s in result.secrets] == ["n0", "n2", "n4"]
        assert result.skipped == []

    @pytest.mark.asyncio
    async def test_keeps_updated_at(self, config):
        store = MemoryUserSecretStore()
        await _seed(store, config)
        before = {row.id: (row.updated_at, row.data) for row in store.rows.values()}
        await rotate_master_key(store, 1, 2, config)
        for row in store.rows.values():
            updated_at, blob = before[row.id]
            assert row.updated_at == updated_at
            assert row.data != blob

    @pytest.mark.asyncio
    async def test_idempotent(self, config):
        store = MemoryUserSecretStore()
        await _seed(store, config)
        await rotate_master_key(store, 1, 2, config)
        stats = await rotate_master_key(store, 1, 2, config)
        assert stats == {"total": 3, "rotated": 0, "errors": 0, "skipped": 3}

    @pytest.mark.asyncio
    async def test_counts_errors(self, config):
        store = MemoryUserSecretStore()
        await _seed(store, config, count=2)
        bad_id = sorted(store.rows)[0]
        blob = bytearray(store.rows[bad_id].data)
        blob[-1] ^= 0xFF
        store.rows[bad_id] = store.rows[bad_id].model_copy(update={"data": bytes(blob)})
        stats = await rotate_master_key(store, 1, 2, config)
        assert stats["rotated"] == 1
        assert stats["errors"] == 1

    @pytest.mark.asyncio
    async def test_unknown_versions(self, config):
        store = MemoryUserSecretStore()
        with pytest.raises(KeyError):
            await rotate_master_key(store, 3, 2, config)
        with pytest.raises(KeyError):
            await rotate_master_key(store, 1, 9, config)
