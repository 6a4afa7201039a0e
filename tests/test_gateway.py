"""
Tests for the encryption gateway adapter.
"""
from unittest.mock import AsyncMock

import pytest

from user_secrets import DecryptError, DependencyError, EncryptionGateway
from user_secrets.vault import CipherPair

from conftest import ORG_ID, OTHER_ORG_ID


@pytest.fixture
def gateway(kms):
    return EncryptionGateway(kms)


class TestEncryptionGateway:
    """Tests for scope-bound encrypt/decrypt."""

    @pytest.mark.asyncio
    async def test_round_trip(self, gateway):
        blob = await gateway.encrypt(ORG_ID, b"payload")
        assert blob != b"payload"
        assert await gateway.decrypt(ORG_ID, blob) == b"payload"

    @pytest.mark.asyncio
    async def test_not_deterministic(self, gateway):
        assert await gateway.encrypt(ORG_ID, b"p") != await gateway.encrypt(ORG_ID, b"p")

    @pytest.mark.asyncio
    async def test_cross_scope_isolation(self, gateway):
        blob = await gateway.encrypt(ORG_ID, b"payload")
        with pytest.raises(DecryptError):
            await gateway.decrypt(OTHER_ORG_ID, blob)

    @pytest.mark.asyncio
    async def test_tampered(self, gateway):
        blob = bytearray(await gateway.encrypt(ORG_ID, b"payload"))
        blob[20] ^= 0xFF
        with pytest.raises(DecryptError):
            await gateway.decrypt(ORG_ID, bytes(blob))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("blob", [b"", b"short", "text-not-bytes"])
    async def test_malformed(self, gateway, blob):
        with pytest.raises(DecryptError) as exc:
            await gateway.decrypt(ORG_ID, blob)
        assert exc.value.status_code == 502

    @pytest.mark.asyncio
    async def test_kms_unavailable(self):
        kms = AsyncMock()
        kms.get_cipher_pair.side_effect = ConnectionError("kms down")
        gateway = EncryptionGateway(kms)
        with pytest.raises(DependencyError):
            await gateway.encrypt(ORG_ID, b"payload")
        with pytest.raises(DependencyError):
            await gateway.decrypt(ORG_ID, b"\x00" * 40)

    @pytest.mark.asyncio
    async def test_encrypt_failure(self):
        def broken(_: bytes) -> bytes:
            raise RuntimeError("hsm error")

        kms = AsyncMock()
        kms.get_cipher_pair.return_value = CipherPair(ORG_ID, broken, broken)
        with pytest.raises(DependencyError):
            await EncryptionGateway(kms).encrypt(ORG_ID, b"payload")

    @pytest.mark.asyncio
    async def test_error_message_has_no_plaintext(self, gateway):
        blob = await gateway.encrypt(ORG_ID, b"hunter2")
        with pytest.raises(DecryptError) as exc:
            await gateway.decrypt(OTHER_ORG_ID, blob)
        assert "hunter2" not in str(exc.value)
