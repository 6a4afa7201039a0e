"""
Tests for the envelope codec.
"""
import orjson
import pytest

from user_secrets import (
    DecodeError,
    UnsupportedTypeError,
    decode,
    encode,
    validate,
)


class TestEncode:
    """Tests for canonical envelope encoding."""

    def test_includes_discriminant_and_wire_names(self, card_data):
        payload = orjson.loads(encode(validate(card_data)))
        assert payload == card_data

    def test_canonical_regardless_of_field_order(self, web_data):
        reordered = dict(reversed(list(web_data.items())))
        assert encode(validate(web_data)) == encode(validate(reordered))

    def test_accepts_raw_data(self, note_data):
        assert encode(note_data) == encode(validate(note_data))


class TestDecode:
    """Tests for envelope decoding."""

    @pytest.mark.parametrize("fixture", ["web_data", "card_data", "note_data"])
    def test_round_trip(self, request, fixture):
        variant = validate(request.getfixturevalue(fixture))
        assert decode(encode(variant)) == variant

    def test_accepts_memoryview(self, note_data):
        variant = validate(note_data)
        assert decode(memoryview(encode(variant))) == variant

    @pytest.mark.parametrize(
        "buffer",
        [b"", b"{not json", b"[1, 2]", b'"web"', b'{"content": "x"}'],
    )
    def test_malformed(self, buffer):
        with pytest.raises(DecodeError):
            decode(buffer)

    def test_invalid_fields(self):
        with pytest.raises(DecodeError) as exc:
            decode(b'{"type": "credit_card", "cardNumber": "1", "expirationDate": "01/30", "cvv": "123"}')
        assert "cardNumber" in str(exc.value)

    def test_unknown_tag(self):
        with pytest.raises(UnsupportedTypeError):
            decode(b'{"type": "api_key", "value": "x"}')
