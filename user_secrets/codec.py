"""
Envelope codec: canonical byte form of a secret variant.

The envelope is the orjson encoding of the variant's wire form (camelCase
keys, ``type`` included) with keys sorted, so equal variants always produce
identical bytes. This is the plaintext handed to the encryption gateway.

Security Note:
    Errors never echo the buffer: it is decrypted secret material.
"""
from typing import Any, Union

import orjson

from .exceptions import DecodeError, ValidationError
from .types import SecretVariant, BaseSecret, validate


def encode(variant: Any) -> bytes:
    """Serialize a variant to its canonical envelope bytes.

    Args:
        variant: A secret variant, or raw data that ``validate`` accepts.

    Returns:
        orjson-encoded bytes with sorted keys.
    """
    if not isinstance(variant, BaseSecret):
        variant = validate(variant)
    return orjson.dumps(
        variant.model_dump(by_alias=True, mode="json"),
        option=orjson.OPT_SORT_KEYS,
    )


def decode(data: Union[bytes, bytearray, memoryview]) -> SecretVariant:
    """Rebuild the variant stored in an envelope.

    Raises:
        DecodeError: Empty, non-JSON, non-object or field-invalid envelope.
        UnsupportedTypeError: The envelope's ``type`` is not recognized.
    """
    if not data:
        raise DecodeError("Cannot decode an empty secret envelope")
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError:
        raise DecodeError("Malformed secret envelope") from None
    if not isinstance(parsed, dict) or "type" not in parsed:
        raise DecodeError("Secret envelope carries no type discriminant")
    try:
        return validate(parsed)
    except ValidationError as err:
        raise DecodeError(
            f"Invalid {parsed['type']!r} envelope (fields: {', '.join(err.fields)})"
        ) from None
