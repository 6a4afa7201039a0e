"""
Secret variants: the three shapes a user secret can take.

Each variant is a frozen Pydantic model carrying a literal ``type``
discriminant. Wire names follow the stored JSON form (camelCase), while
Python attributes stay snake_case::

    {"type": "web", "url": ..., "username": ..., "password": ...}
    {"type": "credit_card", "cardNumber": ..., "expirationDate": ..., "cvv": ...}
    {"type": "secure_note", "content": ...}

Unknown keys are dropped on validation, so fields belonging to another
variant never leak into the typed value.
"""
import re
from enum import Enum
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    TypeAdapter,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError

from .exceptions import UnsupportedTypeError, ValidationError


class UserSecretType(str, Enum):
    """Discriminant values as persisted in the ``type`` column."""

    WebSecret = "web"
    CreditCardSecret = "credit_card"
    SecureNoteSecret = "secure_note"


# Checked with fullmatch; ASCII digits only, \d would accept other Unicode digits.
_CARD_NUMBER = re.compile(r"[0-9]{13,19}")
_EXPIRATION_DATE = re.compile(r"(0[1-9]|1[0-2])/[0-9]{2}")
_CVV = re.compile(r"[0-9]{3,4}")

_url_adapter = TypeAdapter(AnyUrl)


def _required(value: str, label: str) -> str:
    if not value:
        raise ValueError(f"{label} is required")
    return value


class BaseSecret(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
    )


class WebSecret(BaseSecret):
    """Web login: a site URL with its credentials."""

    type: Literal["web"] = "web"
    url: StrictStr
    username: StrictStr
    password: StrictStr

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require an absolute URL, but keep the value exactly as given."""
        try:
            _url_adapter.validate_python(v)
        except PydanticValidationError:
            raise ValueError("Invalid URL") from None
        return v

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        return _required(v, "Username")

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _required(v, "Password")


class CreditCardSecret(BaseSecret):
    """Payment card details."""

    type: Literal["credit_card"] = "credit_card"
    card_number: StrictStr = Field(alias="cardNumber")
    expiration_date: StrictStr = Field(alias="expirationDate")
    cvv: StrictStr

    @field_validator("card_number")
    @classmethod
    def validate_card_number(cls, v: str) -> str:
        if not _CARD_NUMBER.fullmatch(v):
            raise ValueError("Invalid card number")
        return v

    @field_validator("expiration_date")
    @classmethod
    def validate_expiration_date(cls, v: str) -> str:
        if not _EXPIRATION_DATE.fullmatch(v):
            raise ValueError("Invalid expiration date (MM/YY)")
        return v

    @field_validator("cvv")
    @classmethod
    def validate_cvv(cls, v: str) -> str:
        if not _CVV.fullmatch(v):
            raise ValueError("Invalid CVV")
        return v


class SecureNoteSecret(BaseSecret):
    """Free-form secure note."""

    type: Literal["secure_note"] = "secure_note"
    content: StrictStr

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _required(v, "Content")


SecretVariant = Annotated[
    Union[WebSecret, CreditCardSecret, SecureNoteSecret],
    Field(discriminator="type"),
]

VARIANT_MODELS: dict[str, type[BaseSecret]] = {
    UserSecretType.WebSecret.value: WebSecret,
    UserSecretType.CreditCardSecret.value: CreditCardSecret,
    UserSecretType.SecureNoteSecret.value: SecureNoteSecret,
}


def variant_model(secret_type: Any) -> type[BaseSecret]:
    """Return the model class for a discriminant.

    Raises:
        UnsupportedTypeError: If the discriminant is not a known secret type.
    """
    # Enum members hash by name, so look them up by value.
    if isinstance(secret_type, UserSecretType):
        secret_type = secret_type.value
    if isinstance(secret_type, str) and secret_type in VARIANT_MODELS:
        return VARIANT_MODELS[secret_type]
    raise UnsupportedTypeError(secret_type)


def _field_errors(err: PydanticValidationError) -> list[dict[str, str]]:
    """Flatten Pydantic errors to ``{"field", "message"}`` pairs.

    Input values are deliberately left out: they may be secret material.
    """
    errors = []
    for item in err.errors(include_url=False, include_input=False):
        field = ".".join(str(part) for part in item["loc"]) or "type"
        if item["type"] == "value_error":
            message = str(item["ctx"]["error"])
        else:
            message = item["msg"]
        errors.append({"field": field, "message": message})
    return errors


def validate(raw: Any) -> SecretVariant:
    """Validate raw secret data and return the typed variant.

    Args:
        raw: A mapping carrying a ``type`` discriminant, or an existing
            variant instance (which is re-validated).

    Returns:
        The matching ``WebSecret``, ``CreditCardSecret`` or
        ``SecureNoteSecret``.

    Raises:
        ValidationError: If ``type`` is missing or any field fails its
            constraints; every failing field is listed.
        UnsupportedTypeError: If ``type`` is not a known secret type.
    """
    if isinstance(raw, BaseSecret):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        raise ValidationError(
            "Secret data must be an object",
            [{"field": "type", "message": "Secret data must be an object"}],
        )
    secret_type = raw.get("type")
    if secret_type is None:
        raise ValidationError(
            "Secret type is required",
            [{"field": "type", "message": "Secret type is required"}],
        )
    model = variant_model(secret_type)
    data = dict(raw)
    data["type"] = model.model_fields["type"].default
    try:
        return model.model_validate(data)
    except PydanticValidationError as err:
        raise ValidationError(
            f"Invalid {model.__name__} data", _field_errors(err)
        ) from None
