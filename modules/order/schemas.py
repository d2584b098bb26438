"""
Order Module - Checkout Input
===============================
Validated checkout form. Contact fields become the order's snapshot.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from common.exceptions import ValidationFailedError
from common.helpers import normalize_phone
from modules.order.models import DeliveryMethod, PaymentMethod

_NAME_RE = re.compile(r"^[^\W\d_]+(?:[\s'\-][^\W\d_]+)*$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_RE = re.compile(r"^[0-9]{10,15}$")


class NewAddress(BaseModel):
    city: str = Field(..., min_length=1, max_length=100)
    street: str = Field(..., min_length=1, max_length=255)
    house: str = Field(..., min_length=1, max_length=20)
    apartment: Optional[str] = Field(None, max_length=20)
    postal_code: str = Field(..., pattern=r"^[0-9]{6}$")


class CheckoutData(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., max_length=255)
    phone: str
    delivery_method: DeliveryMethod
    payment_method: PaymentMethod
    address_id: Optional[int] = None
    new_address: Optional[NewAddress] = None
    delivery_address: Optional[str] = Field(None, max_length=1000)  # already resolved by the caller
    comment: Optional[str] = Field(None, max_length=500)

    @field_validator("name")
    @classmethod
    def _name_letters_only(cls, v: str) -> str:
        v = " ".join(v.split())
        if not _NAME_RE.match(v):
            raise ValueError("Name may contain letters and spaces only")
        return v

    @field_validator("email")
    @classmethod
    def _email_format(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("Enter a valid email address")
        return v

    @field_validator("phone")
    @classmethod
    def _phone_digits(cls, v: str) -> str:
        v = normalize_phone(v)
        if not _PHONE_RE.match(v):
            raise ValueError("Phone must be 10 to 15 digits")
        return v

    @model_validator(mode="after")
    def _address_for_delivery(self):
        if self.delivery_method == DeliveryMethod.PICKUP:
            return self
        if not (self.address_id or self.new_address or (self.delivery_address or "").strip()):
            raise ValueError("A delivery address is required for courier and post delivery")
        return self


def parse_checkout_data(data) -> CheckoutData:
    """Accept a CheckoutData or a plain dict; field errors become ValidationFailedError."""
    if isinstance(data, CheckoutData):
        return data
    try:
        return CheckoutData.model_validate(data or {})
    except ValidationError as e:
        errors = {}
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "__all__"
            errors[field] = err["msg"]
        raise ValidationFailedError(errors)
