"""Pydantic models for raw user input.

Add/edit forms hand over untrusted strings; these models give them the
same "validate → normalize → execute" flow the store operations expect.
"""

from __future__ import annotations

import math

from pydantic import BaseModel, ConfigDict, field_validator

from phonestore.models.phone import Phone, PhoneDraft


class PhoneForm(BaseModel):
    """Add/edit form input: non-empty brand and model, non-negative price."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    brand: str
    model: str
    price: str

    @field_validator("brand", "model")
    @classmethod
    def _required(cls, value: str) -> str:
        if not value:
            raise ValueError("Required")
        return value

    @field_validator("price", mode="before")
    @classmethod
    def _valid_price(cls, value: object) -> str:
        text = str(value).strip() if value is not None else ""
        try:
            parsed = float(text)
        except ValueError:
            raise ValueError("Invalid price") from None
        if not math.isfinite(parsed) or parsed < 0:
            raise ValueError("Invalid price")
        return text

    @property
    def price_value(self) -> float:
        return float(self.price)

    def to_draft(self) -> PhoneDraft:
        return PhoneDraft(brand=self.brand, model=self.model, price=self.price_value)

    def to_phone(self, phone_id: str) -> Phone:
        return Phone(id=phone_id, brand=self.brand, model=self.model, price=self.price_value)
