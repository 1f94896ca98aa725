"""Phone catalog entity."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _text(value: Any) -> str:
    # Stored entries may hold numbers where text is expected.
    return "" if value is None else str(value)


class PhoneDraft(BaseModel):
    """Phone attributes without an identity.

    This is what gets submitted when creating a phone; the remote store
    assigns the id.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )

    brand: str = ""
    model: str = ""
    price: float = Field(default=0.0, ge=0)

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Any:
        # The store hands back ints for whole prices.
        if value is None:
            return 0.0
        if isinstance(value, bool):
            raise ValueError("price must be a number")
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("price must be finite")
        return value

    def to_json(self) -> dict[str, Any]:
        """Attributes as sent to the remote store."""
        return {"brand": self.brand, "model": self.model, "price": self.price}


class Phone(PhoneDraft):
    """A catalog record.

    Identity is the ``id`` alone: two phones with the same id are the
    same logical record whatever their attributes, so ``==`` and
    ``hash()`` only look at ``id``.  Use :meth:`same_values` to compare
    attributes as well.
    """

    id: str

    @field_validator("id")
    @classmethod
    def _id_non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("id must be non-empty")
        return value

    @classmethod
    def from_json(cls, phone_id: str, data: dict[str, Any]) -> Phone:
        """Build a phone from a collection entry keyed by *phone_id*."""
        return cls(
            id=phone_id,
            brand=_text(data.get("brand")),
            model=_text(data.get("model")),
            price=data.get("price") or 0.0,
        )

    @classmethod
    def from_draft(cls, phone_id: str, draft: PhoneDraft) -> Phone:
        return cls(id=phone_id, brand=draft.brand, model=draft.model, price=draft.price)

    def with_changes(self, **changes: Any) -> Phone:
        """Return a new phone sharing this id with *changes* applied."""
        if "id" in changes:
            raise ValueError("id cannot be changed")
        return Phone.model_validate({**self.model_dump(), **changes})

    def same_values(self, other: Phone) -> bool:
        return self.model_dump() == other.model_dump()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Phone):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
