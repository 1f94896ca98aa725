"""Data models for the phone catalog."""

from phonestore.models.phone import Phone, PhoneDraft
from phonestore.models.requests import PhoneForm

__all__ = [
    "Phone",
    "PhoneDraft",
    "PhoneForm",
]
