"""Temporary ids for optimistically inserted phones."""

from __future__ import annotations

import uuid

# Store-assigned ids never contain "~", so this prefix cannot collide.
TEMP_ID_PREFIX = "~tmp-"


def new_temporary_id() -> str:
    return f"{TEMP_ID_PREFIX}{uuid.uuid4().hex}"


def is_temporary_id(phone_id: str) -> bool:
    return phone_id.startswith(TEMP_ID_PREFIX)
