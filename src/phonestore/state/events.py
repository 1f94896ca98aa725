"""Collection state published by the sync cache.

Exactly one of :class:`Loading`, :class:`Success` or :class:`Failure` is
current at any time.  States are frozen and their item sequences are
tuples, so observers can hold on to them without copying.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from phonestore.exceptions import RemoteError
from phonestore.models.phone import Phone


class CollectionStatus(StrEnum):
    LOADING = "loading"
    SUCCESS = "success"
    FAILURE = "failure"


def _ensure_unique_ids(items: tuple[Phone, ...]) -> None:
    seen: set[str] = set()
    for phone in items:
        if phone.id in seen:
            raise ValueError(f"duplicate phone id {phone.id!r}")
        seen.add(phone.id)


class Loading(BaseModel):
    """The collection is being (re)loaded from the remote store."""

    model_config = ConfigDict(frozen=True)

    status: Literal[CollectionStatus.LOADING] = CollectionStatus.LOADING

    @property
    def items(self) -> tuple[Phone, ...]:
        return ()


class Success(BaseModel):
    """The last known list of phones."""

    model_config = ConfigDict(frozen=True)

    status: Literal[CollectionStatus.SUCCESS] = CollectionStatus.SUCCESS
    items: tuple[Phone, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _unique_ids(self) -> Success:
        _ensure_unique_ids(self.items)
        return self


class Failure(BaseModel):
    """A remote operation failed.

    ``items`` is the list as it stands after rolling back the failed
    operation (empty when the failure came from a fetch), so a view can
    keep showing it next to the error.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    status: Literal[CollectionStatus.FAILURE] = CollectionStatus.FAILURE
    error: RemoteError
    items: tuple[Phone, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _unique_ids(self) -> Failure:
        _ensure_unique_ids(self.items)
        return self


CollectionState = Loading | Success | Failure
