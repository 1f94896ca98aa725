"""phonestore - Async phone catalog client with an optimistic sync cache."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("phonestore")
except PackageNotFoundError:
    __version__ = "0+local"
from phonestore.config import StoreConfig
from phonestore.exceptions import (
    PendingPhoneError,
    PhoneNotFoundError,
    PhoneStoreConfigError,
    PhoneStoreError,
    RemoteError,
    StoreClosedError,
)
from phonestore.models import Phone, PhoneDraft, PhoneForm
from phonestore.repository import InMemoryPhoneRepository, PhoneRepository, RestPhoneRepository
from phonestore.state import (
    CollectionState,
    CollectionStatus,
    Failure,
    Loading,
    PhoneStore,
    Success,
    is_temporary_id,
)

__all__ = [
    "__version__",
    "CollectionState",
    "CollectionStatus",
    "Failure",
    "InMemoryPhoneRepository",
    "Loading",
    "PendingPhoneError",
    "Phone",
    "PhoneDraft",
    "PhoneForm",
    "PhoneNotFoundError",
    "PhoneRepository",
    "PhoneStore",
    "PhoneStoreConfigError",
    "PhoneStoreError",
    "RemoteError",
    "RestPhoneRepository",
    "StoreClosedError",
    "StoreConfig",
    "Success",
    "is_temporary_id",
]
