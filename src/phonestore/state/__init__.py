"""State/sync layer.

:class:`~phonestore.state.store.PhoneStore` is the single source of truth
for the observed phone list; everything else only reads the states it
publishes.
"""

from phonestore.state.events import CollectionState, CollectionStatus, Failure, Loading, Success
from phonestore.state.ids import is_temporary_id, new_temporary_id
from phonestore.state.store import PhoneStore, StateObserver

__all__ = [
    "CollectionState",
    "CollectionStatus",
    "Failure",
    "Loading",
    "PhoneStore",
    "StateObserver",
    "Success",
    "is_temporary_id",
    "new_temporary_id",
]
