"""Optimistic in-memory sync cache for the phone list.

This is the only component allowed to change the observed collection
state.  Every mutating operation runs in two phases:

1. the local list is changed and observers are notified before the
   method returns (optimistic phase);
2. the remote call runs in a task; when it settles the change is
   reconciled or rolled back and observers are notified once more.

Operations are not coordinated with each other.  A settlement reads the
list as it is at that moment, so with several operations in flight the
final representation is decided by network completion order, not by
call order.  The cache assumes a single writer and is at most eventually
consistent with the store; call :meth:`PhoneStore.fetch` to resync.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine, Iterable
from typing import Any

from phonestore.exceptions import PendingPhoneError, PhoneNotFoundError, RemoteError, StoreClosedError
from phonestore.models.phone import Phone, PhoneDraft
from phonestore.repository import PhoneRepository
from phonestore.state.events import CollectionState, Failure, Loading, Success
from phonestore.state.ids import is_temporary_id, new_temporary_id

_logger = logging.getLogger(__name__)

StateObserver = Callable[[CollectionState], None]


def _as_remote_error(exc: Exception, operation: str) -> RemoteError:
    if isinstance(exc, RemoteError):
        return exc
    error = RemoteError(f"{operation} failed: {exc}")
    error.__cause__ = exc
    return error


def _replace(items: tuple[Phone, ...], phone_id: str, replacement: Phone) -> tuple[Phone, ...]:
    return tuple(replacement if p.id == phone_id else p for p in items)


def _without(items: tuple[Phone, ...], phone_id: str) -> tuple[Phone, ...]:
    return tuple(p for p in items if p.id != phone_id)


class PhoneStore:
    """Observable phone list kept in sync with a :class:`PhoneRepository`.

    Must be created inside a running event loop: unless
    ``fetch_on_start`` is false, construction schedules the initial
    fetch.  Observers passed to the constructor are registered before
    that fetch, so they see its ``Loading`` state too.

    Usage::

        async with PhoneStore(repository, observers=[render]) as store:
            await store.add(PhoneDraft(brand="Acme", model="One", price=99))

    :meth:`fetch`, :meth:`add`, :meth:`update` and :meth:`remove` apply
    their local change synchronously and return the task settling the
    remote call.  Awaiting it is optional; it never raises for remote
    failures, which surface as :class:`Failure` states instead.
    """

    def __init__(
        self,
        repository: PhoneRepository,
        *,
        observers: Iterable[StateObserver] = (),
        fetch_on_start: bool = True,
    ) -> None:
        self._repository = repository
        self._state: CollectionState = Loading()
        self._observers: list[StateObserver] = list(observers)
        self._pending: set[asyncio.Task[None]] = set()
        self._closed = False
        if fetch_on_start:
            self.fetch()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PhoneStore:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Reject new operations, let pending ones settle, drop observers."""
        self._closed = True
        await self.wait_idle()
        self._observers.clear()

    async def wait_idle(self) -> None:
        """Wait until every operation started so far has settled."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: StateObserver) -> Callable[[], None]:
        """Register *observer* for every future state; returns an unsubscribe callable."""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: StateObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _notify(self, state: CollectionState) -> None:
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                _logger.warning("State observer %r failed", observer, exc_info=True)

    def _set_state(self, state: CollectionState) -> None:
        self._state = state
        _logger.debug("Collection state -> %s (%d items)", state.status, len(state.items))
        self._notify(state)

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> CollectionState:
        return self._state

    @property
    def phones(self) -> tuple[Phone, ...]:
        """The known items: the current list, the rolled-back list on failure, nothing while loading."""
        return self._state.items

    @property
    def is_loading(self) -> bool:
        return isinstance(self._state, Loading)

    @property
    def has_error(self) -> bool:
        return isinstance(self._state, Failure)

    @property
    def error(self) -> RemoteError | None:
        return self._state.error if isinstance(self._state, Failure) else None

    @property
    def pending(self) -> int:
        """Number of operations whose remote call has not settled yet."""
        return len(self._pending)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._closed:
            raise StoreClosedError("PhoneStore is closed")
        return asyncio.get_running_loop()

    def _spawn(
        self,
        loop: asyncio.AbstractEventLoop,
        coro: Coroutine[Any, Any, None],
        name: str,
    ) -> asyncio.Task[None]:
        task = loop.create_task(coro, name=f"phonestore-{name}")
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @staticmethod
    def _require_confirmed(phone_id: str) -> None:
        # Temporary ids are client-only and must never reach the store.
        if is_temporary_id(phone_id):
            raise PendingPhoneError(phone_id)

    def fetch(self) -> asyncio.Task[None]:
        """Reload the whole list, replacing local state wholesale."""
        loop = self._require_loop()
        self._set_state(Loading())
        return self._spawn(loop, self._settle_fetch(), "fetch")

    async def _settle_fetch(self) -> None:
        try:
            state: CollectionState = Success(items=tuple(await self._repository.list()))
        except Exception as exc:
            error = _as_remote_error(exc, "fetch")
            _logger.warning("Fetching phones failed: %s", error)
            state = Failure(error=error)
        self._set_state(state)

    def add(self, draft: PhoneDraft) -> asyncio.Task[None]:
        """Append *draft* under a temporary id, then create it remotely."""
        loop = self._require_loop()
        # A Phone is accepted as a draft; its id is not sent.
        draft = PhoneDraft(**draft.to_json())
        temp_id = new_temporary_id()
        provisional = Phone.from_draft(temp_id, draft)
        self._set_state(Success(items=(*self.phones, provisional)))
        return self._spawn(loop, self._settle_add(temp_id, draft), "add")

    async def _settle_add(self, temp_id: str, draft: PhoneDraft) -> None:
        try:
            confirmed = await self._repository.add(draft)
        except Exception as exc:
            error = _as_remote_error(exc, "add")
            _logger.warning("Adding phone failed, dropping %s: %s", temp_id, error)
            self._set_state(Failure(error=error, items=_without(self.phones, temp_id)))
            return

        if self.is_loading:
            # A fetch in flight owns the list and its result includes the
            # phone; the fetch's own settle is the only notification.
            _logger.debug("Add of %s confirmed as %s during fetch", temp_id, confirmed.id)
            return

        current = self.phones
        if any(p.id == confirmed.id for p in current):
            items = _without(current, temp_id)
        else:
            items = _replace(current, temp_id, confirmed)
        self._set_state(Success(items=items))

    def update(self, phone: Phone) -> asyncio.Task[None]:
        """Replace the phone with the same id in place, then patch it remotely.

        Raises (before changing anything) :class:`PendingPhoneError` when the
        id is still temporary, and :class:`PhoneNotFoundError` when no phone
        with that id is known.
        """
        loop = self._require_loop()
        self._require_confirmed(phone.id)
        current = self.phones
        original = next((p for p in current if p.id == phone.id), None)
        if original is None:
            raise PhoneNotFoundError(phone.id)
        self._set_state(Success(items=_replace(current, phone.id, phone)))
        return self._spawn(loop, self._settle_update(original, phone), "update")

    async def _settle_update(self, original: Phone, phone: Phone) -> None:
        try:
            await self._repository.update(phone)
        except Exception as exc:
            error = _as_remote_error(exc, "update")
            _logger.warning("Updating phone %s failed, restoring: %s", phone.id, error)
            self._set_state(Failure(error=error, items=_replace(self.phones, original.id, original)))
            return
        self._notify(self._state)

    def remove(self, phone_id: str) -> asyncio.Task[None]:
        """Drop the phone locally, then delete it remotely.

        Raises :class:`PendingPhoneError` for a temporary id.
        """
        loop = self._require_loop()
        self._require_confirmed(phone_id)
        snapshot = self.phones
        self._set_state(Success(items=_without(snapshot, phone_id)))
        return self._spawn(loop, self._settle_remove(snapshot, phone_id), "remove")

    async def _settle_remove(self, snapshot: tuple[Phone, ...], phone_id: str) -> None:
        try:
            await self._repository.remove(phone_id)
        except Exception as exc:
            error = _as_remote_error(exc, "remove")
            _logger.warning("Removing phone %s failed, restoring list: %s", phone_id, error)
            self._set_state(Failure(error=error, items=snapshot))
            return
        self._notify(self._state)
