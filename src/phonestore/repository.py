"""Remote store access for the phone catalog.

:class:`PhoneRepository` is the capability the sync cache depends on.
:class:`RestPhoneRepository` talks to a realtime-database style REST
backend; :class:`InMemoryPhoneRepository` keeps everything in a dict and
can be substituted wherever a repository is expected.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Iterable
from typing import Any, Protocol

import aiohttp

from phonestore._api import phones as _phones_api
from phonestore._transport import HttpTransport, Transport
from phonestore.config import StoreConfig
from phonestore.exceptions import PhoneStoreError, RemoteError
from phonestore.models.phone import Phone, PhoneDraft

_logger = logging.getLogger(__name__)

OPERATIONS = ("add", "update", "list", "remove")


class PhoneRepository(Protocol):
    """Create/read/update/delete phones in a remote collection."""

    async def add(self, draft: PhoneDraft) -> Phone:
        """Submit *draft* and return it under the store-assigned id."""
        ...

    async def update(self, phone: Phone) -> Phone:
        """Merge the attributes of *phone* into the stored record."""
        ...

    async def list(self) -> list[Phone]:
        """Return the whole collection (empty when the store has no data)."""
        ...

    async def remove(self, phone_id: str) -> None:
        """Delete the record keyed by *phone_id*."""
        ...


class RestPhoneRepository:
    """Repository backed by the realtime-database REST API.

    Usage::

        async with RestPhoneRepository(config) as repo:
            phones = await repo.list()
    """

    def __init__(
        self,
        config: StoreConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._external_transport = transport is not None
        self._transport: Transport | None = transport

    @property
    def config(self) -> StoreConfig:
        return self._config

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> RestPhoneRepository:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._config, self._http_session)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise PhoneStoreError("Repository not initialized. Use 'async with RestPhoneRepository(...) as repo:'")
        return self._transport

    # ------------------------------------------------------------------
    # PhoneRepository
    # ------------------------------------------------------------------

    async def add(self, draft: PhoneDraft) -> Phone:
        return await _phones_api.create_phone(self._require_transport(), self._config.collection, draft)

    async def update(self, phone: Phone) -> Phone:
        return await _phones_api.patch_phone(self._require_transport(), self._config.collection, phone)

    async def list(self) -> list[Phone]:
        return await _phones_api.fetch_phones(self._require_transport(), self._config.collection)

    async def remove(self, phone_id: str) -> None:
        await _phones_api.delete_phone(self._require_transport(), self._config.collection, phone_id)


def generate_push_id() -> str:
    """Return a 20 character id in the store's ``-0-9A-Za-z_`` alphabet."""
    return "-" + secrets.token_urlsafe(15)[:19]


class InMemoryPhoneRepository:
    """Dict-backed repository with failure injection.

    Records are kept in insertion order.  Every call yields to the event
    loop at least once (``delay`` seconds), so callers observe the same
    suspension behaviour they would against the network.
    """

    def __init__(self, phones: Iterable[Phone] = (), *, delay: float = 0.0) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        for phone in phones:
            self._records[phone.id] = phone.to_json()
        self.delay = delay
        self.calls: dict[str, int] = {}
        self._failures: dict[str, list[RemoteError]] = {}

    def fail_next(self, operation: str, error: RemoteError | None = None) -> None:
        """Make the next call of *operation* raise *error*."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation {operation!r}; expected one of {OPERATIONS}")
        if error is None:
            error = RemoteError(f"Injected {operation} failure", status_code=500, body="injected")
        self._failures.setdefault(operation, []).append(error)

    def snapshot(self) -> list[Phone]:
        """Current stored records, without going through a call."""
        return _phones_api.parse_collection(self._records)

    async def _enter(self, operation: str) -> None:
        self.calls[operation] = self.calls.get(operation, 0) + 1
        await asyncio.sleep(self.delay)
        pending = self._failures.get(operation)
        if pending:
            error = pending.pop(0)
            _logger.debug("Injecting failure for %s: %s", operation, error)
            raise error

    async def add(self, draft: PhoneDraft) -> Phone:
        await self._enter("add")
        phone_id = generate_push_id()
        while phone_id in self._records:
            phone_id = generate_push_id()
        self._records[phone_id] = draft.to_json()
        return Phone.from_draft(phone_id, draft)

    async def update(self, phone: Phone) -> Phone:
        await self._enter("update")
        # PATCH semantics: merge, creating the record when absent.
        self._records.setdefault(phone.id, {}).update(phone.to_json())
        return phone

    async def list(self) -> list[Phone]:
        await self._enter("list")
        return self.snapshot()

    async def remove(self, phone_id: str) -> None:
        await self._enter("remove")
        self._records.pop(phone_id, None)
