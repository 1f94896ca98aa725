"""Phone collection endpoints.

Each call is a single round trip on ``{collection}.json`` or
``{collection}/{id}.json``; no retries and no batching.

It is internal to phonestore and may change at any time.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from phonestore._transport import Transport
from phonestore.exceptions import RemoteError
from phonestore.models.phone import Phone, PhoneDraft

_logger = logging.getLogger(__name__)


def collection_path(collection: str) -> str:
    return collection.strip("/")


def item_path(collection: str, phone_id: str) -> str:
    if not phone_id or "/" in phone_id:
        raise RemoteError(f"Invalid phone id: {phone_id!r}", endpoint=collection_path(collection))
    return f"{collection_path(collection)}/{phone_id}"


def _reraise(exc: RemoteError, action: str) -> RemoteError:
    """Prefix a transport error with the catalog action that failed."""
    return RemoteError(
        f"Failed to {action}: {exc.body or exc}",
        status_code=exc.status_code,
        endpoint=exc.endpoint,
        method=exc.method,
        body=exc.body,
    )


async def create_phone(transport: Transport, collection: str, draft: PhoneDraft) -> Phone:
    """POST the attributes and return the phone under its assigned id."""
    path = collection_path(collection)
    try:
        response = await transport.request("POST", path, draft.to_json())
    except RemoteError as exc:
        raise _reraise(exc, "add phone") from exc

    new_id = response.get("name") if isinstance(response, dict) else None
    if not isinstance(new_id, str) or not new_id:
        raise RemoteError(
            f"Failed to add phone: response carries no id: {response!r}",
            endpoint=path,
            method="POST",
            body=repr(response),
        )
    return Phone.from_draft(new_id, draft)


async def patch_phone(transport: Transport, collection: str, phone: Phone) -> Phone:
    """PATCH the attributes of an existing phone; the store echoes nothing useful."""
    try:
        await transport.request("PATCH", item_path(collection, phone.id), phone.to_json())
    except RemoteError as exc:
        raise _reraise(exc, "update phone") from exc
    return phone


def parse_collection(data: Any) -> list[Phone]:
    """Turn the collection root into phones.

    A missing (``null``) or non-object root means "no data yet" and yields
    an empty list.  Entries whose value is not an object are skipped.
    """
    if not isinstance(data, dict):
        return []
    phones: list[Phone] = []
    for phone_id, attributes in data.items():
        if not isinstance(attributes, dict):
            _logger.debug("Skipping non-object entry %r", phone_id)
            continue
        phones.append(Phone.from_json(str(phone_id), attributes))
    return phones


async def fetch_phones(transport: Transport, collection: str) -> list[Phone]:
    """GET the whole collection."""
    path = collection_path(collection)
    try:
        data = await transport.request("GET", path)
    except RemoteError as exc:
        raise RemoteError(
            f"Failed to load phones: {exc.status_code if exc.status_code is not None else exc}",
            status_code=exc.status_code,
            endpoint=exc.endpoint,
            method=exc.method,
            body=exc.body,
        ) from exc

    try:
        return parse_collection(data)
    except ValidationError as exc:
        raise RemoteError(
            f"Failed to load phones: malformed entry: {exc}",
            endpoint=path,
            method="GET",
        ) from exc


async def delete_phone(transport: Transport, collection: str, phone_id: str) -> None:
    """DELETE one phone by id."""
    try:
        await transport.request("DELETE", item_path(collection, phone_id))
    except RemoteError as exc:
        raise _reraise(exc, "delete phone") from exc
