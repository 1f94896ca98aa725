"""JSON-over-HTTP transport for the remote collection."""

from __future__ import annotations

import json
import logging
from typing import Any, Protocol

import aiohttp

from phonestore._constants import BODY_PREVIEW_CHARS
from phonestore.config import StoreConfig
from phonestore.exceptions import RemoteError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the API module.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        ...


def _preview(text: str) -> str:
    return text[:BODY_PREVIEW_CHARS]


class HttpTransport:
    """Send JSON requests to ``{base_url}/{path}.json`` and decode the reply.

    A response counts as successful only when its status is in
    ``config.success_statuses``.  Everything else, including network
    failures and undecodable bodies, raises :class:`RemoteError`.
    """

    def __init__(self, config: StoreConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session

    def url_for(self, path: str) -> str:
        return f"{self._config.root_url}/{path.strip('/')}.json"

    async def request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> Any:
        """Perform one request/response round trip.

        Returns the decoded JSON body; an empty body decodes to ``None``.
        """
        url = self.url_for(path)
        headers: dict[str, str] = {"user-agent": self._config.user_agent}
        data: str | None = None
        if payload is not None:
            headers["content-type"] = "application/json"
            data = json.dumps(payload, separators=(",", ":"))

        _logger.debug("%s %s", method, url)

        try:
            async with self._http.request(method, url, data=data, headers=headers) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise RemoteError(
                f"{method} {path} failed: {exc}",
                endpoint=path,
                method=method,
            ) from exc

        _logger.debug("%s %s -> %s (%d bytes)", method, url, status, len(text))

        if status not in self._config.success_statuses:
            raise RemoteError(
                f"HTTP {status} from {method} {path}: {_preview(text)}",
                status_code=status,
                endpoint=path,
                method=method,
                body=text,
            )

        if not text.strip():
            return None

        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise RemoteError(
                f"Invalid JSON from {method} {path}: {_preview(text)}",
                status_code=status,
                endpoint=path,
                method=method,
                body=text,
            ) from exc
