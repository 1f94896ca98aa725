"""Constants shared by the transport and API modules."""

from __future__ import annotations

#: Collection the catalog lives under when none is configured.
DEFAULT_COLLECTION = "phones"

#: The remote store answers every successful call with plain ``200 OK``.
#: Anything else (including 201/204) is treated as a failure unless the
#: configuration relaxes it.
DEFAULT_SUCCESS_STATUSES: frozenset[int] = frozenset({200})

#: Maximum number of body characters quoted in error messages and logs.
BODY_PREVIEW_CHARS = 200

USER_AGENT_PREFIX = "phonestore"
