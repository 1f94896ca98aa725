"""Client configuration for phonestore."""

from __future__ import annotations

import dataclasses
import os
from importlib.metadata import PackageNotFoundError, version
from typing import Any

from phonestore._constants import DEFAULT_COLLECTION, DEFAULT_SUCCESS_STATUSES, USER_AGENT_PREFIX
from phonestore.exceptions import PhoneStoreConfigError


def _default_user_agent() -> str:
    try:
        pkg_version = version("phonestore")
    except PackageNotFoundError:
        pkg_version = "0+local"
    return f"{USER_AGENT_PREFIX}/{pkg_version}"


def parse_statuses(value: str) -> frozenset[int]:
    """Parse a comma separated list of HTTP status codes (``"200,204"``)."""
    statuses: set[int] = set()
    for part in value.split(","):
        token = part.strip()
        if not token:
            continue
        try:
            status = int(token)
        except ValueError as exc:
            raise PhoneStoreConfigError(f"Invalid HTTP status {token!r} in {value!r}") from exc
        if not 100 <= status <= 599:
            raise PhoneStoreConfigError(f"HTTP status out of range: {status}")
        statuses.add(status)
    if not statuses:
        raise PhoneStoreConfigError("At least one success status is required")
    return frozenset(statuses)


@dataclasses.dataclass(frozen=True)
class StoreConfig:
    """Remote store configuration.

    Parameters
    ----------
    base_url : str
        Root URL of the realtime database, e.g.
        ``"https://example-default-rtdb.firebaseio.com"``.
    collection : str
        Name of the collection holding the catalog.
    success_statuses : frozenset[int]
        Response statuses accepted as success.  Defaults to exactly
        ``{200}``; relax it for backends answering ``201``/``204``.
    user_agent : str
        ``User-Agent`` header sent with every request.
    """

    base_url: str
    collection: str = DEFAULT_COLLECTION
    success_statuses: frozenset[int] = DEFAULT_SUCCESS_STATUSES
    user_agent: str = dataclasses.field(default_factory=_default_user_agent)

    def __post_init__(self) -> None:
        if not self.base_url or not self.base_url.strip():
            raise PhoneStoreConfigError("base_url must be non-empty")
        if not self.collection or "/" in self.collection.strip("/"):
            raise PhoneStoreConfigError(f"Invalid collection name: {self.collection!r}")
        if not self.success_statuses:
            raise PhoneStoreConfigError("At least one success status is required")

    @property
    def root_url(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.strip().rstrip("/")

    @classmethod
    def from_env(cls, **overrides: Any) -> StoreConfig:
        """Create configuration from environment variables.

        Reads ``PHONESTORE_BASE_URL``, ``PHONESTORE_COLLECTION`` and
        ``PHONESTORE_SUCCESS_STATUSES`` (comma separated).  Explicit
        keyword arguments override environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "PHONESTORE_BASE_URL": "base_url",
            "PHONESTORE_COLLECTION": "collection",
            "PHONESTORE_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        statuses_env = env.get("PHONESTORE_SUCCESS_STATUSES")
        if statuses_env is not None and "success_statuses" not in overrides:
            config_kwargs["success_statuses"] = parse_statuses(statuses_env)

        config_kwargs.update(overrides)

        if "base_url" not in config_kwargs:
            raise PhoneStoreConfigError("PHONESTORE_BASE_URL is not set")

        return cls(**config_kwargs)
