"""Custom exception hierarchy for phonestore."""

from __future__ import annotations


class PhoneStoreError(Exception):
    """Base exception for all phonestore errors."""


class PhoneStoreConfigError(PhoneStoreError):
    """Invalid or missing configuration."""


class RemoteError(PhoneStoreError):
    """The remote collection rejected a request or could not be reached.

    This is the only failure kind surfaced for remote operations: a
    non-success status, a transport failure (``status_code`` is ``None``)
    and an unreadable response all end up here.  ``body`` holds the raw
    response text when there was one.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        method: str = "",
        body: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.method = method
        self.body = body
        super().__init__(message)


class PhoneNotFoundError(PhoneStoreError, KeyError):
    """No phone with the requested id is in the local list."""

    def __init__(self, phone_id: str) -> None:
        self.phone_id = phone_id
        super().__init__(f"No phone with id {phone_id!r}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message.
        return str(self.args[0])


class StoreClosedError(PhoneStoreError):
    """Operation attempted on a closed :class:`~phonestore.state.store.PhoneStore`."""


class PendingPhoneError(PhoneStoreError):
    """The phone still carries a temporary id; its add has not been confirmed."""

    def __init__(self, phone_id: str) -> None:
        self.phone_id = phone_id
        super().__init__(f"Phone {phone_id!r} is still being added")
