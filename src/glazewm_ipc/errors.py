"""Exception hierarchy for the IPC client."""

from __future__ import annotations


class WmClientError(Exception):
    """Base class for all client errors."""


class WmConnectionError(WmClientError, ConnectionError):
    """The stream could not be opened or was lost."""


class RemoteCommandError(WmClientError):
    """The server replied to a request with an error.

    Attributes:
        message: The encoded request text that was sent
        error: The error text supplied by the server
    """

    def __init__(self, message: str, error: str):
        self.message = message
        self.error = error
        super().__init__(f"Server reply to message '{message}' has error: {error}")


class ProtocolDecodeError(WmClientError, ValueError):
    """An inbound payload could not be decoded into a server message."""

    def __init__(self, reason: str, raw: str | bytes | None = None):
        self.reason = reason
        self.raw = raw
        super().__init__(reason)


class RequestTimeoutError(WmClientError, TimeoutError):
    """No reply arrived for a request within the configured timeout."""

    def __init__(self, message: str, timeout: float):
        self.message = message
        self.timeout = timeout
        super().__init__(f"No reply to message '{message}' within {timeout}s")
