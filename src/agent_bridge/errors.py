"""
agent-bridge error types.

Every failure carries a stable ``code`` so the HTTP layer and the CLI can
render it without inspecting the class.
"""

from typing import Any, Optional


class BridgeError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class TransportError(BridgeError):
    """Connect or write failure on the duplex transport. Recoverable by one reconnect."""

    def __init__(self, message: str, code: str = "transport_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class NotConnected(BridgeError):
    """A frame was sent while the channel was not connected."""

    def __init__(self, message: str = "Channel is not connected"):
        super().__init__("not_connected", message)


class ParseError(BridgeError):
    """An inbound frame could not be decoded. Never fatal for the channel."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__("parse_error", message, {"raw": raw} if raw is not None else None)
        self.raw = raw


class RemoteError(BridgeError):
    """The remote runtime answered a request with an ``error`` frame."""

    def __init__(self, message: str):
        super().__init__("remote_error", message)


class InvalidCursor(BridgeError):
    """Malformed pagination cursor. A client error; never retried."""

    def __init__(self, cursor: str, reason: str = "malformed cursor"):
        super().__init__("invalid_cursor", f"Invalid cursor: {reason}", {"cursor": cursor})
        self.cursor = cursor


class StorageError(BridgeError):
    """Opaque failure from the storage layer, passed through unretried."""

    def __init__(self, message: str):
        super().__init__("storage_error", message)


class NotFound(BridgeError):
    def __init__(self, message: str, code: str = "not_found"):
        super().__init__(code, message)


class ScopeError(BridgeError):
    """Request scope is missing or does not own the target record."""

    def __init__(self, message: str, code: str = "scope_error", status_code: int = 403):
        super().__init__(code, message)
        self.status_code = status_code
