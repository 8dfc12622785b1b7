"""
Error taxonomy for OPC-UA Sentinel.

Startup errors (ConfigurationError, SessionConnectionError) are fatal to the
caller. Everything raised during a poll cycle is recoverable: the poll loop
logs it and carries on with the next node or the next tick.
"""

from typing import Any, Optional


class SentinelError(Exception):
    """Base class for all OPC-UA Sentinel errors."""
    pass


class ConfigurationError(SentinelError):
    """Raised when static configuration is invalid."""
    pass


class SessionConnectionError(SentinelError, ConnectionError):
    """Raised when a session to the server cannot be established."""
    pass


class TransportError(SentinelError):
    """Raised when a batched read fails as a whole."""
    pass


class ReadQualityError(SentinelError):
    """Raised when a single node's read result is not of good quality."""

    def __init__(self, node_id: str, status: int, message: Optional[str] = None):
        self.node_id = node_id
        self.status = status
        super().__init__(
            message or f"Bad quality for {node_id}: status 0x{status:08X}"
        )


class MalformedReadingError(SentinelError):
    """Raised when a reading is non-numeric, NaN or infinite."""

    def __init__(self, node_id: str, value: Any):
        self.node_id = node_id
        self.value = value
        super().__init__(f"Malformed reading for {node_id}: {value!r}")


class SinkError(SentinelError):
    """Raised when observations cannot be delivered downstream."""
    pass


__all__ = [
    "SentinelError",
    "ConfigurationError",
    "SessionConnectionError",
    "TransportError",
    "ReadQualityError",
    "MalformedReadingError",
    "SinkError",
]
