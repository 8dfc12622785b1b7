"""
Core module for OPC-UA Sentinel.

Contains the error taxonomy and configuration shared across all modules.
"""

from .exceptions import (
    ConfigurationError,
    MalformedReadingError,
    ReadQualityError,
    SentinelError,
    SessionConnectionError,
    SinkError,
    TransportError,
)

__all__ = [
    "SentinelError",
    "ConfigurationError",
    "SessionConnectionError",
    "TransportError",
    "ReadQualityError",
    "MalformedReadingError",
    "SinkError",
]
