"""
Events package: sinks for accepted observations and Loki integration.
"""

from .loki_client import LokiClient, LokiEntry, LokiPushError, create_loki_client
from .sinks import LoggingSink, LokiSink, MemorySink, Sink, SinkRecord

__all__ = [
    "Sink",
    "SinkRecord",
    "MemorySink",
    "LoggingSink",
    "LokiSink",
    "LokiClient",
    "LokiEntry",
    "LokiPushError",
    "create_loki_client",
]
