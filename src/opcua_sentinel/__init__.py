"""
OPC-UA Sentinel - change-filtered monitoring of OPC-UA server nodes

This package polls a fixed set of nodes from an OPC-UA server and reports a
reading only when it is a meaningful change: it moved at least the node's
absolute deadband, or the node has gone unreported for its forced interval.

Main modules:
- monitor: node registry, change detection and the poll loop
- session: sessions for batched reads from the server
- events: sinks for accepted observations (Loki, logging, memory)
- core: configuration and error taxonomy
- cli: uactl operational CLI
"""

__version__ = "0.3.0"
__author__ = "OPC-UA Sentinel Team"

import os
from typing import Any, Dict

# Environment configuration defaults
DEFAULT_CONFIG: Dict[str, Any] = {
    "log_level": "INFO",
}


def get_log_level() -> str:
    """
    Get the log level from the environment.

    Returns:
        str: LOG_LEVEL if set, otherwise INFO
    """
    return os.getenv("LOG_LEVEL", DEFAULT_CONFIG["log_level"])


__all__ = ["__version__", "__author__", "DEFAULT_CONFIG", "get_log_level"]
