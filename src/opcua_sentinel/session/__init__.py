"""
Sessions for reading node values from an OPC-UA server.
"""

from .base import Session
from .gateway import GatewaySession
from .status import STATUS_BAD, STATUS_GOOD, status_name

__all__ = [
    "Session",
    "GatewaySession",
    "STATUS_GOOD",
    "STATUS_BAD",
    "status_name",
]
