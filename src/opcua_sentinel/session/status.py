"""
OPC-UA StatusCode constants used by the monitor.
"""

from ..monitor.models import STATUS_GOOD

STATUS_UNCERTAIN = 0x40000000
STATUS_BAD = 0x80000000
STATUS_UNCERTAIN_LAST_USABLE_VALUE = 0x40900000
STATUS_BAD_UNEXPECTED_ERROR = 0x80010000
STATUS_BAD_COMMUNICATION_ERROR = 0x80050000
STATUS_BAD_DECODING_ERROR = 0x80070000
STATUS_BAD_TIMEOUT = 0x800A0000
STATUS_BAD_NODE_ID_INVALID = 0x80330000
STATUS_BAD_NODE_ID_UNKNOWN = 0x80340000
STATUS_BAD_NOT_READABLE = 0x803A0000

STATUS_NAMES = {
    STATUS_GOOD: "Good",
    STATUS_UNCERTAIN: "Uncertain",
    STATUS_BAD: "Bad",
    STATUS_UNCERTAIN_LAST_USABLE_VALUE: "UncertainLastUsableValue",
    STATUS_BAD_UNEXPECTED_ERROR: "BadUnexpectedError",
    STATUS_BAD_COMMUNICATION_ERROR: "BadCommunicationError",
    STATUS_BAD_DECODING_ERROR: "BadDecodingError",
    STATUS_BAD_TIMEOUT: "BadTimeout",
    STATUS_BAD_NODE_ID_INVALID: "BadNodeIdInvalid",
    STATUS_BAD_NODE_ID_UNKNOWN: "BadNodeIdUnknown",
    STATUS_BAD_NOT_READABLE: "BadNotReadable",
}


def status_name(status: int) -> str:
    """Return a readable name for a StatusCode, ignoring the info bits."""
    name = STATUS_NAMES.get(status & 0xFFFF0000)
    if name is None:
        return f"0x{status:08X}"
    return name
