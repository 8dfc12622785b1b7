"""
Node monitoring data models.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

MEASUREMENT_NAME = "opcua"

# OPC-UA StatusCode severity lives in the two most significant bits
STATUS_SEVERITY_MASK = 0xC0000000
STATUS_GOOD = 0x00000000

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> Any:
    """
    Parse a duration given as a Go-style string, a number of seconds or a timedelta.

    Accepts "30s", "15m", "24h", "1h30m", "250ms", plain numbers ("90", 90.0)
    and timedelta instances. Empty strings and None mean "no duration".
    ISO-8601 strings ("PT30S") are passed through for pydantic to handle.

    Raises:
        ValueError: If the string is not a valid duration
    """
    if value is None or isinstance(value, timedelta):
        return value
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            raise ValueError(f"invalid duration: {value!r}")
        return timedelta(seconds=value)

    text = str(value).strip()
    if not text:
        return None
    if text.upper().startswith(("P", "-P", "+P")):
        return text

    sign = 1
    if text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    try:
        seconds = float(text)
    except ValueError:
        seconds = None
    if seconds is not None:
        if not math.isfinite(seconds):
            raise ValueError(f"invalid duration: {value!r}")
        return timedelta(seconds=sign * seconds)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()

    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration: {value!r}")

    return timedelta(seconds=sign * total)


def status_is_good(status: int) -> bool:
    """Return True if an OPC-UA StatusCode has Good severity."""
    return (status & STATUS_SEVERITY_MASK) == STATUS_GOOD


class NodeDescriptor(BaseModel):
    """
    Static configuration for one monitored node.

    Legacy field names (Tag, NodeID, AbsDeviation, AtLeastEvery) are
    accepted as aliases.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "tag": "HeatExchanger1 Temp",
                "node_id": "ns=2;s=TE-800-07/AI1/PV.CV",
                "abs_deadband": 0.10,
                "forced_interval": "30s",
            }
        },
    )

    tag: str = Field(validation_alias=AliasChoices("tag", "Tag"))
    node_id: str = Field(
        validation_alias=AliasChoices("node_id", "NodeID", "nodeIdentifier")
    )
    abs_deadband: float = Field(
        default=0.0,
        validation_alias=AliasChoices("abs_deadband", "AbsDeviation", "absoluteDeadband"),
        description="Minimum absolute change to report (0 reports every read)",
    )
    forced_interval: Optional[timedelta] = Field(
        default=None,
        validation_alias=AliasChoices("forced_interval", "AtLeastEvery", "forcedInterval"),
        description="Report at least this often regardless of change (None disables)",
    )

    @field_validator("node_id")
    @classmethod
    def validate_node_id(cls, v: str) -> str:
        """Node identifiers must be non-empty; they are passed through unmodified."""
        if not v or not v.strip():
            raise ValueError("node_id must not be empty")
        return v

    @field_validator("abs_deadband")
    @classmethod
    def validate_deadband(cls, v: float) -> float:
        if not math.isfinite(v) or v < 0:
            raise ValueError(f"abs_deadband must be a finite value >= 0, got {v}")
        return v

    @field_validator("forced_interval", mode="before")
    @classmethod
    def parse_forced_interval(cls, v: Any) -> Any:
        return parse_duration(v)

    @field_validator("forced_interval")
    @classmethod
    def validate_forced_interval(cls, v: Optional[timedelta]) -> Optional[timedelta]:
        if v is not None and v < timedelta(0):
            raise ValueError(f"forced_interval must be >= 0, got {v}")
        return v


@dataclass
class MonitoredNode:
    """
    A registered node and its change-detection state.

    Values are shifted by the detector once per poll cycle; last_accepted_at
    moves only when a reading is accepted.
    """

    descriptor: NodeDescriptor
    last_accepted_at: datetime
    current_value: Optional[float] = None
    previous_value: Optional[float] = None
    has_reading: bool = False

    @property
    def tag(self) -> str:
        return self.descriptor.tag

    @property
    def node_id(self) -> str:
        return self.descriptor.node_id

    @property
    def abs_deadband(self) -> float:
        return self.descriptor.abs_deadband

    @property
    def forced_interval(self) -> Optional[timedelta]:
        return self.descriptor.forced_interval

    @property
    def forcing_enabled(self) -> bool:
        return self.forced_interval is not None and self.forced_interval > timedelta(0)


class ReadOutcome(BaseModel):
    """Result of reading a single node within a batched read."""

    value: Any = None
    status: int = STATUS_GOOD
    source_timestamp: Optional[datetime] = None
    server_timestamp: Optional[datetime] = None

    @field_validator("status", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> Any:
        """Accept status codes as integers or hex strings ("0x80340000")."""
        if isinstance(v, str):
            return int(v, 0)
        return v

    @property
    def is_good(self) -> bool:
        return status_is_good(self.status)


class Observation(BaseModel):
    """An accepted reading, ready to be recorded by a sink."""

    model_config = ConfigDict(frozen=True)

    server_name: str
    tag: str
    node_id: str
    value: float
    timestamp: datetime
    forced: bool = False

    def to_tags(self) -> Dict[str, str]:
        return {"server": self.server_name, "tag": self.tag, "NodeID": self.node_id}

    def to_fields(self) -> Dict[str, Any]:
        return {"value": self.value}


@dataclass
class Decision:
    """Outcome of evaluating one reading against a node's policy."""

    accepted: bool
    value: float
    delta: Optional[float] = None
    forced: bool = False
    first_reading: bool = False


class CycleReport(BaseModel):
    """Summary of one poll cycle."""

    started_at: datetime
    accepted: int = 0
    suppressed: int = 0
    skipped: List[Tuple[str, str]] = Field(default_factory=list)
    transport_error: Optional[str] = None
    observations: List[Observation] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.transport_error is None

    def summary(self) -> str:
        if self.transport_error:
            return f"cycle skipped: {self.transport_error}"
        return (
            f"{self.accepted} accepted, {self.suppressed} suppressed, "
            f"{len(self.skipped)} skipped"
        )
