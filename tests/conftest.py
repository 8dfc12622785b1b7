"""
Shared fixtures and fakes for OPC-UA Sentinel tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest

from opcua_sentinel.core import config as config_module
from opcua_sentinel.monitor.models import MonitoredNode, NodeDescriptor, ReadOutcome
from opcua_sentinel.session.base import Session

T0 = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


class FakeSession(Session):
    """
    Session that replays scripted batches.

    Each batch is either a list of ReadOutcome or an exception to raise.
    """

    def __init__(self, batches=None, connect_error: Optional[Exception] = None, **kwargs):
        self.batches = list(batches or [])
        self.connect_error = connect_error
        self.requests: List[List[str]] = []
        self.connected = False
        self.closed = False

    async def connect(self) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    async def read(self, node_ids):
        self.requests.append(list(node_ids))
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def close(self) -> None:
        self.closed = True
        self.connected = False


class SlowSession(FakeSession):
    """Session whose reads take a while and track overlapping calls."""

    def __init__(self, delay: float, values: List[float]):
        super().__init__()
        self.delay = delay
        self.values = values
        self.in_flight = 0
        self.max_in_flight = 0

    async def read(self, node_ids):
        self.requests.append(list(node_ids))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return [ReadOutcome(value=v) for v in self.values]


def good(value, timestamp: Optional[datetime] = None) -> ReadOutcome:
    return ReadOutcome(value=value, source_timestamp=timestamp)


def make_node(
    abs_deadband: float = 0.0,
    forced_interval=None,
    current: Optional[float] = None,
    previous: Optional[float] = None,
    last_accepted_at: datetime = T0,
    tag: str = "HeatExchanger1 Temp",
    node_id: str = "ns=2;s=TE-800-07/AI1/PV.CV",
) -> MonitoredNode:
    """Build a node, optionally primed with earlier readings."""
    return MonitoredNode(
        descriptor=NodeDescriptor(
            tag=tag,
            node_id=node_id,
            abs_deadband=abs_deadband,
            forced_interval=forced_interval,
        ),
        last_accepted_at=last_accepted_at,
        current_value=current,
        previous_value=previous,
        has_reading=current is not None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_nodes_yaml(tmp_path):
    path = tmp_path / "nodes.yaml"
    path.write_text(
        "server_name: Plant-A\n"
        "url: opc.tcp://plc-01:4840/endpoint\n"
        "nodes:\n"
        "  - tag: HeatExchanger1 Temp\n"
        "    node_id: \"ns=2;s=TE-800-07/AI1/PV.CV\"\n"
        "    abs_deadband: 0.10\n"
        "    forced_interval: 30s\n"
        "  - tag: HeatExchanger1 Pressure\n"
        "    node_id: \"ns=2;i=1234\"\n"
        "    abs_deadband: 0.0\n"
        "    forced_interval: 1h\n"
        "  - tag: Boiler Level\n"
        "    node_id: \"ns=2;s=LT-101/AI1/PV.CV\"\n"
        "    abs_deadband: 0.5\n"
    )
    return path


@pytest.fixture(autouse=True)
def reset_global_config():
    config_module._config = None
    yield
    config_module._config = None


__all__ = [
    "T0",
    "FakeClock",
    "FakeSession",
    "SlowSession",
    "good",
    "make_node",
]
