"""
Registry of monitored nodes.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Iterator, List, Optional, Union

from pydantic import ValidationError

from ..core.exceptions import ConfigurationError
from .models import MonitoredNode, NodeDescriptor

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class NodeRegistry:
    """
    Ordered, fixed collection of monitored nodes.

    Registration order is the order used to build batched read requests and
    to match results back to nodes, so there is no way to remove or reorder
    entries once registered.
    """

    def __init__(self, clock: Clock = utc_now):
        """
        Initialize an empty registry.

        Args:
            clock: Source of the registration time used to seed last_accepted_at
        """
        self._clock = clock
        self._nodes: List[MonitoredNode] = []

    @classmethod
    def from_descriptors(
        cls, descriptors: Iterable[NodeDescriptor], clock: Clock = utc_now
    ) -> "NodeRegistry":
        registry = cls(clock=clock)
        for descriptor in descriptors:
            registry.add(descriptor)
        return registry

    def register(
        self,
        tag: str,
        node_id: str,
        abs_deadband: float = 0.0,
        forced_interval: Optional[Union[timedelta, str, float]] = None,
    ) -> MonitoredNode:
        """
        Register a node for monitoring.

        Args:
            tag: Human-readable label used as a reporting dimension
            node_id: Server-side node identifier, passed through unmodified
            abs_deadband: Minimum absolute change to report
            forced_interval: Maximum time between reports (None or 0 disables)

        Returns:
            The newly registered node

        Raises:
            ConfigurationError: If the node identifier is empty or a policy
                parameter is negative
        """
        try:
            descriptor = NodeDescriptor(
                tag=tag,
                node_id=node_id,
                abs_deadband=abs_deadband,
                forced_interval=forced_interval,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid node {node_id!r}: {e}") from e

        return self.add(descriptor)

    def add(self, descriptor: NodeDescriptor) -> MonitoredNode:
        """Register a node from an already validated descriptor."""
        node = MonitoredNode(descriptor=descriptor, last_accepted_at=self._clock())
        self._nodes.append(node)

        logger.info(
            f"Adding {descriptor.node_id} ({descriptor.tag}) with absolute deadband "
            f"{descriptor.abs_deadband}, forced interval {descriptor.forced_interval or 'disabled'}"
        )
        return node

    def all(self) -> List[MonitoredNode]:
        """Return the registered nodes in registration order."""
        return list(self._nodes)

    def node_ids(self) -> List[str]:
        """Return node identifiers in registration order."""
        return [node.node_id for node in self._nodes]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[MonitoredNode]:
        return iter(list(self._nodes))
