"""
Change detection for monitored nodes.

A reading is reported when it moved at least the node's absolute deadband
away from the previous reading, or when the node has not been reported for
its forced interval. Equality counts as a change (delta >= deadband), so a
deadband of 0 reports every read.
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional

from ..core.exceptions import MalformedReadingError
from .models import Decision, MonitoredNode, Observation, ReadOutcome

logger = logging.getLogger(__name__)


class ChangeDetector:
    """
    Decides, per node and per poll cycle, whether a reading is reportable.

    The detector holds no state of its own. All state lives on the
    MonitoredNode passed in, and is only mutated once a decision has been
    fully computed.
    """

    def evaluate(self, node: MonitoredNode, new_value: Any, now: datetime) -> Decision:
        """
        Shift a new reading into the node's state and decide acceptance.

        Args:
            node: Node to update
            new_value: Freshly read value
            now: Reference time for the forced interval check

        Returns:
            Decision for this reading

        Raises:
            MalformedReadingError: If the value is not a finite number. The
                node is left exactly as it was.
        """
        value = self._coerce(node, new_value)

        first_reading = not node.has_reading
        previous = node.current_value
        delta = None if first_reading else abs(value - previous)
        forced = self._forced_interval_due(node, now)

        changed = first_reading or delta >= node.abs_deadband
        accepted = changed or forced

        node.previous_value = previous
        node.current_value = value
        node.has_reading = True
        if accepted:
            node.last_accepted_at = now

        decision = Decision(
            accepted=accepted,
            value=value,
            delta=delta,
            forced=forced and not changed,
            first_reading=first_reading,
        )

        logger.debug(
            f"{node.node_id}: value={value} delta={delta} forced={decision.forced} "
            f"-> {'accept' if accepted else 'suppress'}"
        )
        return decision

    def observe(
        self,
        node: MonitoredNode,
        outcome: ReadOutcome,
        now: datetime,
        server_name: str,
    ) -> Optional[Observation]:
        """
        Evaluate a read result and build an Observation if it is accepted.

        The Observation carries the server-asserted source timestamp, falling
        back to the server timestamp and then to now.

        Raises:
            MalformedReadingError: If the value is not a finite number
        """
        decision = self.evaluate(node, outcome.value, now)
        if not decision.accepted:
            return None

        timestamp = outcome.source_timestamp or outcome.server_timestamp or now
        return Observation(
            server_name=server_name,
            tag=node.tag,
            node_id=node.node_id,
            value=decision.value,
            timestamp=timestamp,
            forced=decision.forced,
        )

    def needs_update(self, node: MonitoredNode, now: datetime) -> bool:
        """
        Check whether the node's current state is reportable, without mutating it.

        A node with fewer than two readings always needs an update.
        """
        if node.previous_value is None or node.current_value is None:
            return True
        if abs(node.current_value - node.previous_value) >= node.abs_deadband:
            return True
        return self._forced_interval_due(node, now)

    def _forced_interval_due(self, node: MonitoredNode, now: datetime) -> bool:
        if not node.forcing_enabled:
            return False
        return now - node.last_accepted_at >= node.forced_interval

    def _coerce(self, node: MonitoredNode, value: Any) -> float:
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError) as e:
            raise MalformedReadingError(node.node_id, value) from e

        if not math.isfinite(number):
            raise MalformedReadingError(node.node_id, value)

        return number
