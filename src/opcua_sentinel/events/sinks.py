"""
Sinks that receive accepted observations.

The poll loop calls record() once per accepted observation and flush() once
at the end of every cycle. Any batching is up to the sink.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .loki_client import LokiClient, LokiEntry, create_loki_client

logger = logging.getLogger(__name__)


@dataclass
class SinkRecord:
    """One recorded measurement."""
    measurement: str
    tags: Dict[str, str]
    fields: Dict[str, Any]
    timestamp: datetime


class Sink(ABC):
    """Time-series accumulator for accepted observations."""

    @abstractmethod
    async def record(
        self,
        measurement: str,
        tags: Dict[str, str],
        fields: Dict[str, Any],
        timestamp: datetime,
    ) -> None:
        """
        Record one measurement.

        Raises:
            SinkError: If the measurement cannot be delivered
        """

    async def flush(self) -> None:
        """Deliver any buffered measurements."""

    async def close(self) -> None:
        await self.flush()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class MemorySink(Sink):
    """Keeps every record in memory."""

    def __init__(self):
        self.records: List[SinkRecord] = []

    async def record(self, measurement, tags, fields, timestamp) -> None:
        self.records.append(SinkRecord(measurement, dict(tags), dict(fields), timestamp))

    def values_for(self, tag: str) -> List[Any]:
        return [r.fields.get("value") for r in self.records if r.tags.get("tag") == tag]


class LoggingSink(Sink):
    """Writes every record to the log. Used for dry runs."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    async def record(self, measurement, tags, fields, timestamp) -> None:
        logger.log(
            self.level,
            f"{measurement} {tags.get('server')}/{tags.get('tag')} "
            f"[{tags.get('NodeID')}] {fields} @ {timestamp.isoformat()}",
        )


class LokiSink(Sink):
    """
    Buffers records and pushes them to Loki.

    Each record becomes one log line labelled with the measurement name and
    its tags. The buffer is pushed when it reaches batch_size and whenever
    flush() is called. A failed push drops the batch and raises SinkError.
    """

    def __init__(
        self,
        loki_client: Optional[LokiClient] = None,
        loki_url: Optional[str] = None,
        batch_size: int = 100,
    ):
        """
        Initialize Loki sink.

        Args:
            loki_client: Pre-configured LokiClient (optional)
            loki_url: Loki URL if client not provided
            batch_size: Number of records that triggers a push
        """
        if loki_client:
            self.client = loki_client
            self._owns_client = False
        else:
            self.client = create_loki_client(loki_url=loki_url)
            self._owns_client = True

        self.batch_size = max(1, batch_size)
        self._buffer: List[LokiEntry] = []

    @property
    def pending(self) -> int:
        return len(self._buffer)

    async def record(self, measurement, tags, fields, timestamp) -> None:
        labels = {"measurement": measurement}
        labels.update(tags)
        self._buffer.append(LokiEntry(labels=labels, line=dict(fields), timestamp=timestamp))

        if len(self._buffer) >= self.batch_size:
            await self.flush()

    async def flush(self) -> None:
        if not self._buffer:
            return

        entries, self._buffer = self._buffer, []
        await self.client.push_entries(entries)

    async def close(self) -> None:
        try:
            await self.flush()
        finally:
            if self._owns_client:
                await self.client.close()
