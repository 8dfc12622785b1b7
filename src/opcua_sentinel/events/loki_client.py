"""
Loki client for pushing accepted observations to Loki.

This client provides a simple interface for sending records to Loki's push API.
It handles the Loki-specific format (labels + log lines) and retries.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from ..core.exceptions import SinkError

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class LokiPushError(SinkError):
    """Raised when pushing to Loki fails."""
    pass


class LokiStream(BaseModel):
    """
    A Loki stream (set of labels + log lines).

    Loki groups logs by their label set. Each unique set of labels
    creates a separate "stream".
    """

    stream: Dict[str, str]  # Labels
    values: List[List[str]]  # [[timestamp_ns, log_line], ...]


class LokiPushRequest(BaseModel):
    """Loki push API request format."""

    streams: List[LokiStream]


class LokiEntry(BaseModel):
    """A single log line waiting to be pushed."""

    labels: Dict[str, str]
    line: Dict[str, Any]
    timestamp: datetime

    def timestamp_ns(self) -> str:
        """Nanoseconds since the epoch; naive timestamps are taken as UTC."""
        timestamp = self.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        delta = timestamp - _EPOCH
        seconds = delta.days * 86400 + delta.seconds
        return str(seconds * 1_000_000_000 + delta.microseconds * 1000)


class LokiClient:
    """
    Client for pushing log entries to Loki.

    Usage:
        client = LokiClient(loki_url="http://localhost:3100")
        await client.push_entries([
            LokiEntry(
                labels={"measurement": "opcua", "tag": "Boiler Temp"},
                line={"value": 81.5},
                timestamp=datetime.now(timezone.utc),
            )
        ])
    """

    def __init__(
        self,
        loki_url: str = "http://localhost:3100",
        timeout: float = 10.0,
        max_retries: int = 3,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Loki client.

        Args:
            loki_url: Base URL of Loki instance (e.g. "http://localhost:3100")
            timeout: HTTP request timeout in seconds
            max_retries: Number of attempts before giving up
            client: Pre-configured httpx client (optional)
        """
        self.loki_url = loki_url.rstrip("/")
        self.push_url = f"{self.loki_url}/loki/api/v1/push"
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

    async def push_entries(self, entries: List[LokiEntry]) -> None:
        """
        Push log entries to Loki.

        Entries are grouped by their label set (stream).

        Args:
            entries: Entries to push

        Raises:
            LokiPushError: If push fails after retries
        """
        if not entries:
            return

        # Group entries by label set (each unique set of labels = one stream)
        streams_map: Dict[str, LokiStream] = {}

        for entry in entries:
            labels_key = "_".join(f"{k}={v}" for k, v in sorted(entry.labels.items()))

            if labels_key not in streams_map:
                streams_map[labels_key] = LokiStream(stream=entry.labels, values=[])

            streams_map[labels_key].values.append(
                [entry.timestamp_ns(), json.dumps(entry.line, default=str)]
            )

        push_request = LokiPushRequest(streams=list(streams_map.values()))

        last_error: Optional[str] = None
        for attempt in range(self.max_retries):
            try:
                response = await self.client.post(
                    self.push_url,
                    json=push_request.model_dump(),
                    headers={"Content-Type": "application/json"},
                )

                if response.is_success:
                    logger.debug(
                        f"Pushed {len(entries)} entr(ies) to Loki in {len(streams_map)} stream(s)"
                    )
                    return

                last_error = f"status {response.status_code}: {response.text}"
                logger.warning(f"Loki push returned {last_error}")

            except httpx.HTTPError as e:
                last_error = str(e)
                logger.warning(f"Loki push attempt {attempt + 1} failed: {e}")

        raise LokiPushError(
            f"Failed to push {len(entries)} entr(ies) to Loki after "
            f"{self.max_retries} attempts: {last_error}"
        )

    async def close(self) -> None:
        """Close the HTTP client if owned by this instance."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def create_loki_client(
    loki_url: Optional[str] = None,
    timeout: float = 10.0,
    max_retries: int = 3,
) -> LokiClient:
    """
    Factory function to create a LokiClient.

    Args:
        loki_url: Loki URL (defaults to http://localhost:3100)
        timeout: HTTP request timeout
        max_retries: Number of retries

    Returns:
        Configured LokiClient instance
    """
    return LokiClient(
        loki_url=loki_url or "http://localhost:3100",
        timeout=timeout,
        max_retries=max_retries,
    )
