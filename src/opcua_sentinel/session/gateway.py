"""
OPC-UA session over an HTTP gateway.

The gateway owns the binary OPC-UA connection (secure channel, session
activation) and exposes session creation and batched reads as JSON over
HTTP. Only anonymous sessions with security mode None are supported.
"""

import logging
from typing import Any, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from ..core.exceptions import SessionConnectionError, TransportError
from ..monitor.models import ReadOutcome
from .base import Session
from .status import STATUS_BAD_DECODING_ERROR, STATUS_GOOD

logger = logging.getLogger(__name__)


class GatewaySession(Session):
    """
    Session to an OPC-UA server through an HTTP gateway.

    Usage:
        session = GatewaySession(
            endpoint_url="opc.tcp://plc-01:4840/endpoint",
            gateway_url="http://localhost:8080",
        )
        await session.connect()
        outcomes = await session.read(["ns=2;i=1234", "ns=2;s=TE-800-07/AI1/PV.CV"])
        await session.close()
    """

    def __init__(
        self,
        endpoint_url: str,
        gateway_url: str = "http://localhost:8080",
        timeout: float = 10.0,
        max_age_ms: int = 2000,
        security_mode: str = "None",
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize gateway session.

        Args:
            endpoint_url: OPC-UA server endpoint (e.g. "opc.tcp://host:4840/endpoint")
            gateway_url: Base URL of the HTTP gateway
            timeout: HTTP request timeout in seconds
            max_age_ms: Maximum age of cached values the server may return
            security_mode: Message security mode requested from the server
            client: Pre-configured httpx client (optional)
        """
        self.endpoint_url = endpoint_url
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout = timeout
        self.max_age_ms = max_age_ms
        self.security_mode = security_mode
        self.session_id: Optional[str] = None

        if client is not None:
            self.client = client
            self._owns_client = False
        else:
            self.client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

    @property
    def connected(self) -> bool:
        return self.session_id is not None

    async def connect(self) -> None:
        logger.info(f"Connecting to {self.endpoint_url} via {self.gateway_url}")

        try:
            response = await self.client.post(
                f"{self.gateway_url}/sessions",
                json={
                    "endpointUrl": self.endpoint_url,
                    "securityMode": self.security_mode,
                },
            )
            response.raise_for_status()
            session_id = response.json().get("sessionId")
        except httpx.HTTPError as e:
            raise SessionConnectionError(
                f"Connection to {self.endpoint_url} failed: {e}"
            ) from e
        except (ValueError, AttributeError) as e:
            raise SessionConnectionError(
                f"Malformed session response from {self.gateway_url}: {e}"
            ) from e

        if not session_id:
            raise SessionConnectionError(
                f"No sessionId in response from {self.gateway_url}"
            )

        self.session_id = str(session_id)
        logger.info(f"Session {self.session_id} established")

    async def read(self, node_ids: Sequence[str]) -> List[ReadOutcome]:
        if not self.session_id:
            raise TransportError("No session")

        try:
            response = await self.client.post(
                f"{self.gateway_url}/sessions/{self.session_id}/read",
                json={
                    "nodesToRead": list(node_ids),
                    "maxAge": self.max_age_ms,
                    "timestampsToReturn": "Both",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise TransportError(f"Read of {len(node_ids)} node(s) failed: {e}") from e
        except ValueError as e:
            raise TransportError(f"Malformed read response: {e}") from e

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise TransportError("Read response has no results list")

        return [self._parse_result(index, item) for index, item in enumerate(results)]

    async def close(self) -> None:
        if self.session_id:
            try:
                await self.client.delete(f"{self.gateway_url}/sessions/{self.session_id}")
            except httpx.HTTPError as e:
                logger.warning(f"Close session warning: {e}")
            self.session_id = None

        if self._owns_client:
            await self.client.aclose()

    async def check_connection(self) -> bool:
        """Check that the gateway is reachable."""
        try:
            response = await self.client.get(f"{self.gateway_url}/health")
            return response.is_success
        except httpx.HTTPError as e:
            logger.warning(f"Gateway check failed: {e}")
            return False

    def _parse_result(self, index: int, item: Any) -> ReadOutcome:
        """Parse one result; an undecodable result becomes a Bad outcome for its node only."""
        try:
            if not isinstance(item, dict):
                raise TypeError(f"expected an object, got {type(item).__name__}")

            return ReadOutcome(
                value=item.get("value"),
                status=item.get("statusCode", STATUS_GOOD),
                source_timestamp=item.get("sourceTimestamp"),
                server_timestamp=item.get("serverTimestamp"),
            )
        except (ValidationError, ValueError, TypeError) as e:
            logger.warning(f"Undecodable read result at position {index}: {e}")
            return ReadOutcome(value=None, status=STATUS_BAD_DECODING_ERROR)
