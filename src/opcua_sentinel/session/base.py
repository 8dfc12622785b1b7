"""
Session interface used by the poll loop to talk to an OPC-UA server.
"""

from abc import ABC, abstractmethod
from typing import List, Sequence

from ..monitor.models import ReadOutcome


class Session(ABC):
    """
    A stateful connection to an OPC-UA server.

    Implementations must return read results in the same order as the
    requested node identifiers, one result per identifier.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish the session.

        Raises:
            SessionConnectionError: If the session cannot be established
        """

    @abstractmethod
    async def read(self, node_ids: Sequence[str]) -> List[ReadOutcome]:
        """
        Read the value attribute of every node in one batched request.

        Raises:
            TransportError: If the request fails as a whole
        """

    async def close(self) -> None:
        """Close the session."""

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
