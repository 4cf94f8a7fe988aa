"""Base Protocol for transport gateways.

The write buffer depends only on this protocol; the HTTP implementation lives
in tsdb_writer.transport.http.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from tsdb_writer.transport.models import QueryResponse


class TransportError(Exception):
    """Raised when a send or query fails.

    Attributes:
        status_code: HTTP status of the response, None for network-level failures.
        body: Response body or error text, kept as diagnostic text.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@runtime_checkable
class Transport(Protocol):
    """Protocol defining the gateway used by the write buffer and client.

    Example:
        >>> from tsdb_writer.transport import HttpTransport, Transport
        >>> from tsdb_writer.models import ClientConfig
        >>> isinstance(HttpTransport(ClientConfig(url="http://localhost:8428")), Transport)
        True
    """

    async def send(self, lines: Sequence[str]) -> None:
        """Deliver an ordered batch of encoded lines.

        Args:
            lines: Encoded lines in send order.

        Raises:
            TransportError: If the batch was not accepted.
        """
        ...

    async def query(self, expression: str) -> QueryResponse:
        """Run a query expression.

        Args:
            expression: PromQL/MetricsQL expression.

        Returns:
            The parsed query response.

        Raises:
            TransportError: If the query failed.
        """
        ...
