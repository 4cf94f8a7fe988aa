"""HTTP transport gateway using httpx.AsyncClient.

Writes are POSTed as newline-joined line protocol to `/write`; queries are
form-encoded POSTs to the Prometheus-compatible query API. A new
httpx.AsyncClient is opened for every call.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from tsdb_writer.models import ClientConfig
from tsdb_writer.transport.base import TransportError
from tsdb_writer.transport.models import QueryResponse

logger = logging.getLogger(__name__)

WRITE_PATH = "/write"
QUERY_PATH = "/prometheus/api/v1/query"
WRITE_SUCCESS_STATUS = 204


class HttpTransport:
    """Transport gateway speaking HTTP to a VictoriaMetrics-compatible server.

    Args:
        config: Client configuration providing the base URL, token and timeout.
        transport: Optional httpx transport, e.g. httpx.MockTransport in tests.

    Example:
        ```python
        transport = HttpTransport(ClientConfig(url="http://127.0.0.1:8428"))
        await transport.send(["cpu,host=a usage=0.5"])
        response = await transport.query("cpu_usage")
        ```
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def write_url(self) -> str:
        """Full URL of the write endpoint."""
        return f"{self._config.url}{WRITE_PATH}"

    @property
    def query_url(self) -> str:
        """Full URL of the query endpoint."""
        return f"{self._config.url}{QUERY_PATH}"

    def _headers(self, content_type: str) -> dict[str, str]:
        headers = {"Content-Type": content_type}
        if self._config.bearer_token:
            headers["Authorization"] = f"Bearer {self._config.bearer_token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=httpx.Timeout(self._config.request_timeout),
        )

    async def send(self, lines: Sequence[str]) -> None:
        """POST a batch of encoded lines to the write endpoint.

        Args:
            lines: Encoded lines in send order.

        Raises:
            TransportError: On any status other than 204 or on a network error.
        """
        body = "\n".join(lines)

        try:
            async with self._client() as client:
                response = await client.post(
                    self.write_url,
                    content=body.encode("utf-8"),
                    headers=self._headers("text/plain"),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Write request failed: {e}") from e

        if response.status_code != WRITE_SUCCESS_STATUS:
            raise TransportError(
                f"Server responded with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        logger.debug(f"Sent {len(lines)} lines to {self.write_url}")

    async def query(self, expression: str) -> QueryResponse:
        """Execute a PromQL/MetricsQL query.

        Args:
            expression: The query expression.

        Returns:
            The parsed QueryResponse.

        Raises:
            TransportError: On a non-2xx status, a network error or an
                unparseable response body.
        """
        try:
            async with self._client() as client:
                response = await client.post(
                    self.query_url,
                    data={"query": expression},
                    headers=self._headers("application/x-www-form-urlencoded"),
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Query request failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"Query failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            return QueryResponse.from_dict(response.json())
        except (ValueError, KeyError, TypeError, IndexError) as e:
            raise TransportError(
                f"Malformed query response: {e}",
                status_code=response.status_code,
                body=response.text,
            ) from e
