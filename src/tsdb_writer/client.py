"""Client facade combining the write buffer and the HTTP transport."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Self

from tsdb_writer.buffer.write_buffer import WriteBuffer, WriteBufferMetrics
from tsdb_writer.models import ClientConfig, Point
from tsdb_writer.transport.base import Transport
from tsdb_writer.transport.http import HttpTransport
from tsdb_writer.transport.models import QueryResponse

logger = logging.getLogger(__name__)


class TimeSeriesClient:
    """Buffered client for a VictoriaMetrics-compatible time-series database.

    Points are not sent immediately. They are encoded into line protocol and
    collected in memory, then flushed as one request when `batch_size` lines
    are queued or every `flush_interval` seconds, whichever comes first.
    The periodic flush starts at construction when an event loop is running,
    otherwise on the first `write_point` made inside one.

    Args:
        config: Immutable client configuration.
        transport: Optional transport gateway; defaults to HttpTransport(config).

    Example:
        ```python
        config = ClientConfig(url="http://127.0.0.1:8428", batch_size=100, flush_interval=5.0)

        async with TimeSeriesClient(config) as client:
            client.write_point(
                Point(
                    "iot_example",
                    tags={"sensor_id": "sensor1", "room": "living_room"},
                    fields={"temperature": 21.9, "is_heating": True},
                )
            )
            await client.flush()
            response = await client.query("iot_example_temperature")
        # remaining points are flushed on exit
        ```
    """

    def __init__(self, config: ClientConfig, transport: Transport | None = None) -> None:
        self._config = config
        self._transport = transport or HttpTransport(config)
        self._buffer = WriteBuffer(
            self._transport,
            batch_size=config.batch_size,
            flush_interval=config.flush_interval,
            structured_logging=config.structured_logging,
        )
        self._start_if_loop_running()

    def _start_if_loop_running(self) -> None:
        """Start the periodic flush when an event loop is available."""
        if self._buffer.is_running or self._buffer.is_closed:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return  # started by the first write made inside a loop
        self._buffer.start()

    @property
    def config(self) -> ClientConfig:
        """The configuration snapshot taken at construction."""
        return self._config

    @property
    def buffered(self) -> int:
        """Number of lines waiting to be sent."""
        return len(self._buffer)

    async def __aenter__(self) -> Self:
        """Enter async context manager and start the periodic flush.

        Returns:
            Self for context manager protocol.
        """
        self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager and shut the client down."""
        await self.shutdown()

    def start(self) -> None:
        """Start the periodic flush on the running event loop.

        Usually not needed, since construction and writes start it. Idempotent.
        """
        self._buffer.start()

    def write_point(self, point: Point) -> bool:
        """Add a point to the internal buffer.

        Synchronous: no network request is made here. If the buffer reaches
        `batch_size`, a flush is started in the background. Encoding problems
        are logged, never raised.

        Args:
            point: The point to write.

        Returns:
            bool: True if the point was buffered, False if it was dropped.
        """
        accepted = self._buffer.enqueue(point)
        self._start_if_loop_running()
        return accepted

    async def flush(self) -> int:
        """Send everything buffered now.

        Returns:
            int: Number of lines delivered; 0 if nothing was queued or the
                send failed (in which case the lines stay buffered).
        """
        return await self._buffer.flush()

    async def query(self, expression: str) -> QueryResponse:
        """Execute a PromQL/MetricsQL query.

        Queries bypass the buffer and are not retried.

        Args:
            expression: The query expression.

        Returns:
            QueryResponse: The parsed server response.

        Raises:
            TransportError: If the query failed.
        """
        return await self._transport.query(expression)

    async def shutdown(self) -> None:
        """Stop the periodic flush and send all remaining points.

        Call this before the application exits.
        """
        await self._buffer.shutdown()
        if len(self._buffer):
            logger.warning(f"Client shut down with {len(self._buffer)} undelivered lines")

    def get_metrics(self) -> WriteBufferMetrics:
        """Get write buffer metrics."""
        return self._buffer.get_metrics()
