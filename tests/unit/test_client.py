"""Unit tests for the TimeSeriesClient facade."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from tsdb_writer.client import TimeSeriesClient
from tsdb_writer.models import ClientConfig, Point
from tsdb_writer.transport.base import TransportError
from tsdb_writer.transport.http import HttpTransport


@pytest.fixture()
def config() -> ClientConfig:
    return ClientConfig(url="http://tsdb.local:8428", batch_size=3, flush_interval=10.0)


class TestTimeSeriesClientConstruction:
    """Tests for client wiring."""

    def test_default_transport_is_http(self, config: ClientConfig) -> None:
        """Without an explicit transport the HTTP gateway is used."""
        client = TimeSeriesClient(config)
        assert isinstance(client._transport, HttpTransport)

    def test_buffer_uses_config(self, config: ClientConfig, transport) -> None:
        """Batch size and interval come from the configuration."""
        client = TimeSeriesClient(config, transport=transport)
        assert client.config is config
        assert client._buffer.batch_size == 3
        assert client._buffer.flush_interval == 10.0


class TestTimeSeriesClientWrites:
    """Tests for the write path."""

    @pytest.mark.asyncio
    async def test_write_point_then_flush(self, config, transport, sample_point) -> None:
        """Buffered points are sent on an explicit flush."""
        client = TimeSeriesClient(config, transport=transport)

        assert client.write_point(sample_point) is True
        assert client.buffered == 1
        assert await client.flush() == 1

        assert transport.delivered == ['logs,app=main level="info",active=t,count=2']
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_write_point_never_raises_for_bad_points(self, config, transport) -> None:
        """Unencodable points are reported through the return value and metrics."""
        client = TimeSeriesClient(config, transport=transport)

        assert client.write_point(Point("empty")) is False
        assert client.get_metrics().lines_dropped == 1
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_write_point_never_raises_for_transport_failures(
        self, config, transport
    ) -> None:
        """A failing threshold flush keeps the points buffered."""
        transport.fail_count = 1
        client = TimeSeriesClient(config, transport=transport)

        for i in range(3):
            assert client.write_point(Point("cpu", fields={"v": i})) is True

        await client.shutdown()

        assert transport.attempts[0] == ["cpu v=0", "cpu v=1", "cpu v=2"]
        assert transport.delivered == ["cpu v=0", "cpu v=1", "cpu v=2"]
        assert client.get_metrics().flushes_failed == 1

    @pytest.mark.asyncio
    async def test_context_manager_starts_and_shuts_down(self, config, transport) -> None:
        """The async context manager runs the timer and flushes on exit."""
        async with TimeSeriesClient(config, transport=transport) as client:
            assert client._buffer.is_running
            client.write_point(Point("cpu", fields={"v": 1}))

        assert transport.delivered == ["cpu v=1"]
        assert not client._buffer.is_running


class TestTimeSeriesClientPeriodicFlush:
    """Tests for the automatically started periodic flush."""

    @pytest.mark.asyncio
    async def test_timer_runs_without_explicit_start(self, transport) -> None:
        """A client built inside a loop flushes partial batches on its own."""
        config = ClientConfig(url="http://tsdb.local:8428", batch_size=100, flush_interval=0.05)
        client = TimeSeriesClient(config, transport=transport)

        assert client._buffer.is_running
        client.write_point(Point("m", fields={"v": 1}))
        await asyncio.sleep(0.3)

        assert transport.delivered == ["m v=1"]
        await client.shutdown()

    def test_constructed_outside_loop_starts_on_first_write(self, transport) -> None:
        """Without a running loop the timer starts with the first write inside one."""
        config = ClientConfig(url="http://tsdb.local:8428", batch_size=100, flush_interval=0.05)
        client = TimeSeriesClient(config, transport=transport)
        assert not client._buffer.is_running

        async def scenario() -> None:
            client.write_point(Point("m", fields={"v": 1}))
            assert client._buffer.is_running
            await asyncio.sleep(0.3)
            assert transport.delivered == ["m v=1"]
            await client.shutdown()

        asyncio.run(scenario())

    @pytest.mark.asyncio
    async def test_write_after_shutdown_does_not_restart(self, transport) -> None:
        """A shut-down client rejects writes and keeps its timer stopped."""
        client = TimeSeriesClient(
            ClientConfig(url="http://tsdb.local:8428", flush_interval=0.05), transport=transport
        )
        await client.shutdown()

        with pytest.raises(RuntimeError, match="shut down"):
            client.write_point(Point("m", fields={"v": 1}))
        assert not client._buffer.is_running


class TestTimeSeriesClientQuery:
    """Tests for the query path."""

    @pytest.mark.asyncio
    async def test_query_delegates_to_transport(self, config, transport) -> None:
        """Queries go straight to the transport, bypassing the buffer."""
        client = TimeSeriesClient(config, transport=transport)
        client.write_point(Point("cpu", fields={"v": 1}))

        response = await client.query("cpu_v")

        assert response.is_success
        assert transport.queries == ["cpu_v"]
        assert client.buffered == 1
        await client.shutdown()

    @pytest.mark.asyncio
    async def test_query_failure_propagates(self, config) -> None:
        """Query failures are raised to the caller without retry."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="query engine down")

        client = TimeSeriesClient(
            config, transport=HttpTransport(config, transport=httpx.MockTransport(handler))
        )

        with pytest.raises(TransportError, match="query engine down"):
            await client.query("up")

        assert calls == 1
        await client.shutdown()
