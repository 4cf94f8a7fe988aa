"""Pytest configuration and fixtures for tsdb-writer tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence

import pytest
import pytest_asyncio

from benchmarks.mock_server import MockServer, MockServerConfig
from tsdb_writer.models import Point
from tsdb_writer.transport.base import TransportError
from tsdb_writer.transport.models import QueryResponse


class RecordingTransport:
    """In-memory transport that records batches and can fail or block on demand.

    Attributes:
        batches: Batches accepted, in delivery order.
        attempts: Every batch passed to send(), including failed ones.
        fail_count: Number of upcoming sends to reject.
        gate: When set to an unset Event, send() waits on it before resolving.
    """

    def __init__(self) -> None:
        self.batches: list[list[str]] = []
        self.attempts: list[list[str]] = []
        self.fail_count = 0
        self.gate: asyncio.Event | None = None
        self.queries: list[str] = []

    @property
    def delivered(self) -> list[str]:
        return [line for batch in self.batches for line in batch]

    async def send(self, lines: Sequence[str]) -> None:
        batch = list(lines)
        self.attempts.append(batch)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_count > 0:
            self.fail_count -= 1
            raise TransportError("Server responded with status 500: boom", status_code=500)
        self.batches.append(batch)

    async def query(self, expression: str) -> QueryResponse:
        self.queries.append(expression)
        return QueryResponse(status="success")


@pytest.fixture()
def transport() -> RecordingTransport:
    """Provide a fresh recording transport."""
    return RecordingTransport()


@pytest.fixture()
def sample_point() -> Point:
    """Provide the reference point used across encoder and buffer tests."""
    return Point(
        "logs",
        tags={"app": "main"},
        fields={"level": "info", "active": True, "count": 2},
    )


@pytest_asyncio.fixture()
async def mock_server() -> AsyncIterator[MockServer]:
    """Run the mock database server on an ephemeral port."""
    async with MockServer(MockServerConfig(port=0, jitter_seed=42)) as server:
        yield server
