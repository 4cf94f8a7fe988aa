#!/usr/bin/env python3
"""Mock time-series database server for tests and benchmarks.

This module provides an in-process HTTP server that mimics the parts of a
VictoriaMetrics-compatible API the client talks to:
- POST /write accepting newline-separated line protocol (204 on success)
- POST /prometheus/api/v1/query returning an instant vector
- GET /health
- Failure injection (fail the next N writes, or a random error rate)

Usage:
    server = MockServer(MockServerConfig(port=0))
    await server.start()
    ...
    await server.stop()
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web


@dataclass(frozen=True, slots=True)
class MockServerConfig:
    """Configuration for the mock database server.

    Attributes:
        host: Host address to bind to (default: 127.0.0.1)
        port: Port number to listen on, 0 for an ephemeral port (default: 8428)
        base_latency_ms: Fixed latency in milliseconds added to write responses
        jitter_seed: Optional seed for reproducible error injection
        error_rate: Probability of rejecting a write with a 500 (0-1)
        bearer_token: Token required on every request; None disables auth
    """

    host: str = "127.0.0.1"
    port: int = 8428
    base_latency_ms: float = 0.0
    jitter_seed: int | None = None
    error_rate: float = 0.0
    bearer_token: str | None = None


@dataclass(frozen=True, slots=True)
class ParsedLine:
    """A received line split into its series name parts and raw fields."""

    measurement: str
    tags: dict[str, str]
    fields: dict[str, str]
    timestamp: str | None


def _split_unescaped(text: str, separator: str, maxsplit: int = -1) -> list[str]:
    """Split on a separator that is not backslash-escaped or inside quotes."""
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    quoted = False
    for char in text:
        if escaped:
            current.append(char)
            escaped = False
            continue
        if char == "\\":
            current.append(char)
            escaped = True
            continue
        if char == '"':
            quoted = not quoted
        if char == separator and not quoted and (maxsplit < 0 or len(parts) < maxsplit):
            parts.append("".join(current))
            current = []
            continue
        current.append(char)
    parts.append("".join(current))
    return parts


def _unescape(text: str) -> str:
    out: list[str] = []
    chars = iter(text)
    for char in chars:
        if char == "\\":
            out.append(next(chars, ""))
        else:
            out.append(char)
    return "".join(out)


def parse_line(line: str) -> ParsedLine:
    """Parse one line protocol record as received by the server.

    Args:
        line: A single line without the trailing newline.

    Returns:
        ParsedLine with unescaped names and raw field values.

    Raises:
        ValueError: If the line has no field set.
    """
    sections = _split_unescaped(line, " ", maxsplit=2)
    if len(sections) < 2 or not sections[1]:
        raise ValueError(f"Missing field set in line: {line!r}")

    head = _split_unescaped(sections[0], ",")
    tags = {}
    for pair in head[1:]:
        key, value = _split_unescaped(pair, "=", maxsplit=1)
        tags[_unescape(key)] = _unescape(value)

    fields = {}
    for pair in _split_unescaped(sections[1], ","):
        key, value = _split_unescaped(pair, "=", maxsplit=1)
        fields[_unescape(key)] = value

    timestamp = sections[2] if len(sections) > 2 and sections[2] else None
    return ParsedLine(
        measurement=_unescape(head[0]),
        tags=tags,
        fields=fields,
        timestamp=timestamp,
    )


@dataclass
class MockServer:
    """Async HTTP mock of a time-series database write/query API.

    Example:
        ```python
        async with MockServer(MockServerConfig(port=0)) as server:
            config = ClientConfig(url=server.base_url)
            ...
            assert server.received_lines
        ```
    """

    config: MockServerConfig
    received_batches: list[list[str]] = field(default_factory=list, init=False)
    write_requests: int = field(default=0, init=False)
    _fail_next: int = field(default=0, init=False)
    _random: random.Random = field(default_factory=random.Random, init=False)
    _runner: web.AppRunner | None = field(default=None, init=False)
    _site: web.TCPSite | None = field(default=None, init=False)
    _app: web.Application | None = field(default=None, init=False)
    _bound_port: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        """Initialize random number generator for error injection."""
        if self.config.jitter_seed is not None:
            self._random = random.Random(self.config.jitter_seed)

    @property
    def base_url(self) -> str:
        """Get the base URL of the server."""
        port = self._bound_port or self.config.port
        return f"http://{self.config.host}:{port}"

    @property
    def received_lines(self) -> list[str]:
        """All accepted lines in arrival order."""
        return [line for batch in self.received_batches for line in batch]

    def fail_next(self, count: int = 1) -> None:
        """Reject the next `count` write requests with a 500."""
        self._fail_next = count

    def reset(self) -> None:
        """Forget received data and pending failures."""
        self.received_batches.clear()
        self.write_requests = 0
        self._fail_next = 0

    def _authorized(self, request: web.Request) -> bool:
        if self.config.bearer_token is None:
            return True
        return request.headers.get("Authorization") == f"Bearer {self.config.bearer_token}"

    def _should_fail(self) -> bool:
        if self._fail_next > 0:
            self._fail_next -= 1
            return True
        return self._random.random() < self.config.error_rate

    async def handle_health(self, request: web.Request) -> web.Response:
        """Handle health check requests."""
        return web.json_response({"status": "healthy", "server": "mock"})

    async def handle_write(self, request: web.Request) -> web.Response:
        """Handle line protocol writes.

        Returns:
            204 No Content once the batch is recorded, 401 without a valid
            token, 400 for unparseable lines, 500 when a failure is injected.
        """
        self.write_requests += 1

        if self.config.base_latency_ms:
            await asyncio.sleep(self.config.base_latency_ms / 1000.0)

        if not self._authorized(request):
            return web.Response(status=401, text="unauthorized")

        if self._should_fail():
            return web.Response(status=500, text="simulated write failure")

        body = await request.text()
        lines = [line for line in body.split("\n") if line]
        try:
            for line in lines:
                parse_line(line)
        except ValueError as exc:
            return web.Response(status=400, text=str(exc))

        self.received_batches.append(lines)
        return web.Response(status=204)

    def _latest_samples(self, series_name: str) -> list[dict[str, Any]]:
        """Build vector samples for `<measurement>_<field>` from received lines."""
        latest: dict[tuple[tuple[str, str], ...], dict[str, Any]] = {}
        now = time.time()
        for line in self.received_lines:
            parsed = parse_line(line)
            for field_name, raw_value in parsed.fields.items():
                name = f"{parsed.measurement}_{field_name}"
                if name != series_name:
                    continue
                if raw_value.startswith('"'):
                    value = _unescape(raw_value[1:-1])
                else:
                    value = raw_value.removesuffix("i")
                metric = {"__name__": name, **parsed.tags}
                latest[tuple(sorted(metric.items()))] = {"metric": metric, "value": [now, value]}
        return list(latest.values())

    async def handle_query(self, request: web.Request) -> web.Response:
        """Handle instant queries for a bare series name.

        Returns:
            JSON vector result, 400 when the query parameter is missing.
        """
        if not self._authorized(request):
            return web.Response(status=401, text="unauthorized")

        form = await request.post()
        expression = form.get("query")
        if not expression:
            return web.json_response(
                {"status": "error", "errorType": "bad_data", "error": "missing query"},
                status=400,
            )

        return web.json_response(
            {
                "status": "success",
                "data": {
                    "resultType": "vector",
                    "result": self._latest_samples(str(expression)),
                },
            }
        )

    def _create_app(self) -> web.Application:
        """Create the aiohttp application with routes."""
        app = web.Application()
        app.router.add_get("/health", self.handle_health)
        app.router.add_post("/write", self.handle_write)
        app.router.add_post("/prometheus/api/v1/query", self.handle_query)
        return app

    async def start(self) -> None:
        """Start the mock HTTP server.

        Raises:
            RuntimeError: If the server is already running.
        """
        if self._runner is not None:
            raise RuntimeError("Server is already running")

        self._app = self._create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()
        self._bound_port = self.config.port
        if self._runner.addresses:
            address = self._runner.addresses[0]
            if isinstance(address, tuple) and len(address) >= 2:
                self._bound_port = address[1]

        self.reset()

    async def stop(self) -> None:
        """Stop the mock HTTP server.

        Raises:
            RuntimeError: If the server is not running.
        """
        if self._runner is None:
            raise RuntimeError("Server is not running")

        await self._runner.cleanup()
        self._runner = None
        self._site = None
        self._app = None
        self._bound_port = None

    async def __aenter__(self) -> MockServer:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()
