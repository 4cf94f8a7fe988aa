"""Buffered write engine with threshold and timer triggered flushes.

The buffer holds encoded lines in insertion order. Appends, drains and
re-queues are synchronous, so on a single event loop an enqueue either lands
in the snapshot of a running drain or after it. Flushes serialize on an
asyncio.Lock; the transport call is the only suspension point.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from tsdb_writer.models import Point
from tsdb_writer.protocol.line_protocol import EncodingError, encode_point
from tsdb_writer.transport.base import Transport

logger = logging.getLogger(__name__)


@dataclass
class WriteBufferMetrics:
    """Counters describing the buffer's activity since construction."""

    queued_lines: int
    lines_enqueued: int
    lines_dropped: int
    lines_delivered: int
    flushes_succeeded: int
    flushes_failed: int
    last_error: str | None = field(default=None)


class WriteBuffer:
    """
    Ordered, mutually-exclusive queue of encoded lines with a flush policy.

    Points are encoded on enqueue and appended to the tail. A flush is
    scheduled in the background once the queue reaches `batch_size`, and a
    periodic task flushes every `flush_interval` seconds. A failed send puts
    the whole snapshot back at the head of the queue, ahead of anything
    enqueued meanwhile, and waits for the next trigger. There is no backoff
    and no upper bound on the queue.

    Args:
        transport: Gateway used to deliver batches.
        batch_size: Queue length that triggers a background flush. Default 1000.
        flush_interval: Seconds between periodic flushes. Default 5.0.
        encoder: Callable turning a Point into a line. Default encode_point.
        structured_logging: Emit events as JSON log lines. Default False.

    Example:
        ```python
        buffer = WriteBuffer(transport, batch_size=500, flush_interval=1.0)
        buffer.start()

        buffer.enqueue(Point("cpu", tags={"host": "a"}, fields={"usage": 0.4}))

        await buffer.shutdown()  # stops the timer and sends what is left
        ```
    """

    def __init__(
        self,
        transport: Transport,
        batch_size: int = 1000,
        flush_interval: float = 5.0,
        encoder: Callable[[Point], str] = encode_point,
        structured_logging: bool = False,
    ) -> None:
        """Initialize the WriteBuffer.

        Raises:
            ValueError: If batch_size is less than 1.
            ValueError: If flush_interval is not positive.
        """
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if flush_interval <= 0:
            raise ValueError("flush_interval must be positive")

        self._transport = transport
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._encoder = encoder
        self._structured_logging = structured_logging

        self._lines: list[str] = []
        self._lock = asyncio.Lock()
        self._timer_task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._background: set[asyncio.Task[int]] = set()
        self._closed = False

        # Metrics
        self._lines_enqueued = 0
        self._lines_dropped = 0
        self._lines_delivered = 0
        self._flushes_succeeded = 0
        self._flushes_failed = 0
        self._last_error: str | None = None

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def batch_size(self) -> int:
        """Queue length that triggers a background flush."""
        return self._batch_size

    @property
    def flush_interval(self) -> float:
        """Seconds between periodic flushes."""
        return self._flush_interval

    @property
    def pending_lines(self) -> tuple[str, ...]:
        """Copy of the queued lines in send order."""
        return tuple(self._lines)

    @property
    def is_running(self) -> bool:
        """Check if the periodic flush task is active."""
        return self._timer_task is not None and not self._timer_task.done()

    @property
    def is_closed(self) -> bool:
        """Check if shutdown has been called."""
        return self._closed

    def _log_event(self, level: int, event: str, message: str, **details: Any) -> None:
        if self._structured_logging:
            logger.log(level, json.dumps({"event": event, **details}))
        else:
            logger.log(level, message)

    def enqueue(self, point: Point) -> bool:
        """Encode a point and append it to the queue.

        Returns without waiting on any network I/O. When the queue reaches
        `batch_size`, a flush is scheduled as a background task.

        Args:
            point: The point to buffer.

        Returns:
            bool: True if the point was queued, False if it could not be encoded.

        Raises:
            RuntimeError: If the buffer has been shut down.
        """
        if self._closed:
            raise RuntimeError("Cannot write to a buffer that has been shut down")

        try:
            line = self._encoder(point)
        except EncodingError as exc:
            self._lines_dropped += 1
            self._log_event(
                logging.WARNING,
                "point_dropped",
                f"Dropped point '{point.measurement}': {exc}",
                measurement=point.measurement,
                reason=str(exc),
            )
            return False

        self._lines.append(line)
        self._lines_enqueued += 1

        if len(self._lines) >= self._batch_size:
            self._schedule_flush()

        return True

    def _schedule_flush(self) -> None:
        """Start flush() as a background task without awaiting it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; threshold flush deferred to the next trigger")
            return

        task = loop.create_task(self.flush())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def flush(self) -> int:
        """Drain the queue and send it as one batch.

        Concurrent callers serialize; a caller that acquires the lock after
        another flush emptied the queue returns immediately. On failure the
        snapshot is restored at the head of the queue in its original order.

        Returns:
            int: Number of lines delivered (0 for an empty queue or a failed send).
        """
        async with self._lock:
            if not self._lines:
                return 0

            snapshot = self._lines
            self._lines = []

            try:
                await self._transport.send(snapshot)
            except asyncio.CancelledError:
                self._requeue(snapshot)
                raise
            except Exception as exc:
                self._requeue(snapshot)
                self._flushes_failed += 1
                self._last_error = str(exc)
                self._log_event(
                    logging.WARNING,
                    "flush_failed",
                    f"Flush of {len(snapshot)} lines failed, re-queued: {exc}",
                    lines=len(snapshot),
                    queued=len(self._lines),
                    error=str(exc),
                )
                return 0

            self._flushes_succeeded += 1
            self._lines_delivered += len(snapshot)
            self._log_event(
                logging.DEBUG,
                "flush_succeeded",
                f"Flushed {len(snapshot)} lines",
                lines=len(snapshot),
                queued=len(self._lines),
            )
            return len(snapshot)

    def _requeue(self, snapshot: list[str]) -> None:
        self._lines[:0] = snapshot

    async def _flush_loop(self) -> None:
        """Periodic flush loop; errors are logged and never stop it.

        Ticks are scheduled from the loop's start time, so a slow send does
        not push later ticks back. Ticks that pass during a send are skipped.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self._flush_interval

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=max(0.0, next_tick - loop.time())
                )
            except TimeoutError:
                pass  # interval elapsed
            else:
                break

            try:
                await self.flush()
            except Exception as exc:
                logger.error(f"Error in periodic flush: {exc}")

            next_tick += self._flush_interval
            now = loop.time()
            if next_tick <= now:
                missed = int((now - next_tick) // self._flush_interval) + 1
                next_tick += missed * self._flush_interval

    def start(self) -> None:
        """Start the periodic flush task on the running event loop.

        Raises:
            RuntimeError: If the buffer has been shut down or no event loop is running.
        """
        if self._closed:
            raise RuntimeError("Cannot start a buffer that has been shut down")
        if self.is_running:
            return

        self._timer_task = asyncio.get_running_loop().create_task(self._flush_loop())
        self._log_event(
            logging.INFO,
            "buffer_started",
            f"Write buffer started (batch_size={self._batch_size}, "
            f"flush_interval={self._flush_interval}s)",
            batch_size=self._batch_size,
            flush_interval=self._flush_interval,
        )

    async def shutdown(self) -> None:
        """Stop the periodic flush and send everything still queued.

        The timer is stopped first (a periodic flush already in progress is
        allowed to finish), then a final flush runs and is awaited, followed
        by any background flushes still pending. Calling this again only
        repeats the final flush.
        """
        self._closed = True
        self._stop_event.set()

        if self._timer_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._timer_task
            self._timer_task = None

        await self.flush()

        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

        self._log_event(
            logging.INFO,
            "buffer_stopped",
            f"Write buffer stopped with {len(self._lines)} lines undelivered",
            queued=len(self._lines),
        )

    def get_metrics(self) -> WriteBufferMetrics:
        """Get current buffer metrics.

        Returns:
            WriteBufferMetrics: Current counters and queue length.
        """
        return WriteBufferMetrics(
            queued_lines=len(self._lines),
            lines_enqueued=self._lines_enqueued,
            lines_dropped=self._lines_dropped,
            lines_delivered=self._lines_delivered,
            flushes_succeeded=self._flushes_succeeded,
            flushes_failed=self._flushes_failed,
            last_error=self._last_error,
        )
