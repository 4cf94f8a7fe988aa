#!/usr/bin/env python3
"""Throughput benchmark for the buffered time-series writer.

Starts the in-process mock server, pushes points through a TimeSeriesClient
and reports the results in JSON format.

Usage:
    python -m benchmarks.runner [--points N] [--batch-size N] [--flush-interval S]
                                [--latency-ms MS] [--error-rate P] [--output FILE]

Options:
    --points N            Number of points to write (default: 10000)
    --batch-size N        Client batch size (default: 1000)
    --flush-interval S    Client flush interval in seconds (default: 5.0)
    --latency-ms MS       Simulated server latency per write (default: 0)
    --error-rate P        Probability of a rejected write (default: 0)
    --output FILE         Output JSON file (default: print only)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path

from benchmarks.mock_server import MockServer, MockServerConfig
from tsdb_writer import ClientConfig, Point, TimeSeriesClient


def build_point(index: int) -> Point:
    """Build a deterministic sample point."""
    return Point(
        "bench_telemetry",
        tags={"sensor_id": f"s{index % 16}", "site": "lab"},
        fields={"temperature": 20.0 + (index % 50) / 10, "seq": index, "ok": index % 7 != 0},
    )


def summarize(points: int, elapsed: float, batches: int, delivered: int, failed: int) -> dict:
    """Aggregate one run into a JSON-serializable summary.

    Args:
        points: Number of points written.
        elapsed: Wall time in seconds, including shutdown.
        batches: Number of write requests accepted by the server.
        delivered: Number of lines received by the server.
        failed: Number of flushes that failed and were re-queued.

    Returns:
        Dictionary with throughput statistics.
    """
    return {
        "points": points,
        "elapsed_sec": elapsed,
        "points_per_sec": points / elapsed if elapsed > 0 else 0.0,
        "batches": batches,
        "avg_batch_size": delivered / batches if batches else 0.0,
        "delivered": delivered,
        "failed_flushes": failed,
        "lossless": delivered == points,
    }


async def run_benchmark(args: argparse.Namespace) -> dict:
    """Run one benchmark against a fresh mock server.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Summary dictionary as produced by summarize().
    """
    server_config = MockServerConfig(
        port=0,
        base_latency_ms=args.latency_ms,
        error_rate=args.error_rate,
        jitter_seed=42,
    )
    async with MockServer(server_config) as server:
        config = ClientConfig.from_env(
            url=server.base_url,
            batch_size=args.batch_size,
            flush_interval=args.flush_interval,
        )

        start_time = time.perf_counter()
        async with TimeSeriesClient(config) as client:
            for index in range(args.points):
                client.write_point(build_point(index))
                if index % config.batch_size == 0:
                    # yield so background flushes can run
                    await asyncio.sleep(0)

            # retry rejected batches until delivered
            while client.buffered:
                await client.flush()

        elapsed = time.perf_counter() - start_time
        metrics = client.get_metrics()

        return summarize(
            points=args.points,
            elapsed=elapsed,
            batches=len(server.received_batches),
            delivered=len(server.received_lines),
            failed=metrics.flushes_failed,
        )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Benchmark the buffered time-series writer")
    parser.add_argument("--points", type=int, default=10_000, help="Number of points to write")
    parser.add_argument("--batch-size", type=int, default=1000, help="Client batch size")
    parser.add_argument(
        "--flush-interval", type=float, default=5.0, help="Client flush interval in seconds"
    )
    parser.add_argument("--latency-ms", type=float, default=0.0, help="Simulated server latency")
    parser.add_argument("--error-rate", type=float, default=0.0, help="Rejected write probability")
    parser.add_argument("--output", type=str, default=None, help="Output JSON file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the benchmark runner."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    summary = asyncio.run(run_benchmark(args))
    output = {
        "timestamp": datetime.now().isoformat(),
        "python_version": sys.version,
        "config": {
            "points": args.points,
            "batch_size": args.batch_size,
            "flush_interval": args.flush_interval,
            "latency_ms": args.latency_ms,
            "error_rate": args.error_rate,
        },
        "results": summary,
    }

    print(json.dumps(output, indent=2))
    if args.output:
        Path(args.output).write_text(json.dumps(output, indent=2), encoding="utf-8")
        print(f"Results saved to: {args.output}")

    return 0 if summary["lossless"] else 1


if __name__ == "__main__":
    sys.exit(main())
