"""tsdb-writer.

Buffered, batching line-protocol writer for VictoriaMetrics-compatible
time-series databases, built on asyncio and httpx.
"""

from tsdb_writer.buffer import WriteBuffer, WriteBufferMetrics
from tsdb_writer.client import TimeSeriesClient
from tsdb_writer.models import ClientConfig, Point
from tsdb_writer.protocol import EncodingError, encode_point
from tsdb_writer.transport import HttpTransport, QueryResponse, Transport, TransportError

__version__ = "0.1.0"

__all__ = [
    "ClientConfig",
    "EncodingError",
    "HttpTransport",
    "Point",
    "QueryResponse",
    "TimeSeriesClient",
    "Transport",
    "TransportError",
    "WriteBuffer",
    "WriteBufferMetrics",
    "encode_point",
]
