"""Transport gateways for the write and query paths."""

from tsdb_writer.transport.base import Transport, TransportError
from tsdb_writer.transport.http import HttpTransport
from tsdb_writer.transport.models import (
    MatrixSeries,
    QueryData,
    QueryResponse,
    SamplePair,
    VectorSample,
)

__all__ = [
    "HttpTransport",
    "MatrixSeries",
    "QueryData",
    "QueryResponse",
    "SamplePair",
    "Transport",
    "TransportError",
    "VectorSample",
]
