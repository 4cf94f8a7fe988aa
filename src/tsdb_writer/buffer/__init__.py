"""Buffered write engine module."""

from tsdb_writer.buffer.write_buffer import WriteBuffer, WriteBufferMetrics

__all__ = [
    "WriteBuffer",
    "WriteBufferMetrics",
]
