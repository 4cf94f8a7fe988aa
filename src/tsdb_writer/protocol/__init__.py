"""Wire encoding module."""

from tsdb_writer.protocol.line_protocol import (
    EncodingError,
    encode_point,
    escape_identifier,
    escape_string_field,
)

__all__ = [
    "EncodingError",
    "encode_point",
    "escape_identifier",
    "escape_string_field",
]
