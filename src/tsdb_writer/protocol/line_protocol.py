"""InfluxDB line protocol encoding for Points.

Produces one wire line per point:

    <measurement>[,<tag>=<value>...] <field>=<value>[,<field>=<value>...] [<timestamp>]

The encoding is one-way; there is no decode path.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from tsdb_writer.models import FieldValue, Point

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)
_NS_PER_MS = 1_000_000

_IDENTIFIER_SPECIALS = re.compile(r"([,= ])")


class EncodingError(ValueError):
    """Raised when a point cannot be serialized to a line."""

    pass


def escape_identifier(value: str) -> str:
    """Escape commas, equals signs and spaces in a measurement, tag or field key.

    Line breaks cannot be escaped in line protocol and would split the point
    into two records, so they are rejected.

    Raises:
        EncodingError: If the value contains a newline or carriage return.
    """
    if "\n" in value or "\r" in value:
        raise EncodingError(f"Line break in identifier {value!r}")
    return _IDENTIFIER_SPECIALS.sub(r"\\\1", value)


def escape_string_field(value: str) -> str:
    """Escape backslashes and double quotes in a string field value."""
    return value.replace("\\", "\\\\").replace('"', '\\"')


def format_field_value(value: FieldValue) -> str | None:
    """Render a single field value.

    Args:
        value: The field value.

    Returns:
        The wire representation, or None for unsupported types.
    """
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "t" if value else "f"
    if isinstance(value, str):
        return f'"{escape_string_field(value)}"'
    if isinstance(value, int | float):
        return str(value)
    return None


def to_nanoseconds(timestamp: datetime | int) -> int:
    """Convert a millisecond-resolution instant to epoch nanoseconds.

    Args:
        timestamp: A datetime (naive values are taken as local time) or an
            integer number of epoch milliseconds.

    Returns:
        Epoch nanoseconds, truncated to millisecond precision.
    """
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.astimezone()
        millis = (timestamp - _EPOCH) // _ONE_MS
    else:
        millis = int(timestamp)
    return millis * _NS_PER_MS


def encode_point(point: Point) -> str:
    """Serialize a Point into a single line protocol string.

    Args:
        point: The point to encode.

    Returns:
        The encoded line, without a trailing newline.

    Raises:
        EncodingError: If the point has no encodable fields.
    """
    rendered_fields = []
    for key, value in point.fields.items():
        rendered = format_field_value(value)
        if rendered is not None:
            rendered_fields.append(f"{escape_identifier(key)}={rendered}")

    if not rendered_fields:
        raise EncodingError(f"Point '{point.measurement}' has no fields")

    head = escape_identifier(point.measurement)
    if point.tags:
        tags = ",".join(
            f"{escape_identifier(key)}={escape_identifier(value)}"
            for key, value in point.tags.items()
        )
        head = f"{head},{tags}"

    line = f"{head} {','.join(rendered_fields)}"
    if point.timestamp is not None:
        line = f"{line} {to_nanoseconds(point.timestamp)}"
    return line
