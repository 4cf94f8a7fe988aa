"""Domain models for the buffered time-series writer.

This module defines the point type handed in by applications and the
immutable configuration snapshot shared by the client, buffer and transport.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

FieldValue = int | float | str | bool

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class Point:
    """A single measurement observation.

    Tags and fields are copied into read-only mappings, so a Point cannot be
    changed after construction.

    Attributes:
        measurement: Name of the measurement (metric name prefix).
        tags: Indexed dimensions identifying the series.
        fields: Measured values. At least one is required for encoding.
        timestamp: Optional instant, either a datetime or epoch milliseconds.
            When omitted the server assigns the ingest time.

    Example:
        >>> Point("iot", tags={"sensor": "a1"}, fields={"temperature": 21.5})
    """

    measurement: str
    tags: Mapping[str, str] = field(default_factory=dict)
    fields: Mapping[str, FieldValue] = field(default_factory=dict)
    timestamp: datetime | int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", MappingProxyType(dict(self.tags)))
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def __hash__(self) -> int:
        # mappingproxy is unhashable; hash the frozen item sets instead
        return hash(
            (
                self.measurement,
                frozenset(self.tags.items()),
                frozenset(self.fields.items()),
                self.timestamp,
            )
        )


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Configuration for TimeSeriesClient.

    Taken once at client construction and never mutated afterwards.

    Attributes:
        url: Base URL of the database, e.g. "http://127.0.0.1:8428".
        bearer_token: Optional token sent as "Authorization: Bearer <token>".
        batch_size: Queue length that triggers an immediate background flush (default: 1000).
        flush_interval: Seconds between periodic flushes (default: 5.0).
        request_timeout: Per-request HTTP timeout in seconds, None for no timeout (default: None).
        structured_logging: Emit buffer events as JSON log lines (default: False).
    """

    url: str
    bearer_token: str | None = None
    batch_size: int = 1000
    flush_interval: float = 5.0
    request_timeout: float | None = None
    structured_logging: bool = False

    def __post_init__(self) -> None:
        """Validate and normalize the configuration.

        Raises:
            ValueError: If url is empty, batch_size is less than 1,
                flush_interval is not positive or request_timeout is not positive.
        """
        if not self.url:
            raise ValueError("url must not be empty")
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.flush_interval <= 0:
            raise ValueError("flush_interval must be positive")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")

        object.__setattr__(self, "url", self.url.rstrip("/"))

    @property
    def flush_interval_ms(self) -> int:
        """Flush interval in milliseconds."""
        return int(self.flush_interval * 1000)

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a configuration from TSDB_* environment variables.

        Keyword overrides take precedence over the environment, which takes
        precedence over the defaults.

        Args:
            **overrides: Explicit values for any ClientConfig attribute.

        Returns:
            A validated ClientConfig.

        Raises:
            ValueError: If the resulting configuration is invalid.
        """
        values: dict[str, Any] = {"url": os.getenv("TSDB_URL", "")}

        token = os.getenv("TSDB_BEARER_TOKEN")
        if token:
            values["bearer_token"] = token
        if batch_size := os.getenv("TSDB_BATCH_SIZE"):
            values["batch_size"] = int(batch_size)
        if flush_interval := os.getenv("TSDB_FLUSH_INTERVAL"):
            values["flush_interval"] = float(flush_interval)
        if request_timeout := os.getenv("TSDB_REQUEST_TIMEOUT"):
            values["request_timeout"] = float(request_timeout)
        if structured := os.getenv("TSDB_STRUCTURED_LOGGING"):
            values["structured_logging"] = structured.strip().lower() in _TRUE_VALUES

        values.update(overrides)
        return cls(**values)
