"""Result models for Prometheus-compatible query responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SamplePair = tuple[float, str]


@dataclass(frozen=True, slots=True)
class VectorSample:
    """One series of an instant vector result.

    Attributes:
        metric: Label set identifying the series, including "__name__".
        value: (unix timestamp, value as string).
    """

    metric: dict[str, str]
    value: SamplePair


@dataclass(frozen=True, slots=True)
class MatrixSeries:
    """One series of a range matrix result.

    Attributes:
        metric: Label set identifying the series.
        values: Ordered (unix timestamp, value as string) samples.
    """

    metric: dict[str, str]
    values: list[SamplePair]


@dataclass(frozen=True, slots=True)
class QueryData:
    """The `data` block of a query response.

    Attributes:
        result_type: One of "vector", "matrix", "scalar", "string".
        result: Parsed result; raw JSON for unknown result types.
    """

    result_type: str
    result: list[VectorSample] | list[MatrixSeries] | SamplePair | Any


@dataclass(frozen=True, slots=True)
class QueryResponse:
    """Top-level JSON object returned by the query endpoint.

    Attributes:
        status: "success" or "error".
        data: Result block, None when the server sent none.
        error: Error message for failed queries.
        error_type: Error category for failed queries.
        warnings: Non-fatal warnings reported by the server.
    """

    status: str
    data: QueryData | None = None
    error: str | None = None
    error_type: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        """Whether the server reported success."""
        return self.status == "success"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> QueryResponse:
        """Parse a decoded JSON response body.

        Args:
            payload: Decoded JSON object.

        Returns:
            QueryResponse with typed result entries.

        Raises:
            ValueError: If the payload is not an object or lacks a status.
        """
        if not isinstance(payload, dict) or "status" not in payload:
            raise ValueError("Query response must be an object with a 'status' field")

        raw_data = payload.get("data")
        data = _parse_data(raw_data) if isinstance(raw_data, dict) else None

        return cls(
            status=str(payload["status"]),
            data=data,
            error=payload.get("error"),
            error_type=payload.get("errorType"),
            warnings=list(payload.get("warnings") or []),
        )


def _parse_pair(raw: list[Any]) -> SamplePair:
    return (float(raw[0]), str(raw[1]))


def _parse_data(raw: dict[str, Any]) -> QueryData:
    result_type = str(raw.get("resultType", ""))
    result = raw.get("result")

    if result_type == "vector":
        parsed: Any = [
            VectorSample(metric=dict(item.get("metric", {})), value=_parse_pair(item["value"]))
            for item in result or []
        ]
    elif result_type == "matrix":
        parsed = [
            MatrixSeries(
                metric=dict(item.get("metric", {})),
                values=[_parse_pair(pair) for pair in item.get("values", [])],
            )
            for item in result or []
        ]
    elif result_type in ("scalar", "string"):
        parsed = _parse_pair(result)
    else:
        parsed = result

    return QueryData(result_type=result_type, result=parsed)
