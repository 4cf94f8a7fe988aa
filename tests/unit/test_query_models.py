"""Tests for query response parsing."""

from __future__ import annotations

import pytest

from tsdb_writer.transport.models import MatrixSeries, QueryResponse, VectorSample


class TestQueryResponseParsing:
    """Test cases for QueryResponse.from_dict."""

    def test_vector(self) -> None:
        """Instant vectors become VectorSample objects."""
        response = QueryResponse.from_dict(
            {
                "status": "success",
                "data": {
                    "resultType": "vector",
                    "result": [{"metric": {"__name__": "up"}, "value": [1700000000, "1"]}],
                },
            }
        )

        assert response.data is not None
        assert response.data.result == [
            VectorSample(metric={"__name__": "up"}, value=(1700000000.0, "1"))
        ]

    def test_matrix(self) -> None:
        """Range matrices become MatrixSeries with ordered samples."""
        response = QueryResponse.from_dict(
            {
                "status": "success",
                "data": {
                    "resultType": "matrix",
                    "result": [
                        {
                            "metric": {"__name__": "up", "job": "a"},
                            "values": [[1, "0"], [2, "1"]],
                        }
                    ],
                },
            }
        )

        assert response.data is not None
        assert response.data.result == [
            MatrixSeries(metric={"__name__": "up", "job": "a"}, values=[(1.0, "0"), (2.0, "1")])
        ]

    @pytest.mark.parametrize("result_type", ["scalar", "string"])
    def test_scalar_and_string(self, result_type: str) -> None:
        """Scalar and string results are a single sample pair."""
        response = QueryResponse.from_dict(
            {"status": "success", "data": {"resultType": result_type, "result": [3, "42"]}}
        )

        assert response.data is not None
        assert response.data.result_type == result_type
        assert response.data.result == (3.0, "42")

    def test_unknown_result_type_keeps_raw(self) -> None:
        """Unknown result types are passed through untouched."""
        raw = {"anything": True}
        response = QueryResponse.from_dict(
            {"status": "success", "data": {"resultType": "exotic", "result": raw}}
        )

        assert response.data is not None
        assert response.data.result == raw

    def test_error_response(self) -> None:
        """Error payloads expose error details and report no success."""
        response = QueryResponse.from_dict(
            {
                "status": "error",
                "errorType": "bad_data",
                "error": "parse error",
                "warnings": ["slow"],
            }
        )

        assert not response.is_success
        assert response.data is None
        assert response.error == "parse error"
        assert response.error_type == "bad_data"
        assert response.warnings == ["slow"]

    def test_missing_status(self) -> None:
        """Payloads without a status are rejected."""
        with pytest.raises(ValueError, match="status"):
            QueryResponse.from_dict({"data": {}})
