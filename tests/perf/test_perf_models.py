"""
Tests for perf data models.
"""

import pytest

from src.perf.models import (
    CapacityEstimate,
    DeltaReport,
    FieldDelta,
    PerfBaselineSummary,
    RegressionEvaluation,
    StepLoadResult,
    SuggestionCode,
)


class TestSuggestionCode:
    """Tests for SuggestionCode."""

    def test_values_and_labels(self):
        """Test the exported codes and their labels."""
        assert [int(c) for c in SuggestionCode] == [0, 1, 2]
        assert SuggestionCode.SCALE_RECOMMENDED.label == "scale_recommended"


class TestStepLoadResult:
    """Tests for StepLoadResult parsing."""

    def test_from_dict_accepts_integral_floats(self):
        """Test that whole-number floats are accepted as counts."""
        row = StepLoadResult.from_dict(
            {"connections": 10.0, "rps": 40, "p95": 12.5, "errors": 0, "timeouts": 0.0}
        )

        assert row == StepLoadResult(10, 40.0, 12.5, 0, 0)
        assert isinstance(row.connections, int)
        assert row.is_stable

    @pytest.mark.parametrize(
        "field_name,value",
        [
            ("errors", 0.5),
            ("errors", 0.9),
            ("errors", "0"),
            ("errors", True),
            ("errors", -1),
            ("timeouts", 0.1),
            ("timeouts", None),
            ("connections", "10"),
            ("rps", "40"),
            ("p95", float("inf")),
        ],
    )
    def test_from_dict_rejects_inexact_values(self, field_name, value):
        """Test that strings, booleans and fractional counts are not coerced."""
        row = {"connections": 10, "rps": 40, "p95": 12.5, "errors": 0, "timeouts": 0}
        row[field_name] = value

        with pytest.raises(ValueError):
            StepLoadResult.from_dict(row)


class TestCapacityEstimate:
    """Tests for CapacityEstimate serialization."""

    def test_round_trip_through_dict(self):
        """Test that serialized estimates load back unchanged."""
        estimate = CapacityEstimate(90.0, 20, SuggestionCode.APPROACHING, 2, "step-load-a.json")

        assert CapacityEstimate.from_dict(estimate.to_dict()) == estimate

    def test_from_minimal_dict(self):
        """Test that optional fields default when absent."""
        estimate = CapacityEstimate.from_dict(
            {"maxStableRps": 10, "optimalConnections": 5, "suggestionCode": 2}
        )

        assert estimate.suggestion_code is SuggestionCode.SCALE_RECOMMENDED
        assert estimate.stable_steps == 0
        assert estimate.source is None


class TestPerfBaselineSummary:
    """Tests for PerfBaselineSummary."""

    def test_from_dict_defaults_scenario(self):
        """Test that a missing scenario becomes 'unknown'."""
        assert PerfBaselineSummary.from_dict({"p50": 10}).scenario == "unknown"

    def test_non_numeric_fields_become_none(self):
        """Test that non-numeric metrics are dropped to None."""
        summary = PerfBaselineSummary.from_dict(
            {"scenario": "api", "p50": "fast", "p95": True, "rpsAvg": 100, "connections": 8.0}
        )

        assert summary.p50 is None
        assert summary.p95 is None
        assert summary.rps_avg == 100.0
        assert summary.connections == 8

    def test_get_uses_serialized_names(self):
        """Test lookup by serialized field name."""
        summary = PerfBaselineSummary(scenario="api", rps_avg=12.0, rps_p95=15.0)

        assert summary.get("rpsAvg") == 12.0
        assert summary.get("rpsP95") == 15.0
        assert summary.get("p50") is None


class TestReports:
    """Tests for delta and regression report serialization."""

    def test_delta_report_uses_file_names(self):
        """Test that reports name files without their directory."""
        report = DeltaReport(
            scenario="api",
            prev_key="perf-history/a-api.json",
            curr_key="perf-history/b-api.json",
            deltas={"p50": FieldDelta(10.0, 15.0, 50.0), "p95": None},
        )

        assert report.to_dict() == {
            "scenario": "api",
            "prevFile": "a-api.json",
            "currFile": "b-api.json",
            "p50": {"prev": 10.0, "curr": 15.0, "pct": 50.0},
            "p95": None,
            "rpsAvg": None,
            "rpsP95": None,
        }

    def test_regression_evaluation_failed(self):
        """Test the failed flag and serialized deltas."""
        passing = RegressionEvaluation("api", "a", "b", {"p50": 1.0})
        failing = RegressionEvaluation("api", "a", "b", {"p50": 30.0}, ["p50 increased"])

        assert not passing.failed
        assert failing.failed
        assert failing.to_dict()["p50DeltaPct"] == 30.0
        assert failing.to_dict()["rpsAvgDeltaPct"] is None
