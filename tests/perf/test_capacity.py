"""
Tests for capacity estimation from step-load results.
"""

import pytest

from src.core.artifacts import CAPACITY_LATEST
from src.core.errors import MalformedArtifact, MissingArtifact, NoStableCapacity
from src.perf.capacity import CapacityEstimator, classify, parse_step_load, stable_prefix
from src.perf.models import StepLoadResult, SuggestionCode


def _rows(*specs):
    """Build rows from (connections, rps, errors, timeouts) tuples."""
    return [StepLoadResult(c, rps, 10.0, e, t) for c, rps, e, t in specs]


class TestStablePrefix:
    """Tests for stable_prefix."""

    def test_stops_at_first_failing_step(self):
        """Test that clean steps after a failure are ignored."""
        rows = _rows((10, 40, 0, 0), (20, 90, 0, 0), (30, 95, 2, 0), (40, 200, 0, 0))

        assert [r.connections for r in stable_prefix(rows)] == [10, 20]

    def test_timeouts_count_as_unstable(self):
        """Test that a step with timeouts ends the stable prefix."""
        rows = _rows((10, 40, 0, 0), (20, 90, 0, 1))

        assert [r.connections for r in stable_prefix(rows)] == [10]

    def test_empty(self):
        """Test that no rows give an empty prefix."""
        assert stable_prefix([]) == []


class TestClassify:
    """Tests for the suggestion classification."""

    @pytest.mark.parametrize(
        "rps,expected",
        [
            (0.0, SuggestionCode.SCALE_RECOMMENDED),
            (49.99, SuggestionCode.SCALE_RECOMMENDED),
            (50.0, SuggestionCode.APPROACHING),
            (99.99, SuggestionCode.APPROACHING),
            (100.0, SuggestionCode.OK),
            (5000.0, SuggestionCode.OK),
        ],
    )
    def test_default_boundaries(self, rps, expected):
        """Test the default scale and approaching boundaries."""
        assert classify(rps) == expected

    def test_custom_boundaries(self):
        """Test that configured boundaries are honoured."""
        assert classify(150.0, scale_recommended_rps=200, approaching_rps=400) == (
            SuggestionCode.SCALE_RECOMMENDED
        )


class TestCapacityEstimator:
    """Tests for CapacityEstimator."""

    def test_estimate_known_rows(self, step_load_rows):
        """Test the estimate for rows whose third step shows errors."""
        rows = [StepLoadResult.from_dict(r) for r in step_load_rows]

        estimate = CapacityEstimator().estimate(rows)

        assert estimate.max_stable_rps == 90.0
        assert estimate.optimal_connections == 20
        assert estimate.suggestion_code == SuggestionCode.APPROACHING
        assert estimate.stable_steps == 2

    def test_first_maximum_wins_ties(self):
        """Test that the lowest concurrency reaching the max rps is chosen."""
        rows = _rows((10, 120, 0, 0), (20, 120, 0, 0), (30, 110, 0, 0))

        estimate = CapacityEstimator().estimate(rows)

        assert estimate.optimal_connections == 10
        assert estimate.suggestion_code == SuggestionCode.OK

    def test_unstable_first_step(self):
        """Test that failure at the first step means no stable capacity."""
        rows = _rows((10, 40, 1, 0), (20, 90, 0, 0))

        with pytest.raises(NoStableCapacity):
            CapacityEstimator().estimate(rows)

    def test_no_rows(self):
        """Test that an empty result set has no stable capacity."""
        with pytest.raises(NoStableCapacity):
            CapacityEstimator().estimate([])

    def test_latest_key_is_lexicographically_last(self, file_store, write_artifact, step_load_rows):
        """Test that the last step-load filename in sort order is used."""
        write_artifact("perf-history/step-load-2026-10-01.json", step_load_rows)
        write_artifact("perf-history/step-load-2026-10-03.json", step_load_rows)
        write_artifact("perf-history/step-load-2026-10-02.json", step_load_rows)
        write_artifact("perf-history/2026-10-04T00-00-00-000Z-api.json", {"scenario": "api"})

        key = CapacityEstimator.latest_step_load_key(file_store)

        assert key == "perf-history/step-load-2026-10-03.json"

    def test_latest_key_missing(self, file_store):
        """Test that no step-load files raise MissingArtifact."""
        with pytest.raises(MissingArtifact):
            CapacityEstimator.latest_step_load_key(file_store)

    def test_run_writes_artifact(self, file_store, write_artifact, step_load_rows):
        """Test that run overwrites capacity-latest.json with the estimate."""
        write_artifact("perf-history/step-load-old.json", [step_load_rows[0]])
        write_artifact("perf-history/step-load-run2.json", {"results": step_load_rows})

        report = CapacityEstimator().run(file_store)

        assert report == {
            "maxStableRps": 90.0,
            "optimalConnections": 20,
            "suggestionCode": 1,
            "suggestion": "approaching",
            "stableSteps": 2,
            "source": "step-load-run2.json",
        }
        assert file_store.load(CAPACITY_LATEST) == report

    def test_run_keeps_previous_artifact_without_stable_steps(self, file_store, write_artifact):
        """Test that an unusable run leaves the last estimate untouched."""
        previous = {"maxStableRps": 120.0, "optimalConnections": 10, "suggestionCode": 0}
        file_store.save(CAPACITY_LATEST, previous)
        write_artifact(
            "perf-history/step-load-x.json",
            [{"connections": 10, "rps": 5, "p95": 1, "errors": 0, "timeouts": 3}],
        )

        with pytest.raises(NoStableCapacity):
            CapacityEstimator().run(file_store)

        assert file_store.load(CAPACITY_LATEST) == previous


class TestParseStepLoad:
    """Tests for parse_step_load."""

    def test_wrapped_and_bare(self, step_load_rows):
        """Test that wrapped and bare result lists parse the same."""
        assert parse_step_load({"results": step_load_rows}, "k") == parse_step_load(
            step_load_rows, "k"
        )

    @pytest.mark.parametrize(
        "payload",
        [
            {"rows": []},
            "text",
            [{"connections": 10}],
            [{"connections": "ten", "rps": 1, "p95": 1, "errors": 0, "timeouts": 0}],
            [None],
            [{"connections": 10, "rps": 40, "p95": 1, "errors": 0.5, "timeouts": 0}],
            [{"connections": 10, "rps": 40, "p95": 1, "errors": 0.9, "timeouts": 0}],
            [{"connections": 10, "rps": 40, "p95": 1, "errors": "0", "timeouts": 0}],
            [{"connections": 10, "rps": 40, "p95": 1, "errors": True, "timeouts": 0}],
            [{"connections": 10, "rps": 40, "p95": 1, "errors": 0, "timeouts": 0.2}],
            [{"connections": 10.5, "rps": 40, "p95": 1, "errors": 0, "timeouts": 0}],
        ],
    )
    def test_malformed(self, payload):
        """Test that invalid structures and inexact counts raise MalformedArtifact."""
        with pytest.raises(MalformedArtifact):
            parse_step_load(payload, "perf-history/step-load-x.json")

    def test_fractional_errors_never_count_as_stable(self, file_store, write_artifact):
        """Test that a step reporting fractional errors is not estimated from."""
        write_artifact(
            "perf-history/step-load-1.json",
            [{"connections": 10, "rps": 40, "p95": 1, "errors": 0.9, "timeouts": 0}],
        )

        with pytest.raises(MalformedArtifact):
            CapacityEstimator().run(file_store)

        assert not file_store.exists(CAPACITY_LATEST)
