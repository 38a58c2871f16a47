"""
Tests for the exporter-side gauge cache.
"""

import pytest

from src.analytics.models import ThresholdRecord
from src.core.artifacts import CAPACITY_LATEST, RESIDUAL_ANOMALIES, RESIDUAL_THRESHOLDS
from src.gauges.cache import GaugeCache, GaugeCachePublisher
from src.perf.models import CapacityEstimate, SuggestionCode

CAPACITY = {
    "maxStableRps": 90.0,
    "optimalConnections": 20,
    "suggestionCode": 1,
    "suggestion": "approaching",
    "stableSteps": 2,
    "source": "step-load-1.json",
}
ANOMALIES = {
    "count": 2,
    "mean": 0.0,
    "std": 1.0,
    "anomalies": [
        {"metric": "quotesSent", "residual": -1.0, "score": -0.7},
        {"metric": "ordersCreated", "residual": 1.0, "score": 0.7},
    ],
}
THRESHOLDS = {
    "k": 3.0,
    "minSamples": 2,
    "metrics": {
        "quotesSent": {"ready": True, "count": 2, "mean": 1.0, "std": 0.5, "upper": 2.5, "lower": -0.5},
        "ordersCreated": {"ready": False, "count": 1},
    },
}


@pytest.fixture
def derived_artifacts(file_store):
    """All three derived artifacts present."""
    file_store.save(CAPACITY_LATEST, CAPACITY)
    file_store.save(RESIDUAL_ANOMALIES, ANOMALIES)
    file_store.save(RESIDUAL_THRESHOLDS, THRESHOLDS)
    return file_store


class TestGaugeCache:
    """Tests for GaugeCache.snapshot."""

    def test_empty_cache(self):
        """Test that an unloaded cache exposes no gauges."""
        assert GaugeCache().snapshot() == {}

    def test_snapshot_names(self):
        """Test gauge names and values for every section."""
        cache = GaugeCache(
            capacity=CapacityEstimate(90.0, 20, SuggestionCode.APPROACHING),
            anomaly_scores={"quotesSent": -0.7},
            thresholds={
                "quotesSent": ThresholdRecord("quotesSent", True, 2, 1.0, 0.5, 2.5, -0.5),
                "ordersCreated": ThresholdRecord("ordersCreated", False, 1),
            },
        )

        assert cache.snapshot() == {
            "capacity.max_stable_rps": 90.0,
            "capacity.optimal_connections": 20.0,
            "capacity.suggestion_code": 1.0,
            "analytics.forecast.residual_anom_score.quotesSent": -0.7,
            "analytics.forecast.residual_threshold.quotesSent.ready": 1.0,
            "analytics.forecast.residual_threshold.quotesSent.count": 2.0,
            "analytics.forecast.residual_threshold.quotesSent.mean": 1.0,
            "analytics.forecast.residual_threshold.quotesSent.std": 0.5,
            "analytics.forecast.residual_threshold.quotesSent.upper": 2.5,
            "analytics.forecast.residual_threshold.quotesSent.lower": -0.5,
            "analytics.forecast.residual_threshold.ordersCreated.ready": 0.0,
            "analytics.forecast.residual_threshold.ordersCreated.count": 1.0,
        }


class TestGaugeCachePublisher:
    """Tests for GaugeCachePublisher.refresh."""

    def test_refresh_loads_all_sections(self, derived_artifacts):
        """Test that every present artifact is loaded."""
        publisher = GaugeCachePublisher(derived_artifacts)

        updated = publisher.refresh()

        assert updated == {"capacity": True, "anomalies": True, "thresholds": True}
        assert publisher.cache.capacity.max_stable_rps == 90.0
        assert publisher.cache.anomaly_scores == {"quotesSent": -0.7, "ordersCreated": 0.7}
        assert publisher.cache.thresholds["ordersCreated"].ready is False

    def test_missing_artifacts_leave_cache_empty(self, file_store):
        """Test that absent artifacts skip their sections."""
        publisher = GaugeCachePublisher(file_store)

        assert publisher.refresh() == {"capacity": False, "anomalies": False, "thresholds": False}
        assert publisher.cache.snapshot() == {}

    def test_failed_section_keeps_previous_values(self, derived_artifacts, write_artifact):
        """Test that a broken artifact does not clear the last good values."""
        publisher = GaugeCachePublisher(derived_artifacts)
        publisher.refresh()
        write_artifact(RESIDUAL_ANOMALIES, "{truncated")
        write_artifact(RESIDUAL_THRESHOLDS, {"metrics": {"quotesSent": {"ready": True}}})
        derived_artifacts.save(CAPACITY_LATEST, {**CAPACITY, "maxStableRps": 120.0})

        updated = publisher.refresh()

        assert updated == {"capacity": True, "anomalies": False, "thresholds": False}
        assert publisher.cache.capacity.max_stable_rps == 120.0
        assert publisher.cache.anomaly_scores["ordersCreated"] == 0.7
        assert publisher.cache.thresholds["quotesSent"].upper == 2.5

    def test_uses_given_cache(self, derived_artifacts):
        """Test that an injected cache is the one refreshed."""
        cache = GaugeCache()

        GaugeCachePublisher(derived_artifacts, cache).refresh()

        assert "capacity.max_stable_rps" in cache.snapshot()
