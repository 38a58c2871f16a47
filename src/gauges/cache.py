"""
Read-side gauge cache for a metrics exporter.

The exporter owns a GaugeCache and reads ``snapshot()`` synchronously; a
GaugeCachePublisher refreshes it from the latest derived artifacts. Each
section is only replaced after a successful load, so a missing or broken
artifact leaves the previously loaded values in place.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from src.analytics.models import ThresholdRecord
from src.core.artifacts import (
    CAPACITY_LATEST,
    RESIDUAL_ANOMALIES,
    RESIDUAL_THRESHOLDS,
    ArtifactStore,
)
from src.core.errors import MalformedArtifact, MissingArtifact
from src.perf.models import CapacityEstimate

logger = structlog.get_logger(__name__)

ANOMALY_SCORE_GAUGE = "analytics.forecast.residual_anom_score.{metric}"
THRESHOLD_GAUGE = "analytics.forecast.residual_threshold.{metric}.{stat}"


@dataclass
class GaugeCache:
    """Latest derived values keyed by metric / gauge name"""

    capacity: Optional[CapacityEstimate] = None
    anomaly_scores: dict[str, float] = field(default_factory=dict)
    thresholds: dict[str, ThresholdRecord] = field(default_factory=dict)

    def snapshot(self) -> dict[str, float]:
        """Flat gauge-name -> value mapping"""
        gauges: dict[str, float] = {}

        if self.capacity is not None:
            gauges["capacity.max_stable_rps"] = self.capacity.max_stable_rps
            gauges["capacity.optimal_connections"] = float(self.capacity.optimal_connections)
            gauges["capacity.suggestion_code"] = float(self.capacity.suggestion_code)

        for metric, score in self.anomaly_scores.items():
            gauges[ANOMALY_SCORE_GAUGE.format(metric=metric)] = score

        for metric, record in self.thresholds.items():
            gauges[THRESHOLD_GAUGE.format(metric=metric, stat="ready")] = float(record.ready)
            gauges[THRESHOLD_GAUGE.format(metric=metric, stat="count")] = float(record.count)
            if record.ready:
                for stat in ("mean", "std", "upper", "lower"):
                    gauges[THRESHOLD_GAUGE.format(metric=metric, stat=stat)] = getattr(
                        record, stat
                    )

        return gauges


def _parse_anomalies(payload: Any) -> dict[str, float]:
    return {str(entry["metric"]): float(entry["score"]) for entry in payload["anomalies"]}


def _parse_thresholds(payload: Any) -> dict[str, ThresholdRecord]:
    records = {}
    for metric, entry in payload["metrics"].items():
        ready = bool(entry["ready"])
        records[metric] = ThresholdRecord(
            metric=metric,
            ready=ready,
            count=int(entry["count"]),
            mean=float(entry["mean"]) if ready else None,
            std=float(entry["std"]) if ready else None,
            upper=float(entry["upper"]) if ready else None,
            lower=float(entry["lower"]) if ready else None,
        )
    return records


class GaugeCachePublisher:
    """Loads capacity, anomaly and threshold artifacts into a GaugeCache"""

    # section -> (artifact key, parser, cache attribute)
    SECTIONS = {
        "capacity": (CAPACITY_LATEST, CapacityEstimate.from_dict, "capacity"),
        "anomalies": (RESIDUAL_ANOMALIES, _parse_anomalies, "anomaly_scores"),
        "thresholds": (RESIDUAL_THRESHOLDS, _parse_thresholds, "thresholds"),
    }

    def __init__(self, store: ArtifactStore, cache: GaugeCache | None = None):
        self.store = store
        self.cache = cache if cache is not None else GaugeCache()

    def refresh(self) -> dict[str, bool]:
        """Reload every section; returns which sections were updated"""
        updated = {}
        for section, (key, parse, attribute) in self.SECTIONS.items():
            updated[section] = self._refresh_section(section, key, parse, attribute)

        logger.info("Gauge cache refreshed", **updated)
        return updated

    def _refresh_section(self, section: str, key: str, parse, attribute: str) -> bool:
        try:
            value = parse(self.store.load(key))
        except MissingArtifact:
            logger.debug("Artifact absent, keeping cached section", section=section, key=key)
            return False
        except MalformedArtifact as e:
            logger.warning(
                "Artifact unreadable, keeping cached section",
                section=section,
                key=key,
                reason=e.reason,
            )
            return False
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(
                "Artifact has unexpected shape, keeping cached section",
                section=section,
                key=key,
                error=str(e),
            )
            return False

        setattr(self.cache, attribute, value)
        return True
