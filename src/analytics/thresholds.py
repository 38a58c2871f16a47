"""
Adaptive residual thresholds derived from the rolling history.

A metric gets ``mean +/- K * std`` bounds once its window holds at least
``min_samples`` values; before that it is reported with its count only.
"""

from collections.abc import Sequence

import structlog

from src.core.artifacts import RESIDUAL_THRESHOLDS, ArtifactStore
from src.core.errors import MissingArtifact
from src.core.stats import sample_mean_std

from .history import RollingHistoryStore
from .models import MetricHistory, ThresholdRecord

logger = structlog.get_logger(__name__)


class AdaptiveThresholdEngine:
    """Computes per-metric readiness-gated bounds"""

    def __init__(self, std_k: float = 3.0, min_samples: int = 20):
        if std_k < 0:
            raise ValueError(f"std_k must be >= 0, got {std_k}")
        if min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {min_samples}")
        self.std_k = std_k
        self.min_samples = min_samples

    def compute(self, metric: str, values: Sequence[float]) -> ThresholdRecord:
        count = len(values)
        if count < self.min_samples:
            return ThresholdRecord(metric=metric, ready=False, count=count)

        mean, std = sample_mean_std(values)
        return ThresholdRecord(
            metric=metric,
            ready=True,
            count=count,
            mean=mean,
            std=std,
            upper=mean + self.std_k * std,
            lower=mean - self.std_k * std,
        )

    def compute_all(self, history: MetricHistory) -> list[ThresholdRecord]:
        return [
            self.compute(metric, [s.value for s in samples])
            for metric, samples in history.items()
        ]

    def build_report(self, history: MetricHistory) -> dict:
        records = self.compute_all(history)
        ready = sum(1 for r in records if r.ready)
        logger.info(
            "Thresholds computed",
            metrics=len(records),
            ready=ready,
            warming_up=len(records) - ready,
            k=self.std_k,
        )
        return {
            "k": self.std_k,
            "minSamples": self.min_samples,
            "metrics": {r.metric: r.to_dict() for r in records},
        }

    def run(
        self,
        history_store: RollingHistoryStore,
        store: ArtifactStore,
        output_key: str = RESIDUAL_THRESHOLDS,
    ) -> dict:
        """Recompute thresholds from the persisted history and overwrite the output

        Raises:
            MissingArtifact: If no history has been recorded yet
        """
        if not history_store.exists():
            raise MissingArtifact(history_store.key)

        report = self.build_report(history_store.load())
        store.save(output_key, report)
        return report
