"""
Batch-relative anomaly scoring of forecast residuals.

Each metric is scored against its peers in the same measurement round, not
against its own history (see thresholds.py for the longitudinal view).
"""

from collections.abc import Sequence

import structlog

from src.core.artifacts import FORECAST_RESIDUALS, RESIDUAL_ANOMALIES, ArtifactStore
from src.core.stats import sample_mean_std

from .models import AnomalyRecord, Residual, parse_residual_batch

logger = structlog.get_logger(__name__)


def score_batch(batch: Sequence[Residual]) -> tuple[float, float, list[AnomalyRecord]]:
    """Z-score every residual against the batch mean and sample std

    Returns:
        (mean, std, records). With zero spread every score is 0.
    """
    mean, std = sample_mean_std([r.residual for r in batch])
    records = [
        AnomalyRecord(
            metric=r.metric,
            residual=r.residual,
            score=(r.residual - mean) / std if std > 0 else 0.0,
        )
        for r in batch
    ]
    return mean, std, records


class AnomalyScorer:
    """Reads the current residual batch and writes the anomaly report"""

    def __init__(
        self,
        store: ArtifactStore,
        input_key: str = FORECAST_RESIDUALS,
        output_key: str = RESIDUAL_ANOMALIES,
    ):
        self.store = store
        self.input_key = input_key
        self.output_key = output_key

    def load_batch(self) -> list[Residual]:
        """Raises MissingArtifact / MalformedArtifact when the batch is unusable"""
        return parse_residual_batch(self.store.load(self.input_key), self.input_key)

    def run(self) -> dict:
        """Score the current batch and overwrite the anomaly report"""
        batch = self.load_batch()
        report = self.build_report(batch)
        self.store.save(self.output_key, report)
        return report

    @staticmethod
    def build_report(batch: Sequence[Residual]) -> dict:
        mean, std, records = score_batch(batch)

        if records:
            top = max(records, key=lambda r: abs(r.score))
            logger.info(
                "Residual batch scored",
                count=len(records),
                mean=round(mean, 4),
                std=round(std, 4),
                top_metric=top.metric,
                top_score=round(top.score, 3),
            )
        else:
            logger.info("Residual batch empty, writing empty report")

        return {
            "count": len(records),
            "mean": mean,
            "std": std,
            "anomalies": [r.to_dict() for r in records],
        }
