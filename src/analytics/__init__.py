"""
Residual analytics

Self-tuning anomaly analytics over forecast residuals.

Stages (run in this order by an external scheduler):
- Rolling history: append the current residual batch to a bounded per-metric window
- Anomaly scoring: z-score each residual against its peers in the same batch
- Adaptive thresholds: mean +/- K*std bounds once a window has enough samples

Usage:
    python -m src.analytics.update_history
    python -m src.analytics.score_residuals
    python -m src.analytics.update_thresholds
"""

from .history import RollingHistoryStore, append_sample
from .models import AnomalyRecord, MetricSample, Residual, ThresholdRecord
from .scorer import AnomalyScorer, score_batch
from .thresholds import AdaptiveThresholdEngine

__all__ = [
    "RollingHistoryStore",
    "append_sample",
    "AnomalyScorer",
    "score_batch",
    "AdaptiveThresholdEngine",
    "MetricSample",
    "Residual",
    "AnomalyRecord",
    "ThresholdRecord",
]
