"""
Data models for residual analytics (history, anomaly scores, thresholds).
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

from src.core.errors import MalformedArtifact

MetricHistory = dict[str, list["MetricSample"]]


@dataclass(frozen=True)
class MetricSample:
    """One residual observation; never modified once written"""

    timestamp: int  # epoch milliseconds
    value: float

    def to_dict(self) -> dict:
        return {"t": self.timestamp, "v": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "MetricSample":
        """Raises ValueError for a non-numeric or non-finite value"""
        value = data["v"]
        if not _is_number(value):
            raise ValueError(f"sample value must be a finite number, got {value!r}")
        return cls(timestamp=int(data["t"]), value=float(value))


@dataclass(frozen=True)
class Residual:
    """Residual of one metric in the current measurement round"""

    metric: str
    residual: float


@dataclass
class AnomalyRecord:
    """Batch-relative z-score of a metric's residual"""

    metric: str
    residual: float
    score: float

    def to_dict(self) -> dict:
        return {"metric": self.metric, "residual": self.residual, "score": self.score}


@dataclass
class ThresholdRecord:
    """Adaptive bounds for a metric; stats are only set once ``ready``"""

    metric: str
    ready: bool
    count: int
    mean: Optional[float] = None
    std: Optional[float] = None
    upper: Optional[float] = None
    lower: Optional[float] = None

    def to_dict(self) -> dict:
        if not self.ready:
            return {"ready": False, "count": self.count}
        return {
            "ready": True,
            "count": self.count,
            "mean": self.mean,
            "std": self.std,
            "upper": self.upper,
            "lower": self.lower,
        }


def parse_residual_batch(payload: Any, key: str) -> list[Residual]:
    """Parse a forecast residual artifact into Residual entries

    Accepts either ``{"residuals": [...]}`` as written by the forecasting job or
    a bare list. Extra fields on entries (actual, predicted, ...) are ignored.

    Raises:
        MalformedArtifact: If the structure or any entry is invalid
    """
    entries = payload.get("residuals", []) if isinstance(payload, dict) else payload
    if not isinstance(entries, list):
        raise MalformedArtifact(key, "expected a list of residuals")

    batch = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise MalformedArtifact(key, f"entry {index} is not an object")
        metric = entry.get("metric")
        residual = entry.get("residual")
        if not isinstance(metric, str) or not metric:
            raise MalformedArtifact(key, f"entry {index} has no metric name")
        if not _is_number(residual):
            raise MalformedArtifact(key, f"entry {index} has a non-numeric residual")
        batch.append(Residual(metric=metric, residual=float(residual)))

    return batch


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
