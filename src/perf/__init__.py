"""
Load-test capacity estimation and perf baseline tracking.

Independent of the residual pipeline:
- Capacity: stable prefix of the latest step-load test to max stable RPS + suggestion code
- Baselines: append-only benchmark summaries, latest-two comparison, golden medians,
  regression guard
"""

from .baseline import (
    BaselineComparator,
    BaselineRecorder,
    GoldenBaselineBuilder,
    RegressionGuard,
)
from .capacity import CapacityEstimator
from .models import (
    CapacityEstimate,
    DeltaReport,
    FieldDelta,
    PerfBaselineSummary,
    StepLoadResult,
    SuggestionCode,
)

__all__ = [
    "CapacityEstimator",
    "BaselineRecorder",
    "BaselineComparator",
    "GoldenBaselineBuilder",
    "RegressionGuard",
    "StepLoadResult",
    "CapacityEstimate",
    "SuggestionCode",
    "PerfBaselineSummary",
    "FieldDelta",
    "DeltaReport",
]
