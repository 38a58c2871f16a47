"""
Data models for load-test capacity estimation and perf baselines.
"""

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Optional

# Numeric fields compared between consecutive baselines
DELTA_FIELDS = ("p50", "p95", "rpsAvg", "rpsP95")

# Fields the regression guard enforces limits on
GUARDED_FIELDS = ("p50", "p95", "rpsAvg")


class SuggestionCode(IntEnum):
    """Coarse capacity classification exported as a gauge"""

    OK = 0
    APPROACHING = 1
    SCALE_RECOMMENDED = 2

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class StepLoadResult:
    """One concurrency step of an external step-load test"""

    connections: int
    rps: float
    p95: float
    errors: int
    timeouts: int

    @property
    def is_stable(self) -> bool:
        return self.errors == 0 and self.timeouts == 0

    @classmethod
    def from_dict(cls, data: dict) -> "StepLoadResult":
        """Build from a result row; raises KeyError, TypeError or ValueError if invalid

        Counts must be whole numbers and measurements finite numbers; strings,
        booleans and fractional counts are rejected rather than coerced.
        """
        return cls(
            connections=_count(data, "connections"),
            rps=_measurement(data, "rps"),
            p95=_measurement(data, "p95"),
            errors=_count(data, "errors"),
            timeouts=_count(data, "timeouts"),
        )


@dataclass
class CapacityEstimate:
    """Sustainable throughput derived from the stable prefix of a step-load test"""

    max_stable_rps: float
    optimal_connections: int
    suggestion_code: SuggestionCode
    stable_steps: int = 0
    source: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "maxStableRps": self.max_stable_rps,
            "optimalConnections": self.optimal_connections,
            "suggestionCode": int(self.suggestion_code),
            "suggestion": self.suggestion_code.label,
            "stableSteps": self.stable_steps,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CapacityEstimate":
        return cls(
            max_stable_rps=float(data["maxStableRps"]),
            optimal_connections=int(data["optimalConnections"]),
            suggestion_code=SuggestionCode(int(data["suggestionCode"])),
            stable_steps=int(data.get("stableSteps", 0)),
            source=data.get("source"),
        )


@dataclass
class PerfBaselineSummary:
    """Summary of one perf benchmark run"""

    scenario: str = "unknown"
    p50: Optional[float] = None
    p95: Optional[float] = None
    rps_avg: Optional[float] = None
    rps_p95: Optional[float] = None
    duration: Optional[float] = None
    connections: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario,
            "p50": self.p50,
            "p95": self.p95,
            "rpsAvg": self.rps_avg,
            "rpsP95": self.rps_p95,
            "duration": self.duration,
            "connections": self.connections,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PerfBaselineSummary":
        """Build from a summary object; non-numeric metric fields become None"""
        connections = _number(data.get("connections"))
        return cls(
            scenario=str(data.get("scenario") or "unknown"),
            p50=_number(data.get("p50")),
            p95=_number(data.get("p95")),
            rps_avg=_number(data.get("rpsAvg")),
            rps_p95=_number(data.get("rpsP95")),
            duration=_number(data.get("duration")),
            connections=int(connections) if connections is not None else None,
        )

    def get(self, name: str) -> Optional[float]:
        """Value of a serialized field name such as 'rpsAvg'"""
        return self.to_dict().get(name)


@dataclass
class FieldDelta:
    prev: float
    curr: float
    pct: Optional[float]  # None when prev == 0

    def to_dict(self) -> dict:
        return {"prev": self.prev, "curr": self.curr, "pct": self.pct}


@dataclass
class DeltaReport:
    """Comparison of the two most recent baselines of a scenario"""

    scenario: str
    prev_key: str
    curr_key: str
    deltas: dict[str, Optional[FieldDelta]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        out: dict[str, Any] = {
            "scenario": self.scenario,
            "prevFile": self.prev_key.rsplit("/", 1)[-1],
            "currFile": self.curr_key.rsplit("/", 1)[-1],
        }
        for name in DELTA_FIELDS:
            delta = self.deltas.get(name)
            out[name] = delta.to_dict() if delta is not None else None
        return out


@dataclass
class RegressionEvaluation:
    """Regression guard verdict for one scenario"""

    scenario: str
    prev_key: str
    curr_key: str
    delta_pct: dict[str, Optional[float]]
    violations: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.violations)

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario,
            "prevFile": self.prev_key.rsplit("/", 1)[-1],
            "currFile": self.curr_key.rsplit("/", 1)[-1],
            "p50DeltaPct": self.delta_pct.get("p50"),
            "p95DeltaPct": self.delta_pct.get("p95"),
            "rpsAvgDeltaPct": self.delta_pct.get("rpsAvg"),
            "violations": self.violations,
        }


def _measurement(data: dict, name: str) -> float:
    value = _number(data[name])
    if value is None or not math.isfinite(value):
        raise ValueError(f"{name} must be a finite number, got {data[name]!r}")
    return value


def _count(data: dict, name: str) -> int:
    value = _measurement(data, name)
    if not value.is_integer() or value < 0:
        raise ValueError(f"{name} must be a non-negative whole number, got {data[name]!r}")
    return int(value)


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
