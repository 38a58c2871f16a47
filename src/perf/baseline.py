"""
Perf baseline recording, comparison, golden medians and the regression guard.

Baselines are append-only files named ``<normalized-ISO-timestamp>-<scenario>.json``
under ``perf-history/`` so that sorting by filename is chronological.
"""

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

import pandas as pd
import structlog

from src.core.artifacts import GOLDEN_BASELINE, PERF_HISTORY, ArtifactStore
from src.core.errors import MalformedArtifact, MissingArtifact, WriteFailure

from .capacity import STEP_LOAD_PREFIX
from .models import (
    DELTA_FIELDS,
    GUARDED_FIELDS,
    DeltaReport,
    FieldDelta,
    PerfBaselineSummary,
    RegressionEvaluation,
)

logger = structlog.get_logger(__name__)

Summaries = list[tuple[str, PerfBaselineSummary]]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_EXCLUDED_PREFIXES = (STEP_LOAD_PREFIX, "golden-baseline")


def normalize_timestamp(moment: datetime) -> str:
    """Filename-safe, fixed-width UTC timestamp, e.g. 2026-10-19T08-30-00-123Z"""
    moment = moment.astimezone(UTC)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def baseline_key(moment: datetime, scenario: str) -> str:
    safe_scenario = _UNSAFE_CHARS.sub("_", scenario).strip("_") or "unknown"
    return f"{PERF_HISTORY}/{normalize_timestamp(moment)}-{safe_scenario}.json"


def pct_change(prev: Optional[float], curr: Optional[float]) -> Optional[float]:
    if prev is None or curr is None or prev == 0:
        return None
    return (curr - prev) / prev * 100


def compute_delta(
    prev: PerfBaselineSummary, curr: PerfBaselineSummary, name: str
) -> Optional[FieldDelta]:
    """Delta of one field; None if either summary lacks it"""
    a, b = prev.get(name), curr.get(name)
    if a is None or b is None:
        return None
    return FieldDelta(prev=a, curr=b, pct=pct_change(a, b))


def load_summaries(store: ArtifactStore) -> Summaries:
    """All recorded baselines in filename (chronological) order

    Step-load results, the golden file, unreadable files and files without a
    scenario are skipped.
    """
    summaries = []
    for key in store.list_keys(PERF_HISTORY, "*.json"):
        name = key.rsplit("/", 1)[-1]
        if name.startswith(_EXCLUDED_PREFIXES):
            continue
        try:
            data = store.load(key)
        except (MissingArtifact, MalformedArtifact) as e:
            logger.warning("Skipping unreadable baseline", key=key, error=str(e))
            continue
        if not isinstance(data, dict) or not data.get("scenario"):
            logger.debug("Skipping file without scenario", key=key)
            continue
        summaries.append((key, PerfBaselineSummary.from_dict(data)))
    return summaries


def group_by_scenario(summaries: Summaries) -> dict[str, Summaries]:
    grouped: dict[str, Summaries] = {}
    for key, summary in summaries:
        grouped.setdefault(summary.scenario, []).append((key, summary))
    return grouped


class BaselineRecorder:
    """Persists perf summaries as new, never-overwritten baseline files"""

    def __init__(self, store: ArtifactStore, clock: Callable[[], datetime] | None = None):
        self.store = store
        self.clock = clock or (lambda: datetime.now(UTC))

    def record(self, summary: PerfBaselineSummary) -> str:
        """Write ``summary`` under a new timestamped key and return the key

        Raises:
            WriteFailure: If a baseline with the same key already exists
        """
        key = baseline_key(self.clock(), summary.scenario)
        if self.store.exists(key):
            raise WriteFailure(key, "baseline already recorded")

        self.store.save(key, summary.to_dict())
        logger.info("Baseline recorded", key=key, scenario=summary.scenario)
        return key


class BaselineComparator:
    """Compares the two most recent baselines of every scenario"""

    def __init__(self, store: ArtifactStore):
        self.store = store

    def compare(self) -> list[DeltaReport]:
        reports = []
        for scenario, entries in group_by_scenario(load_summaries(self.store)).items():
            if len(entries) < 2:
                logger.debug("Not enough baselines to compare", scenario=scenario)
                continue
            (prev_key, prev), (curr_key, curr) = entries[-2:]
            reports.append(
                DeltaReport(
                    scenario=scenario,
                    prev_key=prev_key,
                    curr_key=curr_key,
                    deltas={name: compute_delta(prev, curr, name) for name in DELTA_FIELDS},
                )
            )
        logger.info("Baselines compared", scenarios=len(reports))
        return reports


def golden_baseline(summaries: Summaries, window: int = 5) -> dict[str, dict]:
    """Median p50/p95/rpsAvg over the last ``window`` baselines of each scenario"""
    if not summaries:
        return {}

    columns = list(GUARDED_FIELDS)
    frame = pd.DataFrame(
        [{"scenario": s.scenario, **{c: s.get(c) for c in columns}} for _, s in summaries]
    )
    frame[columns] = frame[columns].astype(float)

    tail = frame.groupby("scenario", sort=True).tail(window)
    grouped = tail.groupby("scenario", sort=True)
    medians = grouped[columns].median()
    counts = grouped.size()

    golden = {}
    for scenario, row in medians.iterrows():
        entry = {c: (None if pd.isna(row[c]) else float(row[c])) for c in columns}
        entry["count"] = int(counts[scenario])
        golden[scenario] = entry
    return golden


class GoldenBaselineBuilder:
    """Writes per-scenario golden medians for the regression guard"""

    def __init__(self, store: ArtifactStore, window: int = 5):
        self.store = store
        self.window = window

    def run(self) -> dict:
        golden = golden_baseline(load_summaries(self.store), self.window)
        report = {"window": self.window, "golden": golden}
        self.store.save(GOLDEN_BASELINE, report)
        logger.info("Golden baseline updated", scenarios=len(golden), window=self.window)
        return report


class RegressionGuard:
    """Flags latency increases and throughput drops between the latest baselines"""

    def __init__(
        self,
        store: ArtifactStore,
        max_p50_increase_pct: float = 15.0,
        max_p95_increase_pct: float = 20.0,
        max_rps_drop_pct: float = 15.0,
        use_golden: bool = False,
    ):
        self.store = store
        self.max_p50_increase_pct = max_p50_increase_pct
        self.max_p95_increase_pct = max_p95_increase_pct
        self.max_rps_drop_pct = max_rps_drop_pct
        self.use_golden = use_golden

    @property
    def thresholds(self) -> dict:
        return {
            "maxP50IncreasePct": self.max_p50_increase_pct,
            "maxP95IncreasePct": self.max_p95_increase_pct,
            "maxRpsDropPct": self.max_rps_drop_pct,
            "useGolden": self.use_golden,
        }

    def _load_golden(self) -> dict:
        if not self.use_golden:
            return {}
        try:
            payload = self.store.load(GOLDEN_BASELINE)
        except (MissingArtifact, MalformedArtifact) as e:
            logger.warning("Golden baseline unavailable", error=str(e))
            return {}
        golden = payload.get("golden") if isinstance(payload, dict) else None
        return golden if isinstance(golden, dict) else {}

    def evaluate(self) -> list[RegressionEvaluation]:
        golden = self._load_golden()
        evaluations = []

        for scenario, entries in group_by_scenario(load_summaries(self.store)).items():
            if len(entries) < 2:
                continue
            (prev_key, prev), (curr_key, curr) = entries[-2:]
            deltas = {name: pct_change(prev.get(name), curr.get(name)) for name in GUARDED_FIELDS}

            reference = golden.get(scenario)
            if isinstance(reference, dict):
                deltas = self._worst_against_golden(deltas, reference, curr)

            evaluations.append(
                RegressionEvaluation(
                    scenario=scenario,
                    prev_key=prev_key,
                    curr_key=curr_key,
                    delta_pct=deltas,
                    violations=self._violations(deltas),
                )
            )
        return evaluations

    @staticmethod
    def _worst_against_golden(
        deltas: dict[str, Optional[float]], reference: dict, curr: PerfBaselineSummary
    ) -> dict[str, Optional[float]]:
        """Keep the larger latency increase and the more negative rps change"""
        worst = dict(deltas)
        for name in GUARDED_FIELDS:
            ref = reference.get(name)
            ref = float(ref) if isinstance(ref, (int, float)) else None
            golden_delta = pct_change(ref, curr.get(name))
            if golden_delta is None:
                continue
            if worst[name] is None:
                worst[name] = golden_delta
            elif name == "rpsAvg":
                worst[name] = min(worst[name], golden_delta)
            else:
                worst[name] = max(worst[name], golden_delta)
        return worst

    def _violations(self, deltas: dict[str, Optional[float]]) -> list[str]:
        violations = []
        p50, p95, rps = deltas["p50"], deltas["p95"], deltas["rpsAvg"]
        if p50 is not None and p50 > self.max_p50_increase_pct:
            violations.append(f"p50 increased {p50:.2f}% > {self.max_p50_increase_pct}%")
        if p95 is not None and p95 > self.max_p95_increase_pct:
            violations.append(f"p95 increased {p95:.2f}% > {self.max_p95_increase_pct}%")
        if rps is not None and rps < 0 and abs(rps) > self.max_rps_drop_pct:
            violations.append(f"rpsAvg dropped {abs(rps):.2f}% > {self.max_rps_drop_pct}%")
        return violations


def render_markdown(evaluations: list[RegressionEvaluation], thresholds: dict) -> str:
    """Markdown table of guard results, suitable for a CI job summary"""

    def fmt(value: Optional[float]) -> str:
        return "-" if value is None else f"{value:.2f}"

    lines = [
        "# Performance Regression Guard",
        "",
        f"Thresholds: p50 +{thresholds['maxP50IncreasePct']}% | "
        f"p95 +{thresholds['maxP95IncreasePct']}% | "
        f"rps drop {thresholds['maxRpsDropPct']}% (golden={thresholds['useGolden']})",
        "",
        "| Scenario | p50 Δ% | p95 Δ% | rpsAvg Δ% | Violations |",
        "|---|---:|---:|---:|---|",
    ]
    for e in evaluations:
        lines.append(
            f"| {e.scenario} | {fmt(e.delta_pct.get('p50'))} | {fmt(e.delta_pct.get('p95'))} "
            f"| {fmt(e.delta_pct.get('rpsAvg'))} | {'<br/>'.join(e.violations) or 'OK'} |"
        )
    return "\n".join(lines) + "\n"
