"""
Capacity estimation from step-load test results.

Heuristic, not a changepoint detector: the leading run of steps without
errors or timeouts is treated as stable, and the best throughput inside that
run is the sustainable capacity. A single failing step ends the scan; later
clean steps are ignored because they follow demonstrated instability.
"""

from collections.abc import Sequence

import structlog

from src.core.artifacts import CAPACITY_LATEST, PERF_HISTORY, ArtifactStore
from src.core.errors import MalformedArtifact, MissingArtifact, NoStableCapacity

from .models import CapacityEstimate, StepLoadResult, SuggestionCode

logger = structlog.get_logger(__name__)

STEP_LOAD_PREFIX = "step-load-"
STEP_LOAD_PATTERN = f"{STEP_LOAD_PREFIX}*.json"


def stable_prefix(rows: Sequence[StepLoadResult]) -> list[StepLoadResult]:
    """Leading rows with zero errors and timeouts, up to the first failing step"""
    stable = []
    for row in rows:
        if not row.is_stable:
            break
        stable.append(row)
    return stable


def classify(
    max_stable_rps: float,
    scale_recommended_rps: float = 50.0,
    approaching_rps: float = 100.0,
) -> SuggestionCode:
    if max_stable_rps < scale_recommended_rps:
        return SuggestionCode.SCALE_RECOMMENDED
    if max_stable_rps < approaching_rps:
        return SuggestionCode.APPROACHING
    return SuggestionCode.OK


def parse_step_load(payload, key: str) -> list[StepLoadResult]:
    """Parse a step-load artifact (``{"results": [...]}`` or a bare list)

    Raises:
        MalformedArtifact: If the structure or any row is invalid
    """
    rows = payload.get("results") if isinstance(payload, dict) else payload
    if not isinstance(rows, list):
        raise MalformedArtifact(key, "expected a list of step results")
    try:
        return [StepLoadResult.from_dict(row) for row in rows]
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedArtifact(key, f"invalid step result: {e}") from e


class CapacityEstimator:
    """Turns the latest step-load result set into a capacity estimate"""

    def __init__(self, scale_recommended_rps: float = 50.0, approaching_rps: float = 100.0):
        self.scale_recommended_rps = scale_recommended_rps
        self.approaching_rps = approaching_rps

    def estimate(self, rows: Sequence[StepLoadResult]) -> CapacityEstimate:
        """Estimate capacity from rows ordered by ascending concurrency

        Raises:
            NoStableCapacity: If the first step already shows errors or timeouts
        """
        stable = stable_prefix(rows)
        if not stable:
            raise NoStableCapacity(f"No stable steps among {len(rows)} step-load results")

        # max() keeps the first row on ties
        best = max(stable, key=lambda r: r.rps)
        code = classify(best.rps, self.scale_recommended_rps, self.approaching_rps)

        logger.info(
            "Capacity estimated",
            stable_steps=len(stable),
            total_steps=len(rows),
            max_stable_rps=best.rps,
            optimal_connections=best.connections,
            suggestion=code.label,
        )

        return CapacityEstimate(
            max_stable_rps=best.rps,
            optimal_connections=best.connections,
            suggestion_code=code,
            stable_steps=len(stable),
        )

    @staticmethod
    def latest_step_load_key(store: ArtifactStore) -> str:
        """Key of the lexicographically last step-load file

        Raises:
            MissingArtifact: If no step-load results exist
        """
        keys = store.list_keys(PERF_HISTORY, STEP_LOAD_PATTERN)
        if not keys:
            raise MissingArtifact(f"{PERF_HISTORY}/{STEP_LOAD_PATTERN}")
        return keys[-1]

    def run(self, store: ArtifactStore, output_key: str = CAPACITY_LATEST) -> dict:
        """Estimate from the latest step-load file and overwrite the capacity artifact"""
        key = self.latest_step_load_key(store)
        logger.debug("Using step-load results", key=key)

        estimate = self.estimate(parse_step_load(store.load(key), key))
        estimate.source = key.rsplit("/", 1)[-1]

        report = estimate.to_dict()
        store.save(output_key, report)
        return report
