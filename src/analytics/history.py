"""
Rolling residual history.

Keeps the most recent ``max_samples`` residuals per metric in a single
artifact. The artifact is durable state: if it is missing or corrupt the
store starts over from an empty history instead of failing.
"""

import time
from collections.abc import Callable, Iterable

import structlog

from src.core.artifacts import RESIDUAL_HISTORY, ArtifactStore
from src.core.errors import MalformedArtifact, MissingArtifact

from .models import MetricHistory, MetricSample, Residual

logger = structlog.get_logger(__name__)


def append_sample(
    window: list[MetricSample], sample: MetricSample, max_samples: int
) -> list[MetricSample]:
    """Append ``sample`` and drop the oldest entries beyond ``max_samples``"""
    window.append(sample)
    if len(window) > max_samples:
        del window[: len(window) - max_samples]
    return window


def _now_ms() -> int:
    return int(time.time() * 1000)


class RollingHistoryStore:
    """Bounded per-metric sample windows persisted as one artifact"""

    def __init__(
        self,
        store: ArtifactStore,
        max_samples: int = 500,
        key: str = RESIDUAL_HISTORY,
        clock: Callable[[], int] = _now_ms,
    ):
        if max_samples < 1:
            raise ValueError(f"max_samples must be >= 1, got {max_samples}")
        self.store = store
        self.max_samples = max_samples
        self.key = key
        self.clock = clock

    def exists(self) -> bool:
        return self.store.exists(self.key)

    def load(self) -> MetricHistory:
        """Load the persisted history, or an empty one if absent or corrupt"""
        try:
            payload = self.store.load(self.key)
            return self._decode(payload)
        except MissingArtifact:
            logger.info("No residual history yet, starting empty", key=self.key)
        except MalformedArtifact as e:
            logger.warning(
                "Residual history corrupt, starting empty", key=self.key, reason=e.reason
            )
        return {}

    def save(self, history: MetricHistory) -> None:
        """Rewrite the whole artifact, trimming every window to capacity"""
        for window in history.values():
            if len(window) > self.max_samples:
                del window[: len(window) - self.max_samples]
        self.store.save(self.key, self._encode(history))

    def update(self, batch: Iterable[Residual], timestamp_ms: int | None = None) -> MetricHistory:
        """Append one sample per residual and persist the full history

        Metrics that are not in ``batch`` keep their samples unchanged.

        Args:
            batch: Residuals from the current measurement round
            timestamp_ms: Sample timestamp. Defaults to the current time.

        Returns:
            The updated history
        """
        timestamp_ms = self.clock() if timestamp_ms is None else timestamp_ms
        history = self.load()

        appended = 0
        for residual in batch:
            window = history.setdefault(residual.metric, [])
            append_sample(window, MetricSample(timestamp_ms, residual.residual), self.max_samples)
            appended += 1

        self.save(history)
        logger.info(
            "Residual history updated",
            appended=appended,
            metrics=len(history),
            max_samples=self.max_samples,
        )
        return history

    def _encode(self, history: MetricHistory) -> dict:
        return {
            "maxSamples": self.max_samples,
            "metrics": {
                metric: {"samples": [s.to_dict() for s in window]}
                for metric, window in history.items()
            },
        }

    def _decode(self, payload) -> MetricHistory:
        if not isinstance(payload, dict) or not isinstance(payload.get("metrics", {}), dict):
            raise MalformedArtifact(self.key, "expected an object with a 'metrics' mapping")

        history: MetricHistory = {}
        for metric, entry in payload.get("metrics", {}).items():
            try:
                history[metric] = [MetricSample.from_dict(s) for s in entry["samples"]]
            except (KeyError, TypeError, ValueError) as e:
                raise MalformedArtifact(self.key, f"bad samples for {metric}: {e}") from e
        return history
