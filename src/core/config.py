"""
Run-time configuration for the analytics pipeline.

Every setting has a default and can be overridden from the environment
(a local ``.env`` file is honoured) or from CLI flags.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Environment variable -> PipelineConfig field
ENV_FIELDS = {
    "PIPELINE_DATA_DIR": "data_dir",
    "PIPELINE_STORE": "store_backend",
    "RESIDUAL_THRESHOLD_STD_K": "std_k",
    "RESIDUAL_THRESHOLD_MIN_SAMPLES": "min_samples",
    "RESIDUAL_HISTORY_MAX_SAMPLES": "max_samples",
    "CAPACITY_SCALE_RECOMMENDED_RPS": "scale_recommended_rps",
    "CAPACITY_APPROACHING_RPS": "approaching_rps",
    "GOLDEN_WINDOW": "golden_window",
    "MAX_P50_INCREASE_PCT": "max_p50_increase_pct",
    "MAX_P95_INCREASE_PCT": "max_p95_increase_pct",
    "MAX_RPS_DROP_PCT": "max_rps_drop_pct",
    "USE_GOLDEN": "use_golden",
    "REDIS_HOST": "redis_host",
    "REDIS_PORT": "redis_port",
    "REDIS_DB": "redis_db",
    "REDIS_PASSWORD": "redis_password",
    "REDIS_NAMESPACE": "redis_namespace",
}

STORE_BACKENDS = ("file", "redis")


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class PipelineConfig:
    """Configuration shared by all pipeline stages"""

    # Artifact storage
    data_dir: str = "."
    store_backend: str = "file"  # 'file' or 'redis'

    # Adaptive thresholds
    std_k: float = 3.0
    min_samples: int = 20

    # Rolling history capacity per metric
    max_samples: int = 500

    # Capacity suggestion thresholds (maxStableRps below these)
    scale_recommended_rps: float = 50.0
    approaching_rps: float = 100.0

    # Baseline comparison and regression guard
    golden_window: int = 5
    max_p50_increase_pct: float = 15.0
    max_p95_increase_pct: float = 20.0
    max_rps_drop_pct: float = 15.0
    use_golden: bool = False

    # Redis settings (only used with store_backend='redis')
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: Optional[str] = None
    redis_namespace: str = "perfpipe"

    def __post_init__(self):
        if self.store_backend not in STORE_BACKENDS:
            raise ValueError(
                f"Unknown store backend '{self.store_backend}'. "
                f"Available backends: {', '.join(STORE_BACKENDS)}"
            )
        if self.std_k < 0:
            raise ValueError(f"std_k must be >= 0, got {self.std_k}")
        if self.min_samples < 1:
            raise ValueError(f"min_samples must be >= 1, got {self.min_samples}")
        if self.max_samples < 1:
            raise ValueError(f"max_samples must be >= 1, got {self.max_samples}")
        if self.golden_window < 1:
            raise ValueError(f"golden_window must be >= 1, got {self.golden_window}")
        if self.scale_recommended_rps > self.approaching_rps:
            raise ValueError(
                "scale_recommended_rps must not exceed approaching_rps "
                f"({self.scale_recommended_rps} > {self.approaching_rps})"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides) -> "PipelineConfig":
        """Build a config from environment variables, then apply explicit overrides

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.
            overrides: Field values that take precedence over the environment.
                ``None`` values are ignored so unset CLI flags fall through.

        Raises:
            ValueError: If a value cannot be converted or fails validation
        """
        environ = os.environ if environ is None else environ
        types = {f.name: f.type for f in fields(cls)}
        values = {}

        for env_name, field_name in ENV_FIELDS.items():
            raw = environ.get(env_name)
            if raw is None or raw == "":
                continue
            values[field_name] = _convert(field_name, types[field_name], raw)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _convert(field_name: str, field_type, raw: str):
    try:
        if field_type in (int, "int"):
            return int(raw)
        if field_type in (float, "float"):
            return float(raw)
        if field_type in (bool, "bool"):
            return _parse_bool(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {field_name}: {raw!r}") from e
    return raw
