"""
Artifact storage shared by pipeline stages.

Stages never call each other; they hand off JSON artifacts through an
ArtifactStore. Keys are slash-separated relative paths such as
``analytics-derived/residual-history.json`` regardless of the backend.
"""

import fnmatch
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import redis
import structlog

from .config import PipelineConfig
from .errors import MalformedArtifact, MissingArtifact, WriteFailure

logger = structlog.get_logger(__name__)

# Well-known artifact keys
FORECAST_RESIDUALS = "analytics-derived/forecast-residuals.json"
RESIDUAL_HISTORY = "analytics-derived/residual-history.json"
RESIDUAL_ANOMALIES = "analytics-derived/residual-anomalies.json"
RESIDUAL_THRESHOLDS = "analytics-derived/residual-thresholds.json"
CAPACITY_LATEST = "capacity-derived/capacity-latest.json"
PERF_HISTORY = "perf-history"
GOLDEN_BASELINE = f"{PERF_HISTORY}/golden-baseline.json"
METRICS_SNAPSHOT = "metrics-export/latest-snapshot.json"


def dumps(payload: Any) -> str:
    """Serialize an artifact; identical payloads always give identical text"""
    return json.dumps(payload, indent=2) + "\n"


class ArtifactStore(ABC):
    """Abstract backend for reading and writing JSON artifacts"""

    @abstractmethod
    def read_text(self, key: str) -> str:
        """Return the raw artifact text

        Raises:
            MissingArtifact: If no artifact is stored under ``key``
        """

    @abstractmethod
    def write_text(self, key: str, text: str) -> None:
        """Replace the artifact under ``key`` in a single step

        Raises:
            WriteFailure: If the artifact could not be persisted
        """

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def list_keys(self, prefix: str, pattern: str = "*") -> list[str]:
        """List keys directly under ``prefix`` whose name matches ``pattern``, sorted"""

    def load(self, key: str) -> Any:
        """Load and parse a JSON artifact

        Raises:
            MissingArtifact: If the artifact is absent
            MalformedArtifact: If it is not valid JSON
        """
        text = self.read_text(key)
        try:
            return json.loads(text)
        except ValueError as e:
            raise MalformedArtifact(key, str(e)) from e

    def save(self, key: str, payload: Any) -> str:
        """Serialize and persist a JSON artifact, returning the written text"""
        text = dumps(payload)
        self.write_text(key, text)
        logger.debug("Artifact saved", key=key, bytes=len(text))
        return text


class FileArtifactStore(ArtifactStore):
    """Artifacts as files below a root directory"""

    def __init__(self, root: str | os.PathLike = "."):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        return self.root.joinpath(*key.split("/"))

    def read_text(self, key: str) -> str:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise MissingArtifact(key) from e
        except UnicodeDecodeError as e:
            raise MalformedArtifact(key, str(e)) from e

    def write_text(self, key: str, text: str) -> None:
        path = self._path(key)
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write beside the target then rename: readers see old or new, never partial
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error("Failed to write artifact", key=key, error=str(e))
            raise WriteFailure(key, str(e)) from e

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def list_keys(self, prefix: str, pattern: str = "*") -> list[str]:
        directory = self._path(prefix)
        if not directory.is_dir():
            return []
        names = sorted(
            p.name
            for p in directory.iterdir()
            if p.is_file() and fnmatch.fnmatchcase(p.name, pattern)
        )
        return [f"{prefix}/{name}" for name in names]

    def __repr__(self) -> str:
        return f"FileArtifactStore(root={str(self.root)!r})"


class RedisArtifactStore(ArtifactStore):
    """Artifacts as JSON strings in Redis, one key per artifact"""

    def __init__(self, config: PipelineConfig):
        try:
            self.redis = redis.Redis(
                host=config.redis_host,
                port=config.redis_port,
                db=config.redis_db,
                password=config.redis_password,
                decode_responses=True,
            )
            self.namespace = config.redis_namespace
            self.redis.ping()
            logger.info(
                "Redis artifact store initialized", host=config.redis_host, port=config.redis_port
            )
        except Exception as e:
            logger.error("Failed to initialize Redis", error=str(e))
            raise

    def _make_key(self, key: str) -> str:
        return f"{self.namespace}:artifact:{key}"

    def read_text(self, key: str) -> str:
        data = self.redis.get(self._make_key(key))
        if data is None:
            raise MissingArtifact(key)
        return data

    def write_text(self, key: str, text: str) -> None:
        try:
            self.redis.set(self._make_key(key), text)
        except redis.RedisError as e:
            logger.error("Failed to write artifact to Redis", key=key, error=str(e))
            raise WriteFailure(key, str(e)) from e

    def exists(self, key: str) -> bool:
        return bool(self.redis.exists(self._make_key(key)))

    def list_keys(self, prefix: str, pattern: str = "*") -> list[str]:
        base = self._make_key(f"{prefix}/")
        keys = []
        for raw in self.redis.scan_iter(match=f"{base}{pattern}"):
            name = raw[len(base):]
            if "/" not in name:
                keys.append(f"{prefix}/{name}")
        return sorted(keys)

    def __repr__(self) -> str:
        return f"RedisArtifactStore(namespace={self.namespace!r})"


def get_store(config: PipelineConfig) -> ArtifactStore:
    """Factory for the configured artifact backend"""
    if config.store_backend == "redis":
        return RedisArtifactStore(config)
    return FileArtifactStore(config.data_dir)
