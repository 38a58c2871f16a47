"""
Core utilities shared across the pipeline stages.
"""

from .artifacts import ArtifactStore, FileArtifactStore, RedisArtifactStore, get_store
from .config import PipelineConfig
from .errors import (
    MalformedArtifact,
    MissingArtifact,
    NoStableCapacity,
    PipelineError,
    RegressionDetected,
    WriteFailure,
)
from .logger import setup_logging

__all__ = [
    "ArtifactStore",
    "FileArtifactStore",
    "RedisArtifactStore",
    "get_store",
    "PipelineConfig",
    "PipelineError",
    "MissingArtifact",
    "MalformedArtifact",
    "WriteFailure",
    "NoStableCapacity",
    "RegressionDetected",
    "setup_logging",
]
