"""
Pytest configuration and shared fixtures.
"""

import json

import pytest

from src.core.artifacts import FileArtifactStore
from src.core.config import PipelineConfig


@pytest.fixture
def file_store(tmp_path):
    """File-backed artifact store rooted in a temporary directory."""
    return FileArtifactStore(tmp_path)


@pytest.fixture
def write_artifact(tmp_path):
    """Write a JSON (or raw text) artifact below the store root."""

    def _write(key, payload):
        path = tmp_path.joinpath(*key.split("/"))
        path.parent.mkdir(parents=True, exist_ok=True)
        text = payload if isinstance(payload, str) else json.dumps(payload)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def pipeline_config(tmp_path):
    """Default configuration pointing at the temporary directory."""
    return PipelineConfig(data_dir=str(tmp_path))


@pytest.fixture
def residual_payload():
    """Residual artifact as written by the forecasting job."""
    return {
        "lookbackDays": 90,
        "residuals": [
            {"metric": "quotesSent", "actual": 12, "predicted": 11, "residual": 1.0},
            {"metric": "ordersCreated", "actual": 9, "predicted": 6, "residual": 3.0},
            {"metric": "ordersDelivered", "actual": 10, "predicted": 5, "residual": 5.0},
        ],
    }


@pytest.fixture
def step_load_rows():
    """Step-load results where instability appears at the third step."""
    return [
        {"connections": 10, "rps": 40.0, "p95": 12.0, "errors": 0, "timeouts": 0},
        {"connections": 20, "rps": 90.0, "p95": 18.0, "errors": 0, "timeouts": 0},
        {"connections": 30, "rps": 95.0, "p95": 45.0, "errors": 2, "timeouts": 0},
    ]
