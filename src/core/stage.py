"""
Shared CLI plumbing for batch stages: common flags and the exit-code contract.

Exit codes:
    0 - success, or a soft skip because an input artifact is missing or unusable
    1 - write failure, invalid configuration, or a failure the stage cannot ignore
"""

import argparse
import json
import os
import sys
from collections.abc import Callable
from typing import Any

import structlog

from .artifacts import ArtifactStore, get_store
from .config import STORE_BACKENDS, PipelineConfig
from .errors import MalformedArtifact, MissingArtifact, PipelineError
from .logger import level_from_name, setup_logging

logger = structlog.get_logger(__name__)


def base_parser(description: str, epilog: str | None = None) -> argparse.ArgumentParser:
    """Argument parser with the flags every stage accepts"""
    parser = argparse.ArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Root directory for file artifacts (default: PIPELINE_DATA_DIR or cwd)",
    )
    parser.add_argument(
        "--store",
        choices=STORE_BACKENDS,
        default=None,
        help="Artifact backend (default: PIPELINE_STORE or file)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO)",
    )
    return parser


def emit(payload: Any) -> None:
    """Print a computed artifact on stdout"""
    sys.stdout.write(json.dumps(payload, indent=2) + "\n")


def run_stage(
    name: str,
    args: argparse.Namespace,
    job: Callable[[PipelineConfig, ArtifactStore], Any],
    **config_overrides,
) -> int:
    """Configure logging, build config and store, run ``job`` and map the outcome to an exit code

    Args:
        name: Stage name used in log events
        args: Parsed arguments from a ``base_parser`` based parser
        job: Callable doing the stage work; its return value is printed as JSON
            unless it is None
        config_overrides: Extra PipelineConfig fields taken from stage flags

    Returns:
        Process exit code
    """
    setup_logging(level=level_from_name(args.log_level))
    log = logger.bind(stage=name)

    try:
        config = PipelineConfig.from_env(
            data_dir=args.data_dir, store_backend=args.store, **config_overrides
        )
        store = get_store(config)
        log.debug("Stage starting", store=repr(store))

        result = job(config, store)
        if result is not None:
            emit(result)

        log.info("Stage completed")
        return 0

    except MissingArtifact as e:
        log.warning("Input artifact missing, skipping", artifact=e.key)
        return 0

    except MalformedArtifact as e:
        log.warning("Input artifact unusable, skipping", artifact=e.key, reason=e.reason)
        return 0

    except KeyboardInterrupt:
        log.info("Interrupted by user")
        return 0

    except PipelineError as e:
        log.error("Stage failed", error=str(e))
        return 1

    except Exception as e:
        log.error("Stage failed", error=str(e), exc_info=True)
        return 1
