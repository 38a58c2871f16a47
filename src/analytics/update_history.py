"""
CLI appending the current forecast residuals to the rolling history.

Usage:
    python -m src.analytics.update_history [options]
"""

import sys

from src.core.artifacts import FORECAST_RESIDUALS
from src.core.stage import base_parser, run_stage

from .history import RollingHistoryStore
from .models import parse_residual_batch


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser(
        "Append forecast residuals to the rolling residual history",
        epilog="""
        Examples:
        # Basic usage
        python -m src.analytics.update_history

        # Keep a shorter window
        python -m src.analytics.update_history --max-samples 200
        """,
    )
    parser.add_argument(
        "--max-samples",
        type=int,
        default=None,
        help="Samples kept per metric (default: RESIDUAL_HISTORY_MAX_SAMPLES or 500)",
    )
    return parser.parse_args(argv)


def update_history(config, store) -> None:
    batch = parse_residual_batch(store.load(FORECAST_RESIDUALS), FORECAST_RESIDUALS)
    RollingHistoryStore(store, max_samples=config.max_samples).update(batch)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    return run_stage("residual-history", args, update_history, max_samples=args.max_samples)


if __name__ == "__main__":
    sys.exit(main())
