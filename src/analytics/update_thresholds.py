"""
CLI recomputing adaptive residual thresholds from the rolling history.

Usage:
    python -m src.analytics.update_thresholds [options]
"""

import sys

from src.core.stage import base_parser, run_stage

from .history import RollingHistoryStore
from .thresholds import AdaptiveThresholdEngine


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser(
        "Derive mean +/- K*std residual thresholds per metric",
        epilog="""
        Examples:
        # Basic usage
        python -m src.analytics.update_thresholds

        # Tighter bounds, earlier readiness
        python -m src.analytics.update_thresholds --std-k 2.5 --min-samples 10
        """,
    )
    parser.add_argument(
        "--std-k",
        type=float,
        default=None,
        help="Standard deviation multiplier (default: RESIDUAL_THRESHOLD_STD_K or 3)",
    )
    parser.add_argument(
        "--min-samples",
        type=int,
        default=None,
        help="Samples required before a metric is ready (default: 20)",
    )
    return parser.parse_args(argv)


def update_thresholds(config, store) -> dict:
    engine = AdaptiveThresholdEngine(std_k=config.std_k, min_samples=config.min_samples)
    history_store = RollingHistoryStore(store, max_samples=config.max_samples)
    return engine.run(history_store, store)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    return run_stage(
        "residual-thresholds",
        args,
        update_thresholds,
        std_k=args.std_k,
        min_samples=args.min_samples,
    )


if __name__ == "__main__":
    sys.exit(main())
