"""
CLI estimating sustainable capacity from the latest step-load results.

Usage:
    python -m src.perf.estimate_capacity [options]
"""

import sys

from src.core.stage import base_parser, run_stage

from .capacity import CapacityEstimator


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser(
        "Estimate max stable RPS and optimal concurrency from perf-history/step-load-*.json",
        epilog="""
        Examples:
        # Basic usage
        python -m src.perf.estimate_capacity

        # Stricter suggestion thresholds for a larger deployment profile
        python -m src.perf.estimate_capacity --scale-below 200 --approaching-below 400
        """,
    )
    parser.add_argument(
        "--scale-below",
        type=float,
        default=None,
        help="maxStableRps below this suggests scaling (default: 50)",
    )
    parser.add_argument(
        "--approaching-below",
        type=float,
        default=None,
        help="maxStableRps below this is approaching the limit (default: 100)",
    )
    return parser.parse_args(argv)


def estimate_capacity(config, store) -> dict:
    estimator = CapacityEstimator(
        scale_recommended_rps=config.scale_recommended_rps,
        approaching_rps=config.approaching_rps,
    )
    return estimator.run(store)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    return run_stage(
        "capacity",
        args,
        estimate_capacity,
        scale_recommended_rps=args.scale_below,
        approaching_rps=args.approaching_below,
    )


if __name__ == "__main__":
    sys.exit(main())
