"""
CLI scoring the current forecast residual batch.

Usage:
    python -m src.analytics.score_residuals [options]
"""

import sys

from src.core.stage import base_parser, run_stage

from .scorer import AnomalyScorer


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser(
        "Compute batch-relative anomaly scores for forecast residuals",
        epilog="""
        Examples:
        python -m src.analytics.score_residuals --data-dir /var/lib/perf
        """,
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    return run_stage("residual-anomaly", args, lambda config, store: AnomalyScorer(store).run())


if __name__ == "__main__":
    sys.exit(main())
