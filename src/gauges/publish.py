"""
CLI refreshing a gauge cache from derived artifacts and exporting the snapshot.

Writes ``metrics-export/latest-snapshot.json`` (``{"gauges": {...}}``) for
exporters and tools that cannot hold an in-process cache.

Usage:
    python -m src.gauges.publish [options]
"""

import sys

from src.core.artifacts import METRICS_SNAPSHOT
from src.core.stage import base_parser, run_stage

from .cache import GaugeCache, GaugeCachePublisher


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser("Publish capacity, anomaly and threshold gauges")
    return parser.parse_args(argv)


def publish(config, store) -> dict:
    cache = GaugeCache()
    sections = GaugeCachePublisher(store, cache).refresh()
    snapshot = {"gauges": cache.snapshot()}
    store.save(METRICS_SNAPSHOT, snapshot)
    return {"sections": sections, **snapshot}


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)
    return run_stage("gauge-publish", args, publish)


if __name__ == "__main__":
    sys.exit(main())
