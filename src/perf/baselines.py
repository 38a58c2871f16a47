"""
CLI for perf baselines.

Usage:
    python -m src.perf.baselines record --source summary.json
    python -m src.perf.baselines compare
    python -m src.perf.baselines golden
    python -m src.perf.baselines guard [--markdown PATH]
"""

import json
import os
import sys
from pathlib import Path

import structlog

from src.core.artifacts import PERF_HISTORY
from src.core.errors import MalformedArtifact, MissingArtifact, RegressionDetected
from src.core.stage import base_parser, emit, run_stage

from .baseline import (
    BaselineComparator,
    BaselineRecorder,
    GoldenBaselineBuilder,
    RegressionGuard,
    render_markdown,
)
from .models import PerfBaselineSummary

logger = structlog.get_logger(__name__)

REGRESSION_SUMMARY = "regression-summary.md"


def parse_arguments(argv=None):
    """Parse command-line arguments"""
    parser = base_parser(
        "Record, compare and guard perf baselines in perf-history/",
        epilog="""
        Examples:
        # Record a benchmark summary produced by the load harness
        python -m src.perf.baselines record --source perf-summary.json

        # Human-readable diff of the two latest baselines per scenario
        python -m src.perf.baselines compare

        # Fail CI on regressions, also checking against golden medians
        python -m src.perf.baselines golden
        python -m src.perf.baselines guard --use-golden --markdown summary.md
        """,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    record = commands.add_parser("record", help="Record a new baseline summary")
    record.add_argument(
        "--source",
        help="JSON summary to record (default: read from stdin)",
    )

    commands.add_parser("compare", help="Compare the two latest baselines per scenario")

    golden = commands.add_parser("golden", help="Write median golden baselines")
    golden.add_argument(
        "--window",
        type=int,
        default=None,
        help="Number of recent baselines per scenario (default: GOLDEN_WINDOW or 5)",
    )

    guard = commands.add_parser("guard", help="Exit non-zero on performance regression")
    guard.add_argument(
        "--use-golden",
        action="store_true",
        default=None,
        help="Also compare against perf-history/golden-baseline.json",
    )
    guard.add_argument(
        "--markdown",
        default=None,
        help="Append a markdown summary to this file; an empty value disables it "
        "(default: GITHUB_STEP_SUMMARY, or perf-history/regression-summary.md "
        "when PERF_MD is set)",
    )

    return parser.parse_args(argv)


def read_source(source: str | None) -> PerfBaselineSummary:
    """Read a summary from a file or stdin; the scenario defaults to 'unknown'"""
    key = source or "<stdin>"
    if source is None:
        text = sys.stdin.read()
    else:
        path = Path(source)
        if not path.is_file():
            raise MissingArtifact(source)
        text = path.read_text(encoding="utf-8")

    try:
        data = json.loads(text)
    except ValueError as e:
        raise MalformedArtifact(key, str(e)) from e
    if not isinstance(data, dict):
        raise MalformedArtifact(key, "expected a JSON object")
    return PerfBaselineSummary.from_dict(data)


def record(args):
    def job(config, store) -> dict:
        summary = read_source(args.source)
        key = BaselineRecorder(store).record(summary)
        return {"file": key.rsplit("/", 1)[-1], "summary": summary.to_dict()}

    return job


def compare(config, store) -> dict:
    reports = BaselineComparator(store).compare()
    return {"comparisons": [r.to_dict() for r in reports]}


def golden(config, store) -> dict:
    return GoldenBaselineBuilder(store, window=config.golden_window).run()


def summary_path(markdown: str | None, data_dir: str) -> Path | None:
    """Where to append the guard's markdown summary, or None to skip it

    An explicit ``--markdown`` wins (an empty value disables the summary).
    Otherwise ``GITHUB_STEP_SUMMARY`` is used, and with only ``PERF_MD`` set
    the summary goes to ``perf-history/regression-summary.md`` under the data dir.
    """
    if markdown is not None:
        return Path(markdown) if markdown else None
    if os.getenv("GITHUB_STEP_SUMMARY"):
        return Path(os.environ["GITHUB_STEP_SUMMARY"])
    if os.getenv("PERF_MD"):
        return Path(data_dir) / PERF_HISTORY / REGRESSION_SUMMARY
    return None


def write_summary(path: Path, text: str) -> None:
    """Append the summary; failures are logged and never fail the guard"""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as fh:
            fh.write(text + "\n")
    except OSError as e:
        logger.warning("Could not write regression summary", path=str(path), error=str(e))


def guard(args):
    def job(config, store) -> None:
        checker = RegressionGuard(
            store,
            max_p50_increase_pct=config.max_p50_increase_pct,
            max_p95_increase_pct=config.max_p95_increase_pct,
            max_rps_drop_pct=config.max_rps_drop_pct,
            use_golden=config.use_golden,
        )
        evaluations = checker.evaluate()
        emit(
            {
                "thresholds": checker.thresholds,
                "evaluations": [e.to_dict() for e in evaluations],
            }
        )

        path = summary_path(args.markdown, config.data_dir)
        if path is not None:
            write_summary(path, render_markdown(evaluations, checker.thresholds))

        failed = {e.scenario: e.violations for e in evaluations if e.failed}
        if failed:
            raise RegressionDetected(failed)

    return job


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    if args.command == "record":
        return run_stage("baseline-record", args, record(args))
    if args.command == "compare":
        return run_stage("baseline-compare", args, compare)
    if args.command == "golden":
        return run_stage("baseline-golden", args, golden, golden_window=args.window)
    return run_stage("baseline-guard", args, guard(args), use_golden=args.use_golden)


if __name__ == "__main__":
    sys.exit(main())
