"""Command-line interface for microbench.

Provides the `microbench` command with subcommands for:
- Running a benchmark suite file
- Showing candidate timers and their resolution
- Listing saved sessions
- Comparing sessions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import math
import sys
from datetime import datetime
from pathlib import Path

from microbench.clock import candidate_timers, default_min_time, measure_resolution, select_timer
from microbench.config import load_suite_config
from microbench.database import BenchmarkDatabase, BenchmarkResult, Session
from microbench.errors import NoWorkingTimerError, SuiteConfigError
from microbench.events import Event, EventType
from microbench.report import format_hz, format_results_table
from microbench.stats import Comparison
from microbench.suite import Suite

EXIT_OK = 0
EXIT_BENCHMARK_ERROR = 1
EXIT_NO_TIMER = 2

DEFAULT_DB_PATH = Path("microbench_results.db")


def _overrides(args: argparse.Namespace) -> dict[str, float | int]:
    overrides: dict[str, float | int] = {}
    if args.min_time is not None:
        overrides["min_time"] = args.min_time
    if args.max_time is not None:
        overrides["max_time"] = args.max_time
    if args.min_samples is not None:
        overrides["min_samples"] = args.min_samples
    if args.initial_count is not None:
        overrides["initial_count"] = args.initial_count
    return overrides


def cmd_run(args: argparse.Namespace) -> int:
    """Run a benchmark suite file."""
    try:
        config = load_suite_config(Path(args.spec_file))
    except SuiteConfigError as e:
        print(f"Error loading suite: {e}")
        return EXIT_BENCHMARK_ERROR

    try:
        clock = select_timer()
    except NoWorkingTimerError as e:
        print(f"Error: {e}")
        return EXIT_NO_TIMER

    overrides = _overrides(args)
    specs = [spec.with_options(**overrides) for spec in config.benchmarks]
    if args.benchmark:
        specs = [spec for spec in specs if spec.name == args.benchmark]
    if not specs:
        print("No benchmarks to run.")
        return EXIT_OK

    print(f"microbench: {config.name}")
    print("=" * 60)
    print(f"Timer: {clock.name} (resolution {clock.resolution:.3g} s)")
    if args.min_time:
        print(f"Min time per cycle: {args.min_time:.3f} s (--min-time)")
    else:
        print(f"Min time per cycle: {default_min_time(clock.resolution):.3f} s (default)")
    print()

    suite = Suite(config.name, specs, clock=clock)

    def on_cycle(event: Event) -> None:
        print(f"  {event.target}")

    if not args.quiet:
        suite.on(EventType.CYCLE, on_cycle)

    interrupted = False
    try:
        if args.use_async:
            asyncio.run(suite.run_async(queued=args.queued))
        else:
            suite.run(queued=args.queued)
    except KeyboardInterrupt:
        interrupted = True
        print("\nAborted.")

    print()
    print(format_results_table(suite.runs, title=config.name))

    if args.save:
        session = Session(
            timestamp=datetime.now(),
            description=args.description,
            git_commit=None,
            timer=clock.name,
            resolution=clock.resolution,
            results=[BenchmarkResult.from_run(run) for run in suite.runs],
        )
        with BenchmarkDatabase(Path(args.db) if args.db else DEFAULT_DB_PATH) as db:
            session_id = db.save_session(session)
            print(f"\nResults saved to session #{session_id}")

    if interrupted or any(run.error is not None for run in suite.runs):
        return EXIT_BENCHMARK_ERROR
    return EXIT_OK


def cmd_timers(args: argparse.Namespace) -> int:
    """Show candidate timers and their measured resolution."""
    print("Available Timers")
    print("=" * 60)
    print(f"{'Name':<18} {'Unit':<6} {'Resolution':>14}  Status")
    print("-" * 60)

    working = 0
    for timer in candidate_timers():
        resolution = measure_resolution(timer)
        if math.isinf(resolution):
            print(f"{timer.name:<18} {timer.unit:<6} {'-':>14}  broken")
        else:
            working += 1
            print(f"{timer.name:<18} {timer.unit:<6} {resolution:>12.3g} s  ok")

    return EXIT_OK if working else EXIT_NO_TIMER


def cmd_list(args: argparse.Namespace) -> int:
    """List saved sessions."""
    db_path = Path(args.db) if args.db else DEFAULT_DB_PATH

    if not db_path.exists():
        print("No benchmark database found.")
        return EXIT_OK

    with BenchmarkDatabase(db_path) as db:
        sessions = db.list_sessions()

        if not sessions:
            print("No benchmark sessions recorded yet.")
            return EXIT_OK

        print("Saved Benchmark Sessions")
        print("=" * 80)
        print(f"{'ID':>5} {'Date':>20} {'Commit':>12} Description")
        print("-" * 80)

        for session_id, timestamp, description, git_commit in sessions:
            date_str = timestamp.strftime("%Y-%m-%d %H:%M")
            commit = git_commit[:12] if git_commit else "-"
            print(f"{session_id:>5} {date_str:>20} {commit:>12} {description or ''}")

        print("-" * 80)
        print(f"Total: {len(sessions)} session(s)")

    return EXIT_OK


def cmd_compare(args: argparse.Namespace) -> int:
    """Compare two saved sessions."""
    db_path = Path(args.db) if args.db else DEFAULT_DB_PATH

    if not db_path.exists():
        print("No benchmark database found.")
        return EXIT_BENCHMARK_ERROR

    with BenchmarkDatabase(db_path) as db:
        id1 = args.id1
        id2 = args.id2

        if id2 is None:
            id2 = db.get_latest_session_id()
            if id2 is None:
                print("No sessions to compare with.")
                return EXIT_BENCHMARK_ERROR
            if id1 == id2:
                print("Only one session exists.")
                return EXIT_BENCHMARK_ERROR

        for session_id in (id1, id2):
            if db.load_session(session_id) is None:
                print(f"Error: Session #{session_id} not found.")
                return EXIT_BENCHMARK_ERROR

        comparison = db.compare_sessions(id1, id2)

        print("Benchmark Comparison")
        print("=" * 78)
        print(
            f"{'Benchmark':<28} {'#' + str(id1) + ' ops/sec':>16} "
            f"{'#' + str(id2) + ' ops/sec':>16} {'Verdict':>15}"
        )
        print("-" * 78)

        for name, (first, second, outcome) in comparison.items():
            hz1 = format_hz(first.hz) if first.measured else "no measurement"
            if second is None:
                hz2 = "-"
            else:
                hz2 = format_hz(second.hz) if second.measured else "no measurement"

            if not first.measured or second is None or not second.measured:
                verdict = "-"
            elif outcome is Comparison.FASTER:
                verdict = f"#{id1} faster"
            elif outcome is Comparison.SLOWER:
                verdict = f"#{id1} slower"
            else:
                verdict = "indeterminate"
            print(f"{name:<28} {hz1:>16} {hz2:>16} {verdict:>15}")

        print("-" * 78)

    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="microbench",
        description="Adaptive micro-benchmarking with statistical comparison",
    )
    parser.add_argument(
        "--db",
        help=f"Path to results database (default: {DEFAULT_DB_PATH})",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run command
    run_parser = subparsers.add_parser("run", help="Run a benchmark suite file")
    run_parser.add_argument("spec_file", help="Path to the suite YAML file")
    run_parser.add_argument(
        "--min-time",
        type=float,
        help="Minimum time per timed cycle in seconds (default: from timer resolution)",
    )
    run_parser.add_argument(
        "--max-time",
        type=float,
        help="Sampling budget per benchmark in seconds (default: 5)",
    )
    run_parser.add_argument(
        "--min-samples",
        type=int,
        help="Minimum number of samples (default: 5)",
    )
    run_parser.add_argument(
        "--initial-count",
        type=int,
        help="Invocations in the first cycle (default: 1)",
    )
    run_parser.add_argument(
        "--benchmark",
        help="Run only the specified benchmark",
    )
    run_parser.add_argument(
        "--async",
        dest="use_async",
        action="store_true",
        help="Yield to the event loop between cycles",
    )
    run_parser.add_argument(
        "--queued",
        action="store_true",
        help="Treat the suite as a queue",
    )
    run_parser.add_argument(
        "--save",
        action="store_true",
        help="Save results to database",
    )
    run_parser.add_argument(
        "-d",
        "--description",
        help="Description for this benchmark run",
    )
    run_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress per-benchmark progress output",
    )
    run_parser.set_defaults(func=cmd_run)

    # timers command
    timers_parser = subparsers.add_parser("timers", help="Show candidate timers")
    timers_parser.set_defaults(func=cmd_timers)

    # list command
    list_parser = subparsers.add_parser("list", help="List saved sessions")
    list_parser.set_defaults(func=cmd_list)

    # compare command
    compare_parser = subparsers.add_parser("compare", help="Compare two sessions")
    compare_parser.add_argument(
        "id1",
        type=int,
        help="First session ID",
    )
    compare_parser.add_argument(
        "id2",
        type=int,
        nargs="?",
        help="Second session ID (default: latest)",
    )
    compare_parser.set_defaults(func=cmd_compare)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return EXIT_OK

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
