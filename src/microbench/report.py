"""Human-readable rendering of benchmark results."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from microbench.runner import BenchmarkRun


def format_number(number: float, decimals: int = 0) -> str:
    """Format a number with comma thousands separators.

    Args:
        number: Value to format.
        decimals: Digits after the decimal point.

    Returns:
        String like "1,234,567" or "12.35".
    """
    return f"{number:,.{decimals}f}"


def format_hz(hz: float) -> str:
    return format_number(hz, 2 if hz < 100 else 0)


def format_error(error: BaseException) -> str:
    original = getattr(error, "original", None)
    if original is not None:
        return f"{type(original).__name__}: {original}"
    return f"{type(error).__name__}: {error}"


def format_run(run: BenchmarkRun) -> str:
    """One-line summary of a run.

    Returns:
        String like "join x 1,234,567 ops/sec ±0.52% (88 runs sampled)", or
        "join: ValueError: boom" for a failed run.
    """
    if run.error is not None:
        return f"{run.name}: {format_error(run.error)}"

    size = len(run.sample)
    plural = "" if size == 1 else "s"
    return (
        f"{run.name} x {format_hz(run.hz)} ops/sec "
        f"\xb1{run.stats.relative_margin_of_error:.2f}% "
        f"({size} run{plural} sampled)"
    )


def format_results_table(runs: Sequence[BenchmarkRun], title: str = "") -> str:
    """Format suite results as a table followed by the fastest/slowest verdict.

    Runs without a measurement (errored or aborted) are listed separately
    from measured runs.

    Args:
        runs: Finished runs, in execution order.
        title: Optional heading.

    Returns:
        Formatted table string.
    """
    from microbench.suite import fastest, slowest

    lines = []
    lines.append("=" * 78)
    lines.append(f"BENCHMARK RESULTS{': ' + title if title else ''}")
    lines.append("=" * 78)

    rme_label = "\xb1rme"
    header = f"{'Benchmark':<28} {'ops/sec':>16} {rme_label:>9} {'mean':>12} {'runs':>6}"
    lines.append(header)
    lines.append("-" * 78)

    unmeasured = []
    for run in runs:
        if not run.successful:
            unmeasured.append(run)
            continue
        mean_us = run.stats.mean * 1e6
        lines.append(
            f"{run.name:<28} {format_hz(run.hz):>16} "
            f"{run.stats.relative_margin_of_error:>8.2f}% "
            f"{mean_us:>10.3f}us {len(run.sample):>6}"
        )

    if unmeasured:
        lines.append("-" * 78)
        lines.append("No measurement:")
        for run in unmeasured:
            reason = format_error(run.error) if run.error else run.state.value
            lines.append(f"  {run.name:<26} {reason}")

    measured = [run for run in runs if run.successful]
    if len(measured) > 1:
        lines.append("-" * 78)
        leaders = fastest(measured)
        laggards = slowest(measured)
        if len(leaders) == len(measured):
            lines.append("No statistically significant difference (indeterminate)")
        else:
            lines.append("Fastest is " + ", ".join(run.name for run in leaders))
            lines.append("Slowest is " + ", ".join(run.name for run in laggards))

    return "\n".join(lines)
