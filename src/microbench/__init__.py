"""Adaptive micro-benchmarking with statistical comparison.

This package measures the throughput of a single callable with:
- Automatic selection of the highest-resolution timer
- Cycle calibration so each timed interval dwarfs timer noise
- Adaptive sampling until a minimum sample size and time budget are met
- Mann-Whitney U / z-test comparison between benchmarks
"""

from __future__ import annotations

from microbench.calibrate import Deferred
from microbench.clock import ClockSource, get_clock, measure_resolution, select_timer
from microbench.config import BenchmarkSpec, load_suite_config
from microbench.errors import (
    BenchmarkError,
    ClockSaturatedError,
    NoWorkingTimerError,
    SetupError,
    TeardownError,
    TestCallableError,
)
from microbench.events import Event, EventType
from microbench.runner import BenchmarkRun, RunState, abort, run_async, run_sync
from microbench.stats import Comparison, Stats, compare, compute_stats
from microbench.suite import Suite, fastest, slowest

__all__ = [
    "BenchmarkError",
    "BenchmarkRun",
    "BenchmarkSpec",
    "ClockSaturatedError",
    "ClockSource",
    "Comparison",
    "Deferred",
    "Event",
    "EventType",
    "NoWorkingTimerError",
    "RunState",
    "SetupError",
    "Stats",
    "Suite",
    "TeardownError",
    "TestCallableError",
    "abort",
    "compare",
    "compute_stats",
    "fastest",
    "get_clock",
    "load_suite_config",
    "measure_resolution",
    "run_async",
    "run_sync",
    "select_timer",
    "slowest",
]
