"""Timer detection and resolution measurement.

Provides tools for picking the benchmark clock:
- Candidate timers from highest to lowest expected resolution
- Empirical resolution measurement (smallest observable tick)
- The derived default ``min_time`` needed for at most 1% uncertainty
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from microbench.errors import NoWorkingTimerError
from microbench.stats import mean

logger = logging.getLogger(__name__)

# Trials used to average the smallest observable tick.
RESOLUTION_TRIALS = 30
# Reads per trial before a timer is declared stuck.
MAX_SPINS = 1_000_000
# Coarse wall clocks report at least this resolution (seconds).
COARSE_FLOOR = 0.0015


@dataclass(frozen=True)
class Timer:
    """A candidate timer.

    Attributes:
        name: Timer identifier (e.g. "perf_counter_ns").
        unit: Unit of raw readings ("ns" or "s").
        read: Returns the current raw reading from an arbitrary origin.
        divisor: Raw units per second.
        floor: Lower bound applied to the measured resolution.
    """

    name: str
    unit: str
    read: Callable[[], float]
    divisor: float = 1.0
    floor: float = 0.0


@dataclass(frozen=True)
class ClockSource:
    """The selected timer and its measured resolution (seconds).

    Immutable once constructed; safe to share between runs.
    """

    timer: Timer
    resolution: float

    def __post_init__(self) -> None:
        if not self.resolution > 0 or math.isinf(self.resolution):
            raise NoWorkingTimerError(
                f"timer {self.timer.name!r} has no usable resolution"
            )

    @property
    def name(self) -> str:
        return self.timer.name

    def now(self) -> float:
        """Raw reading, only meaningful relative to another ``now()``."""
        return self.timer.read()

    def elapsed(self, start: float) -> float:
        """Seconds elapsed since the raw reading ``start``."""
        return (self.timer.read() - start) / self.timer.divisor

    def sample(self) -> float:
        """Seconds since the timer's arbitrary origin."""
        return self.timer.read() / self.timer.divisor

    @property
    def default_min_time(self) -> float:
        return default_min_time(self.resolution)


def candidate_timers() -> list[Timer]:
    """Timers available on this host, best expected resolution first."""
    return [
        Timer("perf_counter_ns", "ns", time.perf_counter_ns, divisor=1e9),
        Timer("perf_counter", "s", time.perf_counter),
        Timer("monotonic_ns", "ns", time.monotonic_ns, divisor=1e9),
        Timer("time", "s", time.time, floor=COARSE_FLOOR),
    ]


def measure_resolution(
    timer: Timer, trials: int = RESOLUTION_TRIALS, max_spins: int = MAX_SPINS
) -> float:
    """Measure the smallest observable tick of a timer, in seconds.

    Each trial spins on the timer until two consecutive reads differ. The
    mean of the observed deltas is returned. A timer that does not advance
    within ``max_spins`` reads, or that runs backwards, yields ``inf``.

    Args:
        timer: Timer to measure.
        trials: Number of ticks to average.
        max_spins: Read budget per trial.

    Returns:
        Resolution in seconds, or ``math.inf`` for a broken timer.
    """
    deltas: list[float] = []
    read = timer.read
    for _ in range(trials):
        begin = read()
        measured = 0.0
        for _ in range(max_spins):
            measured = read() - begin
            if measured:
                break
        if measured > 0:
            deltas.append(measured)
        else:
            deltas.append(math.inf)
            break

    resolution = mean(deltas) / timer.divisor
    if math.isinf(resolution):
        return resolution
    return max(resolution, timer.floor)


def select_timer(timers: Sequence[Timer] | None = None) -> ClockSource:
    """Pick the timer with the finest measured resolution.

    Args:
        timers: Candidates to consider (defaults to ``candidate_timers()``).

    Returns:
        ClockSource for the best working timer.

    Raises:
        NoWorkingTimerError: If every candidate is broken.
    """
    if timers is None:
        timers = candidate_timers()

    best: ClockSource | None = None
    for timer in timers:
        resolution = measure_resolution(timer)
        logger.debug("timer %s resolution %.3g s", timer.name, resolution)
        if math.isinf(resolution):
            continue
        if best is None or resolution < best.resolution:
            best = ClockSource(timer=timer, resolution=resolution)

    if best is None:
        raise NoWorkingTimerError("unable to find a working timer")

    logger.info("selected timer %s (%.3g s)", best.name, best.resolution)
    return best


def default_min_time(resolution: float) -> float:
    """Time span needed for a percent uncertainty of at most 1% (seconds)."""
    return max(resolution / 2 / 0.01, 0.05)


_default_clock: ClockSource | None = None


def get_clock() -> ClockSource:
    """Process-wide clock, selected on first use."""
    global _default_clock
    if _default_clock is None:
        _default_clock = select_timer()
    return _default_clock
