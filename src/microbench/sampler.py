"""Sample collection and the stopping rule."""

from __future__ import annotations

import enum
import logging

from microbench.stats import Stats, compute_stats

logger = logging.getLogger(__name__)


class CollectorState(enum.Enum):
    AWAITING_FIRST_SAMPLE = "awaiting_first_sample"
    SAMPLING = "sampling"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"


class SampleCollector:
    """Accumulates per-cycle periods and decides when sampling stops.

    Sampling stops once at least ``min_samples`` periods are held and the
    accumulated sampling time exceeds ``max_time``. Time spent between
    samples is not counted.

    Attributes:
        sample: Periods in the order they were measured.
        elapsed: Accumulated sampling time (seconds).
        stats: Statistics of the current sample, recomputed on every add.
        state: Current collector state.
    """

    def __init__(self, min_samples: int, max_time: float) -> None:
        self.min_samples = min_samples
        self.max_time = max_time
        self.sample: list[float] = []
        self.elapsed = 0.0
        self.stats = Stats()
        self.state = CollectorState.AWAITING_FIRST_SAMPLE

    @property
    def done(self) -> bool:
        return self.state in (
            CollectorState.CONVERGED,
            CollectorState.TIMED_OUT,
            CollectorState.ABORTED,
        )

    def add(self, period: float, elapsed: float) -> bool:
        """Record one sample.

        Args:
            period: Seconds per invocation measured by the sample's final cycle.
            elapsed: Time spent collecting this sample (seconds).

        Returns:
            True if another sample should be collected.
        """
        if self.done:
            raise RuntimeError(f"collector is {self.state.value}")

        self.sample.append(period)
        self.elapsed += elapsed
        self.stats = compute_stats(self.sample)

        if len(self.sample) >= self.min_samples and self.elapsed > self.max_time:
            self.state = CollectorState.TIMED_OUT
            logger.debug(
                "sampling finished after %d samples in %.3f s",
                len(self.sample),
                self.elapsed,
            )
        else:
            self.state = CollectorState.SAMPLING
        return not self.done

    def saturate(self) -> None:
        """Discard everything for an unmeasurable test."""
        self.sample.clear()
        self.stats = Stats()
        self.state = CollectorState.CONVERGED

    def abort(self) -> None:
        if not self.done:
            self.state = CollectorState.ABORTED
