"""Benchmark execution.

Drives one benchmark run to completion:
- Calibrating cycles until each lasts at least ``min_time``
- Collecting samples until the stopping rule is met
- Running synchronously, or asynchronously with a pause between cycles
- Capturing user errors on the run instead of propagating them
"""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import time
from collections.abc import Generator
from dataclasses import dataclass

from microbench.calibrate import Calibrator, CycleResult, needs_event_loop
from microbench.clock import ClockSource, get_clock
from microbench.config import BenchmarkSpec
from microbench.errors import BenchmarkError, ClockSaturatedError, RunError
from microbench.events import Event, EventEmitter, EventType
from microbench.sampler import CollectorState, SampleCollector
from microbench.stats import Comparison, Stats, compare

logger = logging.getLogger(__name__)


class RunState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    ABORTED = "aborted"
    COMPLETED = "completed"


@dataclass
class Times:
    """Timing information of a run.

    Attributes:
        cycle: Duration of the last cycle, or mean period times count once
            sampled (seconds).
        period: Seconds per invocation.
        elapsed: Total run time (seconds), set when the run ends.
        timestamp: Wall-clock start time (epoch seconds).
    """

    cycle: float = 0.0
    period: float = 0.0
    elapsed: float = 0.0
    timestamp: float = 0.0


# Cycle steps: yields the count to time next, receives the measured seconds.
CycleSteps = Generator[int, float, None]


class BenchmarkRun(EventEmitter):
    """One execution of a benchmark.

    A run moves from PENDING to RUNNING, then to COMPLETED or ABORTED.
    Terminal runs never change again; ``reset()`` returns a fresh run.

    Attributes:
        spec: The benchmark being measured.
        count: Invocations per cycle, carried over between samples.
        cycles: Cycles executed so far.
        stats: Statistics of the collected sample.
        times: Timing information.
        state: Current state.
        error: Error that ended the run, if any.
        hz: Operations per second (inf for an unmeasurable test).
    """

    def __init__(self, spec: BenchmarkSpec, clock: ClockSource | None = None) -> None:
        super().__init__()
        self.spec = spec
        self.count = spec.initial_count
        self.cycles = 0
        self.stats = Stats()
        self.times = Times()
        self.state = RunState.PENDING
        self.error: BenchmarkError | None = None
        self.hz = 0.0
        self._clock = clock
        self._collector = SampleCollector(spec.min_samples, spec.max_time)
        self._start_ticks = 0.0
        self._paused = 0.0

    def __repr__(self) -> str:
        return f"<BenchmarkRun {self.name!r} {self.state.value}>"

    def __str__(self) -> str:
        from microbench.report import format_run

        return format_run(self)

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def clock(self) -> ClockSource:
        if self._clock is None:
            self._clock = get_clock()
        return self._clock

    @property
    def sample(self) -> tuple[float, ...]:
        return self.stats.sample

    @property
    def collector_state(self) -> CollectorState:
        return self._collector.state

    @property
    def running(self) -> bool:
        return self.state is RunState.RUNNING

    @property
    def aborted(self) -> bool:
        return self.state is RunState.ABORTED

    @property
    def terminal(self) -> bool:
        return self.state in (RunState.ABORTED, RunState.COMPLETED)

    @property
    def successful(self) -> bool:
        """Completed without error and with a finite rate."""
        return (
            self.state is RunState.COMPLETED
            and self.error is None
            and self.cycles > 0
            and math.isfinite(self.hz)
        )

    def compare(self, other: BenchmarkRun) -> Comparison:
        """Compare this run's sample with another's."""
        if other is self:
            return Comparison.INDETERMINATE
        return compare(self.sample, other.sample)

    def abort(self) -> BenchmarkRun:
        """Stop a running benchmark at the next cycle boundary.

        No-op unless the run is RUNNING; an ``abort`` listener may cancel.
        """
        if self.state is not RunState.RUNNING:
            return self
        event = self.emit(EventType.ABORT)
        if event.cancelled:
            return self
        self.state = RunState.ABORTED
        self._collector.abort()
        logger.info("aborted %s after %d cycles", self.name, self.cycles)
        return self

    def reset(self) -> BenchmarkRun:
        """Return a fresh PENDING run of the same benchmark.

        A running run is aborted first. Listeners are carried over. If a
        ``reset`` listener cancels, this run is returned unchanged.
        """
        if self.state is RunState.RUNNING:
            self.abort()
            if self.state is RunState.RUNNING:
                return self
        if self.state is RunState.PENDING:
            return self
        event = self.emit(EventType.RESET)
        if event.cancelled:
            return self
        fresh = BenchmarkRun(self.spec, clock=self._clock)
        fresh._events = {t: list(listeners) for t, listeners in self._events.items()}
        return fresh

    def run(self) -> BenchmarkRun:
        """Run to completion synchronously.

        Deferred and coroutine tests are driven by a private event loop.

        Raises:
            NoWorkingTimerError: If no clock was given and none works.
        """
        if needs_event_loop(self.spec):
            return asyncio.run(self.run_async())

        calibrator = self._start()
        if calibrator is None:
            return self

        steps = self._cycle_steps(calibrator)
        try:
            count = next(steps)
            while True:
                if self.state is not RunState.RUNNING:
                    break
                try:
                    elapsed = calibrator.measure(self.spec, count)
                except RunError as e:
                    self._fail(e)
                    break
                count = steps.send(elapsed)
        except StopIteration:
            pass
        finally:
            steps.close()

        self._finish()
        return self

    async def run_async(self, yield_between_cycles: bool | None = None) -> BenchmarkRun:
        """Run to completion, returning control to the event loop between cycles.

        Args:
            yield_between_cycles: Sleep for ``spec.delay`` between cycles;
                defaults to ``spec.async_``.
        """
        if yield_between_cycles is None:
            yield_between_cycles = self.spec.async_
        deferred = needs_event_loop(self.spec)

        calibrator = self._start()
        if calibrator is None:
            return self

        steps = self._cycle_steps(calibrator)
        try:
            count = next(steps)
            while True:
                if self.state is not RunState.RUNNING:
                    break
                try:
                    if deferred:
                        elapsed = await calibrator.measure_async(self.spec, count)
                    else:
                        elapsed = calibrator.measure(self.spec, count)
                except RunError as e:
                    self._fail(e)
                    break
                count = steps.send(elapsed)
                if yield_between_cycles:
                    paused_at = self.clock.now()
                    await asyncio.sleep(self.spec.delay)
                    self._paused += self.clock.elapsed(paused_at)
        except StopIteration:
            pass
        finally:
            steps.close()

        self._finish()
        return self

    def _start(self) -> Calibrator | None:
        if self.state is not RunState.PENDING:
            raise RuntimeError(f"{self!r} already ran; use reset() for a fresh run")

        clock = self.clock
        min_time = self.spec.min_time or clock.default_min_time

        self.state = RunState.RUNNING
        self.times.timestamp = time.time()
        self._start_ticks = clock.now()
        event = self.emit(EventType.START)
        if event.cancelled:
            self.state = RunState.PENDING
            return None

        logger.debug(
            "starting %s (min_time=%.4f s, max_time=%.2f s, min_samples=%d)",
            self.name,
            min_time,
            self.spec.max_time,
            self.spec.min_samples,
        )
        return Calibrator(clock, min_time)

    def _cycle_steps(self, calibrator: Calibrator) -> CycleSteps:
        clock = self.clock
        while self.state is RunState.RUNNING:
            sample_start = clock.now()
            paused_mark = self._paused
            result: CycleResult | None = None
            cycle = 0
            while result is None or not result.done:
                cycle += 1
                count = self.count
                elapsed = yield count
                if self.state is not RunState.RUNNING:
                    return
                try:
                    result = calibrator.evaluate(cycle, count, elapsed)
                except ClockSaturatedError as e:
                    self._saturate(e)
                    return
                if not self._record_cycle(result):
                    return
                self.count = result.next_count

            sample_elapsed = clock.elapsed(sample_start) - (self._paused - paused_mark)
            self._add_sample(result.period, sample_elapsed)

    def _record_cycle(self, result: CycleResult) -> bool:
        self.cycles += 1
        self.times.cycle = result.elapsed
        self.times.period = result.period
        self.hz = result.hz

        event = self.emit(EventType.CYCLE)
        if event.aborted:
            self.abort()
        return self.state is RunState.RUNNING

    def _add_sample(self, period: float, elapsed: float) -> None:
        more = self._collector.add(period, elapsed)
        self.stats = self._collector.stats
        self.hz = self.stats.hz
        self.times.period = self.stats.mean
        self.times.cycle = self.stats.mean * self.count
        if not more:
            self.state = RunState.COMPLETED

    def _fail(self, error: BenchmarkError) -> None:
        if self.state is not RunState.RUNNING:
            return
        logger.warning("benchmark %s failed: %s", self.name, error)
        self.error = error
        self._collector.abort()
        self.state = RunState.ABORTED
        self.emit(Event(EventType.ERROR, message=error))

    def _saturate(self, error: ClockSaturatedError) -> None:
        self._collector.saturate()
        self.stats = self._collector.stats
        self.hz = math.inf
        self._fail(error)

    def _finish(self) -> None:
        self.times.elapsed = self.clock.elapsed(self._start_ticks)
        logger.info(
            "finished %s: %s, %d samples, %.2f ops/sec",
            self.name,
            self.state.value,
            len(self.sample),
            self.hz,
        )
        self.emit(EventType.COMPLETE)


def run_sync(spec: BenchmarkSpec, clock: ClockSource | None = None) -> BenchmarkRun:
    """Measure ``spec`` in a tight loop and return the finished run."""
    return BenchmarkRun(spec, clock=clock).run()


async def run_async(
    spec: BenchmarkSpec,
    yield_between_cycles: bool = True,
    clock: ClockSource | None = None,
) -> BenchmarkRun:
    """Measure ``spec``, yielding to the event loop between cycles."""
    return await BenchmarkRun(spec, clock=clock).run_async(yield_between_cycles)


def abort(run: BenchmarkRun) -> BenchmarkRun:
    return run.abort()
