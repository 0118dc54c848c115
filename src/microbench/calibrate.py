"""Cycle calibration: timing ``count`` invocations and choosing the next count.

A cycle runs the test ``count`` times inside one timed interval. Cycles are
repeated with a growing count until one lasts at least ``min_time``; that
cycle's period becomes one sample.
"""

from __future__ import annotations

import asyncio
import inspect
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from microbench.errors import (
    ClockSaturatedError,
    SetupError,
    TeardownError,
    TestCallableError,
)

if TYPE_CHECKING:
    from microbench.clock import ClockSource
    from microbench.config import BenchmarkSpec

# Divisors applied to ESCALATION_BASE when a cycle clocks at zero, by cycle
# number. A divisor of 0 ends the escalation.
ESCALATION_DIVISORS: dict[int, int] = {1: 4096, 2: 512, 3: 64, 4: 8, 5: 0}
ESCALATION_BASE = 4_000_000


class Deferred:
    """Completion handle passed to deferred tests.

    The test must call ``resolve()`` exactly once per invocation, from the
    event loop thread, or ``reject()`` to report a failure.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._future: asyncio.Future[None] = loop.create_future()

    @property
    def resolved(self) -> bool:
        return self._future.done()

    def resolve(self) -> None:
        if self._future.done():
            raise RuntimeError("deferred already resolved")
        self._future.set_result(None)

    def reject(self, error: BaseException) -> None:
        if self._future.done():
            raise RuntimeError("deferred already resolved")
        self._future.set_exception(error)

    async def wait(self) -> None:
        await self._future


@dataclass(frozen=True)
class CycleResult:
    """Outcome of one timed cycle.

    Attributes:
        cycle: 1-based cycle number within the current sample.
        count: Invocations timed.
        elapsed: Measured duration of the cycle (seconds).
        period: Seconds per invocation.
        next_count: Count to use for the following cycle.
        done: Whether the cycle lasted at least ``min_time``.
    """

    cycle: int
    count: int
    elapsed: float
    period: float
    next_count: int
    done: bool

    @property
    def hz(self) -> float:
        return 1 / self.period if self.period > 0 else math.inf


def needs_event_loop(spec: BenchmarkSpec) -> bool:
    """Whether the test can only be driven from an event loop."""
    return spec.defer or inspect.iscoroutinefunction(spec.test)


class Calibrator:
    """Times cycles for one benchmark and extrapolates the next count."""

    def __init__(self, clock: ClockSource, min_time: float) -> None:
        self.clock = clock
        self.min_time = min_time

    def _call_hook(self, spec: BenchmarkSpec, name: str) -> None:
        hook = getattr(spec, name)
        if hook is None:
            return
        try:
            hook()
        except Exception as e:
            error_type = SetupError if name == "setup" else TeardownError
            raise error_type(spec.name, e) from e

    def measure(self, spec: BenchmarkSpec, count: int) -> float:
        """Run one synchronous cycle and return its duration in seconds.

        Setup and teardown run outside the timed region.

        Raises:
            SetupError, TestCallableError, TeardownError: Wrapping user errors.
        """
        self._call_hook(spec, "setup")

        test = spec.test
        clock = self.clock
        start = clock.now()
        try:
            for _ in range(count):
                test()
        except Exception as e:
            raise TestCallableError(spec.name, e) from e
        elapsed = clock.elapsed(start)

        self._call_hook(spec, "teardown")
        return elapsed

    async def measure_async(self, spec: BenchmarkSpec, count: int) -> float:
        """Run one cycle of a deferred or coroutine test."""
        self._call_hook(spec, "setup")

        test = spec.test
        clock = self.clock
        loop = asyncio.get_running_loop()
        start = clock.now()
        try:
            if spec.defer:
                for _ in range(count):
                    deferred = Deferred(loop)
                    result: Any = test(deferred)
                    if inspect.isawaitable(result):
                        await result
                    await deferred.wait()
            else:
                for _ in range(count):
                    await test()
        except Exception as e:
            raise TestCallableError(spec.name, e) from e
        elapsed = clock.elapsed(start)

        self._call_hook(spec, "teardown")
        return elapsed

    def evaluate(self, cycle: int, count: int, elapsed: float) -> CycleResult:
        """Derive the period of a cycle and the count for the next one.

        Args:
            cycle: 1-based cycle number within the sample.
            count: Invocations that were timed.
            elapsed: Measured duration of the cycle.

        Returns:
            CycleResult; ``done`` once ``elapsed >= min_time``.

        Raises:
            ClockSaturatedError: If the cycle still clocks at zero after the
                escalation table is exhausted.
        """
        period = elapsed / count
        done = elapsed >= self.min_time
        next_count = count

        if not done:
            if not elapsed:
                divisor = ESCALATION_DIVISORS.get(cycle)
                if not divisor:
                    raise ClockSaturatedError(
                        f"cycle of {count} calls clocked at zero after {cycle} cycles"
                    )
                next_count = ESCALATION_BASE // divisor
            if next_count <= count:
                if period <= 0:
                    raise ClockSaturatedError(
                        f"cannot extrapolate from a zero period at count {count}"
                    )
                next_count = count + math.ceil((self.min_time - elapsed) / period)

        return CycleResult(
            cycle=cycle,
            count=count,
            elapsed=elapsed,
            period=period,
            next_count=next_count,
            done=done,
        )
