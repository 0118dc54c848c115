"""Suites: ordered collections of benchmarks run one after another.

Benchmarks never run concurrently; each run owns the process while it
samples. In queued mode each benchmark is removed from the front of the
suite once it finishes, so benchmarks added during the run are picked up.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, MutableSequence
from typing import Any, overload

from microbench.clock import ClockSource
from microbench.config import BenchmarkSpec
from microbench.events import Event, EventEmitter, EventType
from microbench.runner import BenchmarkRun
from microbench.stats import Comparison

logger = logging.getLogger(__name__)


def successful(runs: Iterable[BenchmarkRun]) -> list[BenchmarkRun]:
    """Runs that completed without error and with a finite rate."""
    return [run for run in runs if run.successful]


def _extremes(runs: Iterable[BenchmarkRun], slowest: bool) -> list[BenchmarkRun]:
    ranked = sorted(
        successful(runs),
        key=lambda run: run.stats.mean + run.stats.margin_of_error,
        reverse=slowest,
    )
    if not ranked:
        return []
    leader = ranked[0]
    return [run for run in ranked if leader.compare(run) is Comparison.INDETERMINATE]


def fastest(runs: Iterable[BenchmarkRun]) -> list[BenchmarkRun]:
    """The fastest run and every run statistically tied with it."""
    return _extremes(runs, slowest=False)


def slowest(runs: Iterable[BenchmarkRun]) -> list[BenchmarkRun]:
    """The slowest run and every run statistically tied with it."""
    return _extremes(runs, slowest=True)


FILTERS: dict[str, Callable[[Iterable[BenchmarkRun]], list[BenchmarkRun]]] = {
    "successful": successful,
    "fastest": fastest,
    "slowest": slowest,
}


class Suite(EventEmitter, MutableSequence[BenchmarkSpec]):
    """An ordered collection of benchmarks.

    Attributes:
        name: Suite name.
        runs: Runs produced by the last ``run``, in execution order.
        running: Whether the suite is currently running.
        aborted: Whether the last run was aborted.
    """

    def __init__(
        self,
        name: str = "",
        benchmarks: Iterable[BenchmarkSpec] = (),
        clock: ClockSource | None = None,
    ) -> None:
        super().__init__()
        self.name = name
        self.runs: list[BenchmarkRun] = []
        self.running = False
        self.aborted = False
        self._benchmarks: list[BenchmarkSpec] = list(benchmarks)
        self._clock = clock
        self._current: BenchmarkRun | None = None

    def __repr__(self) -> str:
        return f"<Suite {self.name!r} ({len(self)} benchmarks)>"

    @overload
    def __getitem__(self, index: int) -> BenchmarkSpec: ...

    @overload
    def __getitem__(self, index: slice) -> list[BenchmarkSpec]: ...

    def __getitem__(self, index):
        return self._benchmarks[index]

    def __setitem__(self, index, value) -> None:
        self._benchmarks[index] = value

    def __delitem__(self, index) -> None:
        del self._benchmarks[index]

    def __len__(self) -> int:
        return len(self._benchmarks)

    def insert(self, index: int, value: BenchmarkSpec) -> None:
        self._benchmarks.insert(index, value)

    def add(
        self,
        benchmark: BenchmarkSpec | str,
        test: Callable[..., Any] | None = None,
        **options: Any,
    ) -> Suite:
        """Append a benchmark unless an ``add`` listener cancels.

        Args:
            benchmark: A spec, or the name of a new one.
            test: Callable to measure when ``benchmark`` is a name.
            **options: Further BenchmarkSpec fields when ``benchmark`` is a name.
        """
        if isinstance(benchmark, str):
            if test is None:
                raise TypeError(f"benchmark {benchmark!r} needs a test callable")
            benchmark = BenchmarkSpec(name=benchmark, test=test, **options)
        event = self.emit(Event(EventType.ADD, target=benchmark))
        if not event.cancelled:
            self.append(benchmark)
        return self

    def filter(
        self, kind: str | Callable[[BenchmarkRun], bool]
    ) -> list[BenchmarkRun]:
        """Select runs by ``"successful"``, ``"fastest"``, ``"slowest"`` or a predicate."""
        if callable(kind):
            return [run for run in self.runs if kind(run)]
        try:
            return FILTERS[kind](self.runs)
        except KeyError:
            raise ValueError(f"unknown filter {kind!r}") from None

    def abort(self) -> Suite:
        """Stop after the current benchmark's next cycle; no-op unless running."""
        if not self.running:
            return self
        event = self.emit(EventType.ABORT)
        if event.cancelled:
            return self
        self.aborted = True
        if self._current is not None:
            self._current.abort()
        logger.info("suite %s aborted", self.name)
        return self

    def reset(self) -> Suite:
        """Abort if running, otherwise clear results unless a listener cancels."""
        if self.running:
            return self.abort()
        if not (self.aborted or self.runs):
            return self
        event = self.emit(EventType.RESET)
        if not event.cancelled:
            self.aborted = False
            self.runs = []
        return self

    def run(self, queued: bool = False) -> Suite:
        """Run every benchmark synchronously, in order.

        Args:
            queued: Remove each benchmark from the front of the suite as it
                finishes, picking up benchmarks added meanwhile.
        """
        pending = self._begin(queued)
        if pending is None:
            return self
        try:
            while (spec := self._next(pending, queued)) is not None:
                run = self._new_run(spec)
                run.run()
                if not self._after(run, spec, queued):
                    break
        except KeyboardInterrupt:
            self._interrupt()
            raise
        self._complete()
        return self

    async def run_async(
        self, queued: bool = False, yield_between_cycles: bool | None = True
    ) -> Suite:
        """Run every benchmark in order, yielding to the event loop between cycles."""
        pending = self._begin(queued)
        if pending is None:
            return self
        try:
            while (spec := self._next(pending, queued)) is not None:
                run = self._new_run(spec)
                await run.run_async(yield_between_cycles)
                if not self._after(run, spec, queued):
                    break
        except (KeyboardInterrupt, asyncio.CancelledError):
            self._interrupt()
            raise
        self._complete()
        return self

    def _begin(self, queued: bool) -> list[BenchmarkSpec] | None:
        # Results of a previous run are replaced without a reset event.
        if self.running:
            raise RuntimeError(f"{self!r} is already running")
        self.runs = []
        self.aborted = False
        pending = list(self._benchmarks)
        if not pending:
            return None

        self.running = True
        logger.debug("suite %s starting %d benchmarks", self.name, len(pending))
        self.emit(Event(EventType.START, target=pending[0]))
        if self.aborted:
            self.emit(EventType.CYCLE)
            self._complete()
            return None
        return pending

    def _next(self, pending: list[BenchmarkSpec], queued: bool) -> BenchmarkSpec | None:
        if queued:
            return self._benchmarks[0] if self._benchmarks else None
        return pending.pop(0) if pending else None

    def _new_run(self, spec: BenchmarkSpec) -> BenchmarkRun:
        run = BenchmarkRun(spec, clock=self._clock)
        self._current = run
        return run

    def _after(self, run: BenchmarkRun, spec: BenchmarkSpec, queued: bool) -> bool:
        self._current = None
        self.runs.append(run)
        if queued:
            for index, queued_spec in enumerate(self._benchmarks):
                if queued_spec is spec:
                    del self._benchmarks[index]
                    break

        if run.error is not None:
            self.emit(Event(EventType.ERROR, target=run, message=run.error))
        event = self.emit(Event(EventType.CYCLE, target=run))
        return not (event.aborted or self.aborted)

    def _interrupt(self) -> None:
        """Record the benchmark cut short by an interrupt and end the suite."""
        self.aborted = True
        run = self._current
        if run is not None:
            self._current = None
            run.abort()
            self.runs.append(run)
        logger.info("suite %s interrupted", self.name)
        self._complete()

    def _complete(self) -> None:
        self.running = False
        self.emit(EventType.COMPLETE)
