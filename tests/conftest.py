"""Shared fixtures: a manually advanced clock for deterministic timing."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from microbench.clock import ClockSource, Timer
from microbench.config import BenchmarkSpec
from microbench.runner import BenchmarkRun

MS = 1_000_000  # nanoseconds


class FakeTimer:
    """Nanosecond counter that only moves when told to."""

    def __init__(self) -> None:
        self.ticks = 0

    def read(self) -> int:
        return self.ticks

    def advance(self, ns: int) -> None:
        self.ticks += ns


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def fake_clock(fake_timer: FakeTimer) -> ClockSource:
    return ClockSource(
        timer=Timer("fake", "ns", fake_timer.read, divisor=1e9),
        resolution=1e-9,
    )


@pytest.fixture
def make_spec(fake_timer: FakeTimer) -> Callable[..., BenchmarkSpec]:
    """Build a spec whose test advances the fake clock by ``step_ms`` per call."""

    def factory(name: str, step_ms: float = 10, **options: Any) -> BenchmarkSpec:
        step = int(step_ms * MS)

        def test() -> None:
            fake_timer.advance(step)

        options.setdefault("min_time", 0.05)
        options.setdefault("max_time", 0.2)
        return BenchmarkSpec(name=name, test=test, **options)

    return factory


@pytest.fixture
def make_run(
    fake_clock: ClockSource, make_spec: Callable[..., BenchmarkSpec]
) -> Callable[..., BenchmarkRun]:
    """Run a fake-clock benchmark to completion."""

    def factory(name: str, step_ms: float = 10, **options: Any) -> BenchmarkRun:
        return BenchmarkRun(make_spec(name, step_ms, **options), clock=fake_clock).run()

    return factory
