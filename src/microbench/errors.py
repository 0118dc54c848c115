"""Exception hierarchy for the benchmarking engine.

Engine-level failures (no usable timer) propagate to the caller. Per-run
failures are captured on the run and broadcast through the ``error`` event;
they never escape a suite.
"""

from __future__ import annotations


class BenchmarkError(Exception):
    """Base for all microbench errors."""


class NoWorkingTimerError(BenchmarkError):
    """Raised when no candidate timer advances within its trial budget."""


class ClockSaturatedError(BenchmarkError):
    """Raised when calibration cannot produce a non-zero cycle time."""


class RunError(BenchmarkError):
    """Base for errors captured while a benchmark run is cycling.

    Attributes:
        name: Name of the benchmark that failed.
        original: The exception raised by user code, if any.
    """

    phase = "test"

    def __init__(self, name: str, original: BaseException | None = None) -> None:
        self.name = name
        self.original = original
        if original is None:
            message = f"{self.phase} failed in {name!r}"
        else:
            message = f"{type(original).__name__}: {original}"
        super().__init__(message)


class TestCallableError(RunError):
    """The benchmarked callable raised during a cycle."""

    __test__ = False
    phase = "test"


class SetupError(RunError):
    """The per-cycle setup hook raised."""

    phase = "setup"


class TeardownError(RunError):
    """The per-cycle teardown hook raised."""

    phase = "teardown"


class SuiteConfigError(BenchmarkError):
    """Raised when a suite file cannot be read, parsed or resolved."""
