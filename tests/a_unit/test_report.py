"""Unit tests for microbench.report module."""

from __future__ import annotations

from microbench.config import BenchmarkSpec
from microbench.errors import TestCallableError
from microbench.report import (
    format_error,
    format_hz,
    format_number,
    format_results_table,
    format_run,
)
from microbench.runner import BenchmarkRun


def boom() -> None:
    raise ValueError("boom")


class TestFormatting:
    """Tests for number and error formatting."""

    def test_format_number(self) -> None:
        assert format_number(1234567) == "1,234,567"
        assert format_number(12.345, 2) == "12.35"

    def test_format_hz(self) -> None:
        """Test small rates keep two decimals."""
        assert format_hz(12.3456) == "12.35"
        assert format_hz(123456.7) == "123,457"

    def test_format_error_unwraps(self) -> None:
        error = TestCallableError("t", ValueError("boom"))
        assert format_error(error) == "ValueError: boom"

    def test_format_error_plain(self) -> None:
        assert format_error(KeyError("x")) == "KeyError: 'x'"


class TestFormatRun:
    """Tests for format_run function."""

    def test_measured(self, make_run) -> None:
        text = format_run(make_run("join"))

        assert text.startswith("join x 100 ops/sec")
        assert "\xb10.00%" in text
        assert text.endswith("(5 runs sampled)")

    def test_str_uses_summary(self, make_run) -> None:
        run = make_run("join")
        assert str(run) == format_run(run)

    def test_failed(self, fake_clock) -> None:
        run = BenchmarkRun(BenchmarkSpec("broken", boom), clock=fake_clock).run()
        assert format_run(run) == "broken: ValueError: boom"


class TestFormatResultsTable:
    """Tests for format_results_table function."""

    def test_fastest_and_slowest(self, make_run) -> None:
        runs = [make_run("fast", 10), make_run("slow", 20)]
        table = format_results_table(runs, title="demo")

        assert "BENCHMARK RESULTS: demo" in table
        assert "Fastest is fast" in table
        assert "Slowest is slow" in table

    def test_indeterminate(self, make_run) -> None:
        runs = [make_run("a", 10), make_run("b", 10)]
        table = format_results_table(runs)

        assert "No statistically significant difference" in table
        assert "Fastest is" not in table

    def test_unmeasured_section(self, make_run, fake_clock) -> None:
        broken = BenchmarkRun(BenchmarkSpec("broken", boom), clock=fake_clock).run()
        table = format_results_table([make_run("ok"), broken])

        assert "No measurement:" in table
        assert "ValueError: boom" in table
        # A single measured run has nothing to be compared with.
        assert "Fastest is" not in table
