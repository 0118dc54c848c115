"""Integration tests for the microbench command line."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from microbench import cli
from microbench.cli import EXIT_BENCHMARK_ERROR, EXIT_NO_TIMER, EXIT_OK, main
from microbench.errors import NoWorkingTimerError

BENCHES = '''
def add():
    return 1 + 1


def join():
    return ",".join(["a", "b", "c", "d"])


def boom():
    raise ValueError("boom")


def interrupt():
    raise KeyboardInterrupt
'''

FAST = ["--min-time", "0.001", "--max-time", "0.02"]


@pytest.fixture
def suite_file(tmp_path: Path) -> Path:
    (tmp_path / "benches.py").write_text(BENCHES)
    path = tmp_path / "suite.yaml"
    path.write_text(
        textwrap.dedent(
            """
            name: cli-demo
            source: benches.py
            benchmarks:
              - name: add
                test: add
              - name: join
                test: join
            """
        )
    )
    return path


@pytest.fixture
def failing_suite_file(tmp_path: Path) -> Path:
    (tmp_path / "benches.py").write_text(BENCHES)
    path = tmp_path / "failing.yaml"
    path.write_text(
        textwrap.dedent(
            """
            source: benches.py
            benchmarks:
              - name: add
                test: add
              - name: boom
                test: boom
            """
        )
    )
    return path


class TestRunCommand:
    """Tests for `microbench run`."""

    def test_run(self, suite_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", str(suite_file), *FAST]) == EXIT_OK

        out = capsys.readouterr().out
        assert "microbench: cli-demo" in out
        assert "add x " in out
        assert "join x " in out
        assert "BENCHMARK RESULTS: cli-demo" in out

    def test_single_benchmark(
        self, suite_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["run", str(suite_file), *FAST, "--benchmark", "join"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "join x " in out
        assert "add x " not in out

    def test_unknown_benchmark(
        self, suite_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["run", str(suite_file), "--benchmark", "nope"]) == EXIT_OK
        assert "No benchmarks to run." in capsys.readouterr().out

    def test_quiet_async(self, suite_file: Path, capsys: pytest.CaptureFixture[str]) -> None:
        argv = ["run", str(suite_file), *FAST, "--async", "--queued", "--quiet"]
        assert main(argv) == EXIT_OK

        out = capsys.readouterr().out
        assert "add x " not in out
        assert "BENCHMARK RESULTS" in out

    def test_benchmark_error(
        self, failing_suite_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["run", str(failing_suite_file), *FAST]) == EXIT_BENCHMARK_ERROR

        out = capsys.readouterr().out
        assert "boom: ValueError: boom" in out
        assert "add x " in out

    def test_bad_suite_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", str(tmp_path / "missing.yaml")]) == EXIT_BENCHMARK_ERROR
        assert "Error loading suite" in capsys.readouterr().out

    def test_no_working_timer(
        self,
        suite_file: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        def broken() -> None:
            raise NoWorkingTimerError("no candidate timer advanced")

        monkeypatch.setattr(cli, "select_timer", broken)

        assert main(["run", str(suite_file)]) == EXIT_NO_TIMER
        assert "no candidate timer advanced" in capsys.readouterr().out

    def test_min_time_override_shown(
        self, suite_file: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert main(["run", str(suite_file), *FAST, "--quiet"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Min time per cycle: 0.001 s (--min-time)" in out
        assert "(default)" not in out

    def test_interrupted(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        (tmp_path / "benches.py").write_text(BENCHES)
        path = tmp_path / "interrupt.yaml"
        path.write_text(
            textwrap.dedent(
                """
                source: benches.py
                benchmarks:
                  - name: add
                    test: add
                  - name: stop
                    test: interrupt
                  - name: join
                    test: join
                """
            )
        )

        assert main(["run", str(path), *FAST]) == EXIT_BENCHMARK_ERROR

        out = capsys.readouterr().out
        assert "Aborted." in out
        assert "No measurement:" in out
        assert "stop" in out
        assert "join x " not in out


class TestSessions:
    """Tests for saving, listing and comparing sessions."""

    def test_save_list_compare(
        self, suite_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        db = str(tmp_path / "results.db")

        assert main(["--db", db, "run", str(suite_file), *FAST, "--save", "-d", "first"]) == 0
        assert main(["--db", db, "run", str(suite_file), *FAST, "--save", "-d", "second"]) == 0
        assert "Results saved to session #2" in capsys.readouterr().out

        assert main(["--db", db, "list"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "first" in out
        assert "second" in out
        assert "Total: 2 session(s)" in out

        assert main(["--db", db, "compare", "1"]) == EXIT_OK
        out = capsys.readouterr().out
        assert "Benchmark Comparison" in out
        assert "add" in out
        assert "join" in out

    def test_compare_missing_session(
        self, suite_file: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        db = str(tmp_path / "results.db")
        main(["--db", db, "run", str(suite_file), *FAST, "--save", "--quiet"])
        capsys.readouterr()

        assert main(["--db", db, "compare", "1", "7"]) == EXIT_BENCHMARK_ERROR
        assert "Session #7 not found" in capsys.readouterr().out

    def test_no_database(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        db = str(tmp_path / "absent.db")

        assert main(["--db", db, "list"]) == EXIT_OK
        assert main(["--db", db, "compare", "1"]) == EXIT_BENCHMARK_ERROR
        assert "No benchmark database found." in capsys.readouterr().out


class TestMisc:
    """Tests for the remaining commands."""

    def test_timers(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["timers"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "perf_counter_ns" in out
        assert " ok" in out

    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == EXIT_OK
        assert "usage:" in capsys.readouterr().out
