"""Unit tests for microbench.database module."""

from __future__ import annotations

import math
from datetime import datetime
from pathlib import Path

import pytest

from microbench.database import BenchmarkDatabase, BenchmarkResult, Session
from microbench.stats import Comparison, Stats


def make_session(results: list[BenchmarkResult], description: str = "test") -> Session:
    return Session(
        timestamp=datetime(2026, 1, 15, 12, 30),
        description=description,
        git_commit="abc123def456",
        timer="fake",
        resolution=1e-9,
        results=results,
    )


class TestBenchmarkResult:
    """Tests for BenchmarkResult."""

    def test_from_run(self, make_run) -> None:
        result = BenchmarkResult.from_run(make_run("join"))

        assert result.benchmark == "join"
        assert result.cycles == 6
        assert result.hz == pytest.approx(100)
        assert len(result.stats.sample) == 5
        assert result.measured

    def test_unmeasured(self) -> None:
        result = BenchmarkResult("x", Stats(), math.inf, 5, "ClockSaturatedError: zero")
        assert not result.measured


class TestBenchmarkDatabase:
    """Tests for BenchmarkDatabase."""

    def test_requires_open(self, tmp_path: Path) -> None:
        db = BenchmarkDatabase(tmp_path / "results.db")
        with pytest.raises(RuntimeError):
            db.list_sessions()

    def test_save_and_load(self, tmp_path: Path, make_run) -> None:
        session = make_session([BenchmarkResult.from_run(make_run("join"))])

        with BenchmarkDatabase(tmp_path / "results.db") as db:
            session_id = db.save_session(session)
            loaded = db.load_session(session_id)

        assert session.id == session_id
        assert loaded is not None
        assert loaded.timestamp == session.timestamp
        assert loaded.git_commit == "abc123def456"
        assert loaded.timer == "fake"
        (result,) = loaded.results
        assert result.benchmark == "join"
        assert result.stats.sample == session.results[0].stats.sample
        assert result.stats.mean == pytest.approx(0.01)
        assert result.measured

    def test_infinite_rate_round_trip(self, tmp_path: Path) -> None:
        """Test unmeasurable results come back as infinite."""
        saturated = BenchmarkResult("noop", Stats(), math.inf, 5, "ClockSaturatedError: zero")

        with BenchmarkDatabase(tmp_path / "results.db") as db:
            loaded = db.load_session(db.save_session(make_session([saturated])))

        assert loaded is not None
        (result,) = loaded.results
        assert math.isinf(result.hz)
        assert result.error == "ClockSaturatedError: zero"
        assert not result.measured

    def test_load_missing(self, tmp_path: Path) -> None:
        with BenchmarkDatabase(tmp_path / "results.db") as db:
            assert db.load_session(99) is None
            assert db.get_latest_session_id() is None

    def test_list_sessions(self, tmp_path: Path) -> None:
        with BenchmarkDatabase(tmp_path / "results.db") as db:
            first = db.save_session(make_session([], "first"))
            second = db.save_session(make_session([], "second"))
            sessions = db.list_sessions()
            latest = db.get_latest_session_id()

        assert [s[0] for s in sessions] == [second, first]
        assert sessions[0][2] == "second"
        assert latest == second

    def test_compare_sessions(self, tmp_path: Path, make_run) -> None:
        before = make_session(
            [
                BenchmarkResult.from_run(make_run("join", 20)),
                BenchmarkResult.from_run(make_run("split", 10)),
                BenchmarkResult.from_run(make_run("only-before", 10)),
            ]
        )
        after = make_session(
            [
                BenchmarkResult.from_run(make_run("join", 10)),
                BenchmarkResult.from_run(make_run("split", 10)),
            ]
        )

        with BenchmarkDatabase(tmp_path / "results.db") as db:
            id1 = db.save_session(before)
            id2 = db.save_session(after)
            comparison = db.compare_sessions(id1, id2)
            assert db.compare_sessions(id1, 99) == {}

        assert comparison["join"][2] is Comparison.SLOWER
        assert comparison["split"][2] is Comparison.INDETERMINATE
        first, second, outcome = comparison["only-before"]
        assert first.benchmark == "only-before"
        assert second is None
        assert outcome is Comparison.INDETERMINATE
