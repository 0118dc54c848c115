"""SQLite database for benchmark results storage.

Provides persistent storage for benchmark sessions and their samples, so
that runs can later be compared with the same Mann-Whitney test used
within a suite.
"""

from __future__ import annotations

import json
import math
import sqlite3
import subprocess
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from microbench.report import format_error
from microbench.stats import Comparison, Stats, compare, compute_stats

if TYPE_CHECKING:
    from microbench.runner import BenchmarkRun


@dataclass(frozen=True)
class BenchmarkResult:
    """Stored outcome of one benchmark run.

    Attributes:
        benchmark: Benchmark name.
        stats: Statistics recomputed from the stored sample.
        hz: Operations per second.
        cycles: Cycles executed.
        error: Error text for runs without a measurement.
    """

    benchmark: str
    stats: Stats
    hz: float
    cycles: int
    error: str | None = None

    @classmethod
    def from_run(cls, run: BenchmarkRun) -> BenchmarkResult:
        return cls(
            benchmark=run.name,
            stats=run.stats,
            hz=run.hz,
            cycles=run.cycles,
            error=format_error(run.error) if run.error is not None else None,
        )

    @property
    def measured(self) -> bool:
        return self.error is None and self.cycles > 0 and math.isfinite(self.hz)


@dataclass
class Session:
    """A benchmark session containing multiple results.

    Attributes:
        id: Session ID (None until saved).
        timestamp: When the session was created.
        description: Optional description.
        git_commit: Git commit hash at time of run.
        timer: Name of the timer used.
        resolution: Measured timer resolution (seconds).
        results: Benchmark results.
    """

    timestamp: datetime
    description: str | None
    git_commit: str | None
    timer: str
    resolution: float
    results: list[BenchmarkResult] = field(default_factory=list)
    id: int | None = None


def _get_git_commit() -> str | None:
    """Get current git commit hash."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()[:12]
    except (subprocess.TimeoutExpired, FileNotFoundError, OSError):
        pass
    return None


class BenchmarkDatabase:
    """SQLite database for benchmark results."""

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        self.conn: sqlite3.Connection | None = None

    def __enter__(self) -> BenchmarkDatabase:
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def open(self) -> None:
        """Open database and initialize schema."""
        self.conn = sqlite3.connect(self.db_path)
        self._init_schema()

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None

    def _cursor(self) -> sqlite3.Cursor:
        if not self.conn:
            raise RuntimeError("Database not open")
        return self.conn.cursor()

    def _init_schema(self) -> None:
        cursor = self._cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id INTEGER PRIMARY KEY,
                timestamp TEXT NOT NULL,
                description TEXT,
                git_commit TEXT,
                timer TEXT NOT NULL,
                resolution REAL NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS results (
                id INTEGER PRIMARY KEY,
                session_id INTEGER NOT NULL,
                benchmark TEXT NOT NULL,
                hz REAL,
                mean REAL,
                moe REAL,
                rme REAL,
                cycles INTEGER,
                sample TEXT NOT NULL,
                error TEXT,
                FOREIGN KEY (session_id) REFERENCES sessions(id)
            )
        """)

        cursor.connection.commit()

    def save_session(self, session: Session) -> int:
        """Save a benchmark session to the database.

        Args:
            session: Session to save.

        Returns:
            Session ID.
        """
        cursor = self._cursor()
        git_commit = session.git_commit or _get_git_commit()

        cursor.execute(
            """
            INSERT INTO sessions (timestamp, description, git_commit, timer, resolution)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                session.timestamp.isoformat(),
                session.description,
                git_commit,
                session.timer,
                session.resolution,
            ),
        )
        session_id = cursor.lastrowid
        if session_id is None:
            raise RuntimeError("Failed to get session ID")

        for result in session.results:
            # Unmeasurable (infinite) rates are stored as NULL.
            hz = result.hz if math.isfinite(result.hz) else None
            cursor.execute(
                """
                INSERT INTO results (
                    session_id, benchmark, hz, mean, moe, rme, cycles, sample, error
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session_id,
                    result.benchmark,
                    hz,
                    result.stats.mean,
                    result.stats.margin_of_error,
                    result.stats.relative_margin_of_error,
                    result.cycles,
                    json.dumps(list(result.stats.sample)),
                    result.error,
                ),
            )

        cursor.connection.commit()
        session.id = session_id
        return session_id

    def load_session(self, session_id: int) -> Session | None:
        """Load a session from the database.

        Args:
            session_id: ID of session to load.

        Returns:
            Session or None if not found.
        """
        cursor = self._cursor()
        cursor.execute(
            """
            SELECT timestamp, description, git_commit, timer, resolution
            FROM sessions WHERE id = ?
            """,
            (session_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None

        session = Session(
            id=session_id,
            timestamp=datetime.fromisoformat(row[0]),
            description=row[1],
            git_commit=row[2],
            timer=row[3],
            resolution=row[4],
        )

        cursor.execute(
            """
            SELECT benchmark, hz, cycles, sample, error
            FROM results WHERE session_id = ? ORDER BY id
            """,
            (session_id,),
        )
        for benchmark, hz, cycles, sample, error in cursor.fetchall():
            session.results.append(
                BenchmarkResult(
                    benchmark=benchmark,
                    stats=compute_stats(json.loads(sample)),
                    hz=hz if hz is not None else math.inf,
                    cycles=cycles,
                    error=error,
                )
            )
        return session

    def list_sessions(self) -> list[tuple[int, datetime, str | None, str | None]]:
        """List all sessions.

        Returns:
            List of (id, timestamp, description, git_commit) tuples, newest first.
        """
        cursor = self._cursor()
        cursor.execute(
            "SELECT id, timestamp, description, git_commit FROM sessions ORDER BY id DESC"
        )
        return [
            (row[0], datetime.fromisoformat(row[1]), row[2], row[3])
            for row in cursor.fetchall()
        ]

    def get_latest_session_id(self) -> int | None:
        cursor = self._cursor()
        cursor.execute("SELECT MAX(id) FROM sessions")
        row = cursor.fetchone()
        return row[0] if row and row[0] else None

    def compare_sessions(
        self, id1: int, id2: int
    ) -> dict[str, tuple[BenchmarkResult, BenchmarkResult | None, Comparison]]:
        """Compare the benchmarks two sessions have in common.

        Args:
            id1: First session ID.
            id2: Second session ID.

        Returns:
            Mapping of benchmark name to (result in id1, result in id2 or None,
            comparison of id1's sample against id2's).
        """
        session1 = self.load_session(id1)
        session2 = self.load_session(id2)
        if not session1 or not session2:
            return {}

        lookup = {r.benchmark: r for r in session2.results}
        comparison: dict[str, tuple[BenchmarkResult, BenchmarkResult | None, Comparison]] = {}
        for r in session1.results:
            other = lookup.get(r.benchmark)
            if other is None or not (r.measured and other.measured):
                outcome = Comparison.INDETERMINATE
            else:
                outcome = compare(r.stats.sample, other.stats.sample)
            comparison[r.benchmark] = (r, other, outcome)
        return comparison
