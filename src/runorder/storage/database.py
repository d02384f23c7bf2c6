"""SQLite database for recorded test runs and history."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Generator, Optional

from loguru import logger

from runorder.storage.models import TestHistory, TestResult, TestRun, TestStatus


class Database:
    """SQLite database for test run history.

    Opened with ``read_only=True`` the database is never created or
    written; the file must already exist.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str, read_only: bool = False):
        """Initialize database connection."""
        self.db_path = Path(db_path)
        self.read_only = read_only

        if not read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_schema()

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        if self.read_only:
            conn = sqlite3.connect(f"{self.db_path.resolve().as_uri()}?mode=ro", uri=True)
        else:
            conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        """Initialize database schema."""
        with self._connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY
                )
            """)
            cursor.execute(
                "INSERT OR IGNORE INTO schema_version (version) VALUES (?)",
                (self.SCHEMA_VERSION,),
            )

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS test_runs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    started_at TIMESTAMP,
                    finished_at TIMESTAMP,
                    total_tests INTEGER DEFAULT 0,
                    passed INTEGER DEFAULT 0,
                    failed INTEGER DEFAULT 0,
                    skipped INTEGER DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS test_results (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    run_id INTEGER REFERENCES test_runs(id) ON DELETE CASCADE,
                    test_name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    duration_ms INTEGER DEFAULT 0
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_test_results_run_id
                ON test_results(run_id)
            """)

            # Aggregated statistics, one row per test
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS test_history (
                    test_name TEXT PRIMARY KEY,
                    last_status TEXT,
                    last_failed_at TIMESTAMP,
                    failure_count INTEGER DEFAULT 0,
                    total_runs INTEGER DEFAULT 0,
                    avg_duration_ms REAL DEFAULT 0.0,
                    total_duration_ms INTEGER DEFAULT 0
                )
            """)

            conn.commit()

    def create_run(self) -> TestRun:
        """Create a new test run."""
        with self._connection() as conn:
            cursor = conn.cursor()
            now = datetime.now()

            cursor.execute(
                "INSERT INTO test_runs (started_at) VALUES (?)",
                (now.isoformat(),),
            )

            return TestRun(id=cursor.lastrowid, started_at=now)

    def finish_run(self, run: TestRun) -> None:
        """Mark a test run as finished and store its totals."""
        with self._connection() as conn:
            cursor = conn.cursor()
            now = datetime.now()

            cursor.execute(
                """
                UPDATE test_runs
                SET finished_at = ?,
                    total_tests = ?,
                    passed = ?,
                    failed = ?,
                    skipped = ?
                WHERE id = ?
                """,
                (
                    now.isoformat(),
                    run.total_tests,
                    run.passed,
                    run.failed,
                    run.skipped,
                    run.id,
                ),
            )
            run.finished_at = now

    def add_result(self, result: TestResult) -> TestResult:
        """Add a test result and fold it into the test's history."""
        with self._connection() as conn:
            cursor = conn.cursor()

            status_value = (
                result.status.value
                if isinstance(result.status, TestStatus)
                else result.status
            )

            cursor.execute(
                """
                INSERT INTO test_results (run_id, test_name, status, duration_ms)
                VALUES (?, ?, ?, ?)
                """,
                (result.run_id, result.test_name, status_value, result.duration_ms),
            )

            result.id = cursor.lastrowid
            self._update_test_history(cursor, result)

            return result

    def _update_test_history(
        self, cursor: sqlite3.Cursor, result: TestResult
    ) -> None:
        """Update test history with new result."""
        cursor.execute(
            "SELECT * FROM test_history WHERE test_name = ?",
            (result.test_name,),
        )
        row = cursor.fetchone()

        now = datetime.now()
        status = TestStatus(result.status)
        is_failure = status.is_failure

        if row:
            total_runs = row["total_runs"] + 1
            failure_count = row["failure_count"] + (1 if is_failure else 0)
            total_duration = row["total_duration_ms"] + result.duration_ms

            cursor.execute(
                """
                UPDATE test_history
                SET last_status = ?,
                    last_failed_at = CASE WHEN ? THEN ? ELSE last_failed_at END,
                    failure_count = ?,
                    total_runs = ?,
                    avg_duration_ms = ?,
                    total_duration_ms = ?
                WHERE test_name = ?
                """,
                (
                    status.value,
                    is_failure,
                    now.isoformat() if is_failure else None,
                    failure_count,
                    total_runs,
                    total_duration / total_runs,
                    total_duration,
                    result.test_name,
                ),
            )
        else:
            cursor.execute(
                """
                INSERT INTO test_history
                (test_name, last_status, last_failed_at, failure_count,
                 total_runs, avg_duration_ms, total_duration_ms)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.test_name,
                    status.value,
                    now.isoformat() if is_failure else None,
                    1 if is_failure else 0,
                    1,
                    float(result.duration_ms),
                    result.duration_ms,
                ),
            )

    def record_run(self, results: list[TestResult]) -> TestRun:
        """Record a complete run in one go."""
        run = self.create_run()

        for result in results:
            result.run_id = run.id
            self.add_result(result)

        run.total_tests = len(results)
        run.passed = sum(1 for r in results if r.status == TestStatus.PASSED)
        run.failed = sum(1 for r in results if TestStatus(r.status).is_failure)
        run.skipped = sum(1 for r in results if r.status == TestStatus.SKIPPED)
        self.finish_run(run)

        logger.debug(f"Recorded run {run.id} with {run.total_tests} results")
        return run

    def get_run(self, run_id: int) -> Optional[TestRun]:
        """Get a test run by ID."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM test_runs WHERE id = ?", (run_id,))
            row = cursor.fetchone()

            if row:
                return TestRun.from_row(tuple(row))
            return None

    def get_run_results(self, run_id: int) -> list[TestResult]:
        """Get all results for a test run."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM test_results WHERE run_id = ? ORDER BY id",
                (run_id,),
            )
            return [TestResult.from_row(tuple(row)) for row in cursor.fetchall()]

    def get_recent_runs(self, limit: int = 10) -> list[TestRun]:
        """Get recent test runs."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM test_runs ORDER BY started_at DESC, id DESC LIMIT ?",
                (limit,),
            )
            return [TestRun.from_row(tuple(row)) for row in cursor.fetchall()]

    def get_test_history(self, test_name: str) -> Optional[TestHistory]:
        """Get history for a specific test."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM test_history WHERE test_name = ?",
                (test_name,),
            )
            row = cursor.fetchone()

            if row:
                return TestHistory.from_row(tuple(row))
            return None

    def get_all_test_history(self) -> list[TestHistory]:
        """Get history for all tests."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM test_history ORDER BY failure_count DESC, test_name"
            )
            return [TestHistory.from_row(tuple(row)) for row in cursor.fetchall()]

    def get_flaky_tests(self, min_failure_rate: float = 0.1) -> list[TestHistory]:
        """Get tests with high failure rates."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT * FROM test_history
                WHERE total_runs > 1
                AND CAST(failure_count AS REAL) / total_runs >= ?
                ORDER BY CAST(failure_count AS REAL) / total_runs DESC
                """,
                (min_failure_rate,),
            )
            return [TestHistory.from_row(tuple(row)) for row in cursor.fetchall()]

    def clear_history(self) -> None:
        """Clear all recorded runs and history."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM test_results")
            cursor.execute("DELETE FROM test_runs")
            cursor.execute("DELETE FROM test_history")
