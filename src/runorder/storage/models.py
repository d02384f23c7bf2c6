"""Data models for recorded test runs and history."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class TestStatus(str, Enum):
    """Outcome of a single test."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_failure(self) -> bool:
        return self in (TestStatus.FAILED, TestStatus.ERROR)


@dataclass
class TestRun:
    """Represents a single recorded run."""

    id: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "total_tests": self.total_tests,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
        }

    @classmethod
    def from_row(cls, row: tuple) -> "TestRun":
        """Create from database row."""
        return cls(
            id=row[0],
            started_at=datetime.fromisoformat(row[1]) if row[1] else None,
            finished_at=datetime.fromisoformat(row[2]) if row[2] else None,
            total_tests=row[3] or 0,
            passed=row[4] or 0,
            failed=row[5] or 0,
            skipped=row[6] or 0,
        )


@dataclass
class TestResult:
    """Represents the result of a single test in a run."""

    id: Optional[int] = None
    run_id: Optional[int] = None
    test_name: str = ""
    status: TestStatus = TestStatus.PASSED
    duration_ms: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "run_id": self.run_id,
            "test_name": self.test_name,
            "status": self.status.value if isinstance(self.status, TestStatus) else self.status,
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_row(cls, row: tuple) -> "TestResult":
        """Create from database row."""
        try:
            status = TestStatus(row[3])
        except ValueError:
            status = TestStatus.ERROR

        return cls(
            id=row[0],
            run_id=row[1],
            test_name=row[2],
            status=status,
            duration_ms=row[4] or 0,
        )


@dataclass
class TestHistory:
    """Aggregated statistics for one test across all recorded runs."""

    test_name: str = ""
    last_status: Optional[TestStatus] = None
    last_failed_at: Optional[datetime] = None
    failure_count: int = 0
    total_runs: int = 0
    avg_duration_ms: float = 0.0
    total_duration_ms: int = 0

    @property
    def failure_rate(self) -> float:
        """Calculate the failure rate."""
        if self.total_runs == 0:
            return 0.0
        return self.failure_count / self.total_runs

    @property
    def has_failed(self) -> bool:
        """Check if the test failed in any recorded run."""
        return self.failure_count > 0

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "test_name": self.test_name,
            "last_status": self.last_status.value if self.last_status else None,
            "last_failed_at": self.last_failed_at.isoformat() if self.last_failed_at else None,
            "failure_count": self.failure_count,
            "total_runs": self.total_runs,
            "failure_rate": self.failure_rate,
            "avg_duration_ms": self.avg_duration_ms,
            "total_duration_ms": self.total_duration_ms,
        }

    @classmethod
    def from_row(cls, row: tuple) -> "TestHistory":
        """Create from database row."""
        try:
            last_status = TestStatus(row[1]) if row[1] else None
        except ValueError:
            last_status = TestStatus.ERROR

        return cls(
            test_name=row[0],
            last_status=last_status,
            last_failed_at=datetime.fromisoformat(row[2]) if row[2] else None,
            failure_count=row[3] or 0,
            total_runs=row[4] or 0,
            avg_duration_ms=row[5] or 0.0,
            total_duration_ms=row[6] or 0,
        )
