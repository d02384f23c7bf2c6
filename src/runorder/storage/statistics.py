"""Read-only view of run history used to prioritize tests."""

from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Protocol

from loguru import logger

from runorder.core.units import TestUnit
from runorder.storage.database import Database
from runorder.storage.models import TestHistory


class StatisticsStore(Protocol):
    """Historical run data consulted by the history-based policies.

    Both queries must return a permutation of the units they are given.
    """

    def prioritize_by_failure(self, units: list[TestUnit]) -> list[TestUnit]:
        ...

    def prioritize_by_runtime(
        self, units: list[TestUnit], worker_count: int
    ) -> list[TestUnit]:
        ...


class RunStatistics:
    """Per-test history loaded once from a statistics database."""

    def __init__(self, history: Optional[Iterable[TestHistory]] = None):
        """Initialize from history records.

        Args:
            history: Aggregated history, one record per test name
        """
        self._history: dict[str, TestHistory] = {
            record.test_name: record for record in history or []
        }

    @classmethod
    def from_file(cls, path: Optional[Path | str]) -> "RunStatistics":
        """Load statistics from a database file.

        A missing file means no history yet and gives an empty store.
        The file is opened read-only and never created.

        Raises:
            sqlite3.DatabaseError: If the file is not a readable database
        """
        if path is None or not Path(path).exists():
            logger.debug(f"No statistics file at {path}, starting without history")
            return cls()

        history = Database(path, read_only=True).get_all_test_history()
        logger.debug(f"Loaded history for {len(history)} tests from {path}")
        return cls(history)

    def __len__(self) -> int:
        return len(self._history)

    def get(self, unit: TestUnit) -> Optional[TestHistory]:
        """Get the history for a unit, if any was recorded."""
        return self._history.get(unit.name)

    def estimated_runtime(self, unit: TestUnit) -> float:
        """Average recorded runtime in milliseconds, 0 for unknown tests."""
        record = self.get(unit)
        return record.avg_duration_ms if record else 0.0

    def prioritize_by_failure(self, units: list[TestUnit]) -> list[TestUnit]:
        """Order tests that failed before ahead of all others.

        Failed tests are ordered by most recent failure, then failure
        rate, then name. Tests without failures keep their input order.
        """
        failed = []
        others = []
        for unit in units:
            record = self.get(unit)
            if record and record.has_failed:
                failed.append((unit, record))
            else:
                others.append(unit)

        failed.sort(key=lambda item: item[0].name)
        failed.sort(key=lambda item: item[1].failure_rate, reverse=True)
        failed.sort(
            key=lambda item: item[1].last_failed_at or datetime.min,
            reverse=True,
        )

        return [unit for unit, _ in failed] + others

    def schedule(
        self, units: list[TestUnit], worker_count: int
    ) -> list[list[TestUnit]]:
        """Distribute tests onto workers with roughly equal runtime.

        Longest tests are placed first, each on the worker with the least
        runtime so far (lowest index on ties).

        Args:
            units: Tests to distribute
            worker_count: Number of workers, at least 1

        Returns:
            One list of tests per worker
        """
        if worker_count < 1:
            raise ValueError("Worker count must be at least 1")

        by_runtime = sorted(units, key=self.estimated_runtime, reverse=True)

        buckets: list[list[TestUnit]] = [[] for _ in range(worker_count)]
        loads = [0.0] * worker_count
        for unit in by_runtime:
            target = loads.index(min(loads))
            buckets[target].append(unit)
            loads[target] += self.estimated_runtime(unit)

        return buckets

    def prioritize_by_runtime(
        self, units: list[TestUnit], worker_count: int
    ) -> list[TestUnit]:
        """Order tests so that each worker's contiguous chunk balances runtime.

        The buckets from :meth:`schedule` are concatenated in worker order.
        """
        return [unit for bucket in self.schedule(units, worker_count) for unit in bucket]
