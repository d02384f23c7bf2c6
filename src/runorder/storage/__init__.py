"""Storage layer for test run history and statistics."""

from runorder.storage.database import Database
from runorder.storage.models import TestHistory, TestResult, TestRun, TestStatus
from runorder.storage.statistics import RunStatistics, StatisticsStore

__all__ = [
    "Database",
    "RunStatistics",
    "StatisticsStore",
    "TestHistory",
    "TestResult",
    "TestRun",
    "TestStatus",
]
