"""Tests for the order calculator."""

import random
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from runorder.calculator import OrderCalculator, hourly_is_reversed, order_tests
from runorder.config import RunOrderConfig
from runorder.core.policy import RunOrderPolicy
from runorder.core.units import TestUnit
from runorder.storage.database import Database
from runorder.storage.models import TestHistory, TestResult, TestStatus
from runorder.storage.statistics import RunStatistics

NAMES = ["org.pkg.MiddleTest", "org.pkg.AlphaTest", "org.pkg.ZuluTest", "org.other.BetaTest"]


@pytest.fixture
def tests():
    """Discovered tests, in discovery order."""
    return [TestUnit(name) for name in NAMES]


@pytest.fixture
def workdir():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def calculator(policies, **kwargs):
    config_keys = ("order_file", "statistics_file", "worker_count")
    config = RunOrderConfig(
        policies=policies,
        **{k: kwargs.pop(k) for k in config_keys if k in kwargs},
    )
    return OrderCalculator(config, **kwargs)


class FakeStatistics:
    """Records calls and returns canned orders, duplicates included."""

    def __init__(self, order):
        self.order = order
        self.calls = []

    def prioritize_by_failure(self, units):
        self.calls.append(("failure", list(units)))
        return self.order

    def prioritize_by_runtime(self, units, worker_count):
        self.calls.append(("runtime", list(units), worker_count))
        return self.order


class TestPolicyResolution:
    """Tests for choosing the active policy."""

    def test_no_policy_keeps_discovery_order(self, tests):
        """Test that an empty policy list leaves the order alone."""
        result = calculator([]).order(tests)

        assert list(result) == tests
        assert result.policy == RunOrderPolicy.NONE

    def test_none_policy_keeps_discovery_order(self, tests):
        """Test the explicit none policy."""
        assert list(calculator(["filesystem"]).order(tests)) == tests

    def test_only_first_policy_applies(self, tests):
        """Test that later policies are ignored."""
        result = calculator(["reverse_alphabetical", "alphabetical"]).order(tests)

        assert result.names() == sorted(NAMES, reverse=True)
        assert result.policy == RunOrderPolicy.REVERSE_ALPHABETICAL

    def test_input_is_not_modified(self, tests):
        """Test that the caller's collection is left untouched."""
        original = list(tests)
        calculator(["alphabetical"]).order(tests)
        calculator(["random"]).order(tests)

        assert tests == original

    def test_accepts_any_iterable(self, tests):
        """Test ordering a generator of tests."""
        result = calculator(["alphabetical"]).order(t for t in tests)
        assert result.names() == sorted(NAMES)


class TestNameOrdering:
    """Tests for alphabetical, reverse and hourly orders."""

    def test_alphabetical(self, tests):
        """Test ascending name order."""
        assert calculator(["alphabetical"]).order(tests).names() == sorted(NAMES)

    def test_reverse_alphabetical(self, tests):
        """Test descending name order."""
        result = calculator(["reverse_alphabetical"]).order(tests)
        assert result.names() == sorted(NAMES, reverse=True)

    @pytest.mark.parametrize("hour", [0, 2, 14, 22])
    def test_hourly_even_hour(self, tests, hour):
        """Test that even hours sort ascending."""
        result = calculator(["hourly"], current_hour=hour).order(tests)
        assert result.names() == sorted(NAMES)

    @pytest.mark.parametrize("hour", [1, 13, 23])
    def test_hourly_odd_hour(self, tests, hour):
        """Test that odd hours sort descending."""
        result = calculator(["hourly"], current_hour=hour).order(tests)
        assert result.names() == sorted(NAMES, reverse=True)

    def test_hourly_direction_fixed_at_construction(self, tests, monkeypatch):
        """Test that the clock is read once, when the calculator is built."""
        def clock_at(hour):
            class FixedDatetime(datetime):
                @classmethod
                def now(cls, tz=None):
                    return datetime(2024, 6, 1, hour, 59, 59)

            return FixedDatetime

        monkeypatch.setattr("runorder.calculator.datetime", clock_at(4))
        calc = calculator(["hourly"])
        monkeypatch.setattr("runorder.calculator.datetime", clock_at(5))

        assert not hourly_is_reversed(4)
        assert calc.order(tests).names() == sorted(NAMES)
        assert calculator(["hourly"]).order(tests).names() == sorted(NAMES, reverse=True)

    def test_duplicates_removed_after_sorting(self):
        """Test that duplicate names collapse to one entry."""
        units = [TestUnit("B"), TestUnit("A"), TestUnit("B")]
        assert calculator(["alphabetical"]).order(units).names() == ["A", "B"]


class TestRandomOrdering:
    """Tests for random order."""

    def test_random_is_a_permutation(self, tests):
        """Test that every test is kept exactly once."""
        result = calculator(["random"]).order(tests)

        assert set(result) == set(tests)
        assert len(result) == len(tests)

    def test_random_varies_between_calls(self, tests):
        """Test that repeated calls produce more than one order."""
        calc = calculator(["random"])
        seen = {tuple(calc.order(tests).names()) for _ in range(50)}

        assert len(seen) > 1

    def test_random_with_seeded_source(self, tests):
        """Test that an injected random source makes the order repeatable."""
        first = calculator(["random"], rng=random.Random(7)).order(tests)
        second = calculator(["random"], rng=random.Random(7)).order(tests)

        assert first.names() == second.names()

    def test_random_dedupes(self):
        """Test that duplicates collapse under random order."""
        units = [TestUnit("A"), TestUnit("B"), TestUnit("A")]
        result = calculator(["random"]).order(units)

        assert sorted(result.names()) == ["A", "B"]


class TestStatisticsOrdering:
    """Tests for the policies that consult run statistics."""

    def test_failure_first_delegates(self, tests):
        """Test that failure-first asks the store and dedupes its answer."""
        store = FakeStatistics([tests[2], tests[0], tests[2], tests[1], tests[3]])
        loaded = []

        def loader(path):
            loaded.append(path)
            return store

        calc = calculator(
            ["failedfirst"],
            statistics_file="stats.db",
            base_dir="/work",
            statistics_loader=loader,
        )
        result = calc.order(tests)

        assert list(result) == [tests[2], tests[0], tests[1], tests[3]]
        assert store.calls == [("failure", tests)]
        assert loaded == [Path("/work/stats.db")]

    def test_statistics_loaded_per_calculation(self, tests):
        """Test that the store is loaded again for every call."""
        loaded = []

        def loader(path):
            loaded.append(path)
            return FakeStatistics(tests)

        calc = calculator(["failure_first"], statistics_loader=loader)
        calc.order(tests)
        calc.order(tests)

        assert len(loaded) == 2

    def test_balanced_passes_worker_count(self, tests):
        """Test that the worker count reaches the store unchanged."""
        store = FakeStatistics(list(reversed(tests)))
        calc = calculator(
            ["balanced"], worker_count=3, statistics_loader=lambda path: store
        )

        result = calc.order(tests)

        assert list(result) == list(reversed(tests))
        assert store.calls == [("runtime", tests, 3)]

    def test_failure_first_with_recorded_history(self, workdir):
        """Test failure-first end to end against a recorded run."""
        Database(workdir / "stats.db").record_run([
            TestResult(test_name="B", status=TestStatus.FAILED),
            TestResult(test_name="C", status=TestStatus.PASSED),
        ])
        units = [TestUnit("A"), TestUnit("B"), TestUnit("C")]

        result = calculator(
            ["failure_first"], statistics_file="stats.db", base_dir=workdir
        ).order(units)

        assert result[0] == TestUnit("B")
        assert set(result) == set(units)

    def test_failure_first_without_history(self, workdir):
        """Test that a missing statistics file keeps discovery order."""
        units = [TestUnit("C"), TestUnit("A"), TestUnit("B")]

        result = calculator(
            ["failure_first"], statistics_file="missing.db", base_dir=workdir
        ).order(units)

        assert list(result) == units
        assert not (workdir / "missing.db").exists()

    def test_balanced_with_durations(self):
        """Test that two workers split A=3, B=C=D=1 evenly."""
        stats = RunStatistics([
            TestHistory(test_name="A", total_runs=1, avg_duration_ms=3),
            TestHistory(test_name="B", total_runs=1, avg_duration_ms=1),
            TestHistory(test_name="C", total_runs=1, avg_duration_ms=1),
            TestHistory(test_name="D", total_runs=1, avg_duration_ms=1),
        ])
        units = [TestUnit(n) for n in "DCBA"]

        result = calculator(
            ["balanced"], worker_count=2, statistics_loader=lambda path: stats
        ).order(units)
        runtimes = [stats.estimated_runtime(u) for u in result]

        assert set(result) == set(units)
        assert min(
            abs(sum(runtimes[:i]) - sum(runtimes[i:])) for i in range(1, 4)
        ) <= 3


class TestInputFileOrdering:
    """Tests for ordering from an explicit order file."""

    def write_order(self, workdir, *lines):
        path = workdir / "order.txt"
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    def test_listed_tests_only(self, workdir):
        """Test that unlisted tests are dropped and unknown lines skipped."""
        self.write_order(workdir, "B", "D")
        units = [TestUnit("A"), TestUnit("B"), TestUnit("C")]

        result = calculator(
            ["input_file"], order_file="order.txt", base_dir=workdir
        ).order(units)

        assert result.names() == ["B"]
        assert not result.degraded

    def test_file_order_is_priority_order(self, workdir, tests):
        """Test that tests run in the order the file lists them."""
        self.write_order(workdir, NAMES[3], NAMES[0], "", NAMES[2], NAMES[0])

        result = calculator(
            ["inputfile"], order_file="order.txt", base_dir=workdir
        ).order(tests)

        assert result.names() == [NAMES[3], NAMES[0], NAMES[2]]

    def test_absolute_order_file(self, workdir, tests):
        """Test that an absolute order file path is used as is."""
        path = self.write_order(workdir, NAMES[1])

        result = calculator(
            ["input_file"], order_file=str(path), base_dir="/elsewhere"
        ).order(tests)

        assert result.names() == [NAMES[1]]

    def test_missing_file_is_degraded_not_raised(self, workdir, tests):
        """Test that a missing order file yields an empty, flagged result."""
        result = calculator(
            ["input_file"], order_file="missing.txt", base_dir=workdir
        ).order(tests)

        assert list(result) == []
        assert result.degraded
        assert "not found" in result.diagnostics[0]

    def test_no_order_file_configured(self, tests):
        """Test that input_file without a file gives an empty result."""
        result = calculator(["input_file"]).order(tests)

        assert list(result) == []
        assert result.degraded

    def test_custom_resolver(self, workdir, tests):
        """Test that lines are mapped through an injected resolver."""
        self.write_order(workdir, "ZuluTest", "AlphaTest", "GhostTest")
        known = {name.rsplit(".", 1)[1]: TestUnit(name) for name in NAMES}
        known["GhostTest"] = TestUnit("org.pkg.GhostTest")

        result = calculator(
            ["input_file"],
            order_file="order.txt",
            base_dir=workdir,
            resolver=known.get,
        ).order(tests)

        assert result.names() == ["org.pkg.ZuluTest", "org.pkg.AlphaTest"]


    def test_resolver_errors_skip_the_line(self, workdir):
        """Test that a resolver raising for unknown names does not abort ordering."""
        self.write_order(workdir, "Ghost", "B", "Bad")
        units = [TestUnit("A"), TestUnit("B")]

        def resolve(name):
            if name == "Ghost":
                raise LookupError(name)
            if name == "Bad":
                raise ValueError(name)
            return TestUnit(name)

        result = calculator(
            ["input_file"], order_file="order.txt", base_dir=workdir, resolver=resolve
        ).order(units)

        assert result.names() == ["B"]
        assert not result.degraded

    def test_undecodable_line_keeps_earlier_entries(self, workdir):
        """Test that tests listed before a bad line are still ordered."""
        (workdir / "order.txt").write_bytes(b"B\n\xff\nA\n")
        units = [TestUnit("A"), TestUnit("B")]

        result = calculator(
            ["input_file"], order_file="order.txt", base_dir=workdir
        ).order(units)

        assert result.names() == ["B"]
        assert result.degraded


class TestOrderTests:
    """Tests for the one-off helper."""

    def test_order_tests(self, tests):
        """Test ordering without keeping a calculator around."""
        result = order_tests(RunOrderConfig(policies=["alphabetical"]), tests)
        assert result.names() == sorted(NAMES)
