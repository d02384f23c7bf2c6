"""Final run order of discovered tests.

The calculator is the one place where the configured policy, recorded run
statistics and an explicit order file are combined into a single order.
"""

import random
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from loguru import logger

from runorder.config import RunOrderConfig
from runorder.core.order_file import read_order_file
from runorder.core.policy import RunOrderPolicy
from runorder.core.units import OrderedResult, TestUnit
from runorder.storage.statistics import RunStatistics, StatisticsStore

Resolver = Callable[[str], Optional[TestUnit]]
StatisticsLoader = Callable[[Optional[Path]], StatisticsStore]


def sort_by_name(units: list[TestUnit], reverse: bool = False) -> list[TestUnit]:
    """Stable sort on fully-qualified names."""
    return sorted(units, key=lambda unit: unit.name, reverse=reverse)


def hourly_is_reversed(hour: int) -> bool:
    """Even hours run alphabetically, odd hours in reverse."""
    return hour % 2 == 1


class OrderCalculator:
    """Applies the configured run order to discovered tests.

    Only the first configured policy is used. For the name-sorting
    policies the direction is decided once, here, so an hourly order
    does not flip if a run crosses the hour.
    """

    def __init__(
        self,
        config: RunOrderConfig,
        base_dir: Path | str | None = None,
        current_hour: Optional[int] = None,
        rng: Optional[random.Random] = None,
        statistics_loader: Optional[StatisticsLoader] = None,
        resolver: Optional[Resolver] = None,
    ):
        """Initialize the calculator.

        Args:
            config: Run order configuration
            base_dir: Directory relative file paths in the config are resolved against
            current_hour: Hour of day (0-23) for the hourly policy; read from the clock if omitted
            rng: Random source for the random policy
            statistics_loader: Loads the statistics store from the configured path
            resolver: Maps an order file line to a test; defaults to a name lookup in the input
        """
        self.config = config
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.policy = config.active_policy
        self.worker_count = config.worker_count

        self._rng = rng or random.Random()
        self._load_statistics = statistics_loader or RunStatistics.from_file
        self._resolver = resolver

        self._reverse = False
        if self.policy == RunOrderPolicy.REVERSE_ALPHABETICAL:
            self._reverse = True
        elif self.policy == RunOrderPolicy.HOURLY:
            hour = datetime.now().hour if current_hour is None else current_hour
            self._reverse = hourly_is_reversed(hour)

        logger.debug(f"Run order policy: {self.policy.value}")

    @property
    def statistics_path(self) -> Path:
        return self.base_dir / self.config.statistics_file

    @property
    def order_file_path(self) -> Optional[Path]:
        if not self.config.order_file:
            return None
        return self.base_dir / self.config.order_file

    def order(self, tests: Iterable[TestUnit]) -> OrderedResult:
        """Order discovered tests according to the active policy.

        The caller's collection is never modified. The result holds each
        test at most once, first occurrence winning.

        Args:
            tests: Discovered tests, in discovery order

        Returns:
            OrderedResult with the tests to run, in order
        """
        units = list(tests)
        diagnostics: list[str] = []

        if self.policy == RunOrderPolicy.RANDOM:
            ordered = self._rng.sample(units, len(units))
        elif self.policy.needs_statistics:
            statistics = self._load_statistics(self.statistics_path)
            if self.policy == RunOrderPolicy.FAILURE_FIRST:
                ordered = statistics.prioritize_by_failure(units)
            else:
                ordered = statistics.prioritize_by_runtime(units, self.worker_count)
        elif self.policy == RunOrderPolicy.INPUT_FILE:
            ordered = self._order_from_file(units, diagnostics)
        elif self.policy.sorts_by_name:
            ordered = sort_by_name(units, reverse=self._reverse)
        else:
            ordered = units

        return OrderedResult(units=ordered, policy=self.policy, diagnostics=diagnostics)

    def _order_from_file(
        self, units: list[TestUnit], diagnostics: list[str]
    ) -> list[TestUnit]:
        """Keep the tests listed in the order file, in file order.

        Lines that do not resolve to a discovered test are skipped, and
        discovered tests missing from the file are left out.
        """
        path = self.order_file_path
        logger.debug(f"Reading run order from {path}")

        read = read_order_file(path)
        if not read.success:
            logger.warning(read.error)
            diagnostics.append(read.error)

        discovered = set(units)
        by_name = {unit.name: unit for unit in units}
        resolve = self._resolver or by_name.get

        ordered = []
        for line in read.lines:
            unit = self._resolve(resolve, line) if line else None
            if unit is None or unit not in discovered:
                logger.trace(f"Skipping order file entry {line!r}")
                continue
            ordered.append(unit)

        logger.debug(f"Order file selected {len(ordered)} of {len(units)} tests")
        return ordered

    @staticmethod
    def _resolve(resolve: Resolver, name: str) -> Optional[TestUnit]:
        """Resolve one order file entry, treating lookup errors as unknown."""
        try:
            return resolve(name)
        except (LookupError, ValueError) as e:
            logger.trace(f"Could not resolve order file entry {name!r}: {e}")
            return None


def order_tests(
    config: RunOrderConfig,
    tests: Iterable[TestUnit],
    base_dir: Path | str | None = None,
) -> OrderedResult:
    """Order tests with a one-off calculator."""
    return OrderCalculator(config, base_dir=base_dir).order(tests)
