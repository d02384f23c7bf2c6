"""Test units and ordered results."""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from runorder.core.policy import RunOrderPolicy


@dataclass(frozen=True, order=True)
class TestUnit:
    """A discovered test, identified by its fully-qualified name."""

    name: str

    def __str__(self) -> str:
        return self.name

    @classmethod
    def from_names(cls, names: Iterable[str]) -> list["TestUnit"]:
        """Build units from names, skipping blank entries."""
        return [cls(name.strip()) for name in names if name.strip()]


def dedupe(units: Iterable[TestUnit]) -> list[TestUnit]:
    """Drop repeated units, keeping the first occurrence of each."""
    return list(dict.fromkeys(units))


@dataclass
class OrderedResult:
    """Ordered tests ready to hand to an execution engine.

    Each unit appears at most once. Diagnostics describe degraded paths,
    such as an order file that could not be read.
    """

    units: list[TestUnit] = field(default_factory=list)
    policy: Optional[RunOrderPolicy] = None
    diagnostics: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.units = dedupe(self.units)

    def __iter__(self) -> Iterator[TestUnit]:
        return iter(self.units)

    def __len__(self) -> int:
        return len(self.units)

    def __contains__(self, unit: object) -> bool:
        return unit in self.units

    def __getitem__(self, index: int) -> TestUnit:
        return self.units[index]

    @property
    def degraded(self) -> bool:
        """Check if any diagnostics were recorded."""
        return bool(self.diagnostics)

    def names(self) -> list[str]:
        """Get test names in execution order."""
        return [unit.name for unit in self.units]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "policy": self.policy.value if self.policy else None,
            "tests": self.names(),
            "diagnostics": list(self.diagnostics),
        }
