"""Run order policies."""

from enum import Enum


class RunOrderPolicy(str, Enum):
    """Strategy used to derive the final test order."""

    RANDOM = "random"
    FAILURE_FIRST = "failure_first"
    BALANCED_RUNTIME = "balanced_runtime"
    INPUT_FILE = "input_file"
    ALPHABETICAL = "alphabetical"
    REVERSE_ALPHABETICAL = "reverse_alphabetical"
    HOURLY = "hourly"
    NONE = "none"

    @classmethod
    def parse(cls, value: "str | RunOrderPolicy") -> "RunOrderPolicy":
        """Parse a policy from its name or a build-tool alias.

        Matching ignores case, dashes and underscores, so "failedfirst",
        "FAILURE_FIRST" and "reverse-alphabetical" are all accepted.

        Raises:
            ValueError: If the name matches no policy
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().lower().replace("-", "").replace("_", "")
        policy = _ALIASES.get(key)
        if policy is None:
            allowed = sorted(p.value for p in cls)
            raise ValueError(f"Unknown run order '{value}'. Must be one of: {allowed}")
        return policy

    @property
    def sorts_by_name(self) -> bool:
        """Check if the policy is a plain sort on test names."""
        return self in (
            RunOrderPolicy.ALPHABETICAL,
            RunOrderPolicy.REVERSE_ALPHABETICAL,
            RunOrderPolicy.HOURLY,
        )

    @property
    def needs_statistics(self) -> bool:
        """Check if the policy reads the statistics store."""
        return self in (RunOrderPolicy.FAILURE_FIRST, RunOrderPolicy.BALANCED_RUNTIME)


_ALIASES: dict[str, RunOrderPolicy] = {
    policy.value.replace("_", ""): policy for policy in RunOrderPolicy
}
_ALIASES.update(
    {
        "failedfirst": RunOrderPolicy.FAILURE_FIRST,
        "balanced": RunOrderPolicy.BALANCED_RUNTIME,
        "filesystem": RunOrderPolicy.NONE,
        "default": RunOrderPolicy.NONE,
    }
)
