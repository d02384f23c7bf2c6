"""Configuration management for runorder."""

import json
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from runorder.core.policy import RunOrderPolicy


class ProjectConfig(BaseModel):
    """Project identification and metadata."""

    name: str = Field(default="my-project", description="Project name for identification")
    description: str = Field(default="", description="Brief description of the project")


class RunOrderConfig(BaseModel):
    """How discovered tests are ordered before execution."""

    policies: list[RunOrderPolicy] = Field(
        default_factory=list,
        description="Requested run orders; only the first one is applied",
    )
    statistics_file: str = Field(
        default=".runorder/statistics.db",
        description="Run history database used by failure_first and balanced_runtime",
    )
    order_file: Optional[str] = Field(
        default=None,
        description="File listing test names in the order to run them (input_file)",
    )
    worker_count: int = Field(default=1, description="Number of parallel workers to balance for")

    @field_validator("policies", mode="before")
    @classmethod
    def parse_policies(cls, v: Any) -> list[RunOrderPolicy]:
        if v is None:
            return []
        if isinstance(v, RunOrderPolicy):
            return [v]
        # "failedfirst,balanced" style lists
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        return [RunOrderPolicy.parse(p) for p in v]

    @field_validator("worker_count")
    @classmethod
    def validate_worker_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Worker count must be at least 1")
        return v

    @property
    def active_policy(self) -> RunOrderPolicy:
        """The policy that is actually applied."""
        return self.policies[0] if self.policies else RunOrderPolicy.NONE


class LoggingConfig(BaseModel):
    """Log output configuration."""

    level: str = Field(default="WARNING", description="Minimum level written to stderr")
    file: Optional[str] = Field(default=None, description="Optional log file (receives DEBUG and up)")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {sorted(allowed)}")
        return v.upper()


class RunOrderSettings(BaseModel):
    """Main configuration for runorder."""

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    run_order: RunOrderConfig = Field(default_factory=RunOrderConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "RunOrderSettings":
        """Load configuration from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r") as f:
            data = json.load(f)

        return cls.model_validate(data)

    @classmethod
    def find_and_load(cls, start_dir: Path | str | None = None) -> "RunOrderSettings":
        """Find and load configuration file, searching up the directory tree."""
        if start_dir is None:
            start_dir = Path.cwd()
        else:
            start_dir = Path(start_dir)

        config_names = ["runorder.json", ".runorder.json"]

        current = start_dir.resolve()
        while True:
            for name in config_names:
                config_path = current / name
                if config_path.exists():
                    return cls.from_file(config_path)
            if current == current.parent:
                break
            current = current.parent

        raise FileNotFoundError(
            "No configuration file found. Create runorder.json or run 'runorder init'"
        )

    def to_file(self, path: Path | str) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    def get_absolute_paths(self, base_dir: Path | str | None = None) -> dict[str, Optional[Path]]:
        """Get absolute paths for the files named in the config."""
        if base_dir is None:
            base_dir = Path.cwd()
        else:
            base_dir = Path(base_dir)

        order_file = self.run_order.order_file
        log_file = self.logging.file
        return {
            "statistics_file": (base_dir / self.run_order.statistics_file).resolve(),
            "order_file": (base_dir / order_file).resolve() if order_file else None,
            "log_file": (base_dir / log_file).resolve() if log_file else None,
        }


def get_default_config() -> RunOrderSettings:
    """Return a default configuration."""
    return RunOrderSettings(
        project=ProjectConfig(name="my-project"),
        run_order=RunOrderConfig(policies=[RunOrderPolicy.FAILURE_FIRST]),
    )


def create_example_config(output_path: Path | str) -> Path:
    """Create an example configuration file."""
    output_path = Path(output_path)
    config = get_default_config()
    config.project.description = "Brief description of your project"
    config.to_file(output_path)
    return output_path
