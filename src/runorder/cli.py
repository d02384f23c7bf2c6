"""Command-line interface for runorder."""

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from runorder import __version__
from runorder.config import RunOrderSettings, create_example_config, get_default_config


console = Console(stderr=True)


def print_banner() -> None:
    """Print the runorder banner."""
    console.print(
        Panel.fit(
            "[bold blue]runorder[/bold blue] - Test execution order calculator",
            subtitle=f"v{__version__}",
        )
    )


def _load_settings(config_path: Optional[str]) -> tuple[RunOrderSettings, Path]:
    """Load configuration, falling back to defaults when there is no file."""
    if config_path:
        return RunOrderSettings.from_file(config_path), Path(config_path).parent

    try:
        return RunOrderSettings.find_and_load(), Path.cwd()
    except FileNotFoundError:
        return get_default_config(), Path.cwd()


@click.group()
@click.version_option(version=__version__, prog_name="runorder")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False),
    help="Path to configuration file (default: runorder.json)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def main(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """runorder - decide the order in which tests run.

    Orders discovered tests alphabetically, randomly, by failure history,
    balanced by runtime across workers, or from an explicit order file.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default="runorder.json",
    help="Output path for configuration file",
)
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx: click.Context, output: str, force: bool) -> None:
    """Initialize a new runorder configuration file."""
    print_banner()

    output_path = Path(output)
    if output_path.exists() and not force:
        console.print(
            f"[yellow]Configuration file already exists:[/yellow] {output_path}"
        )
        console.print("Use --force to overwrite")
        sys.exit(1)

    try:
        create_example_config(output_path)
        console.print(f"[green]Created configuration file:[/green] {output_path}")
    except OSError as e:
        console.print(f"[red]Error creating configuration:[/red] {e}")
        sys.exit(1)


@main.command()
@click.argument("tests_file", type=click.File("r"), default="-")
@click.option("--policy", "-p", help="Run order to apply, overriding the configuration")
@click.option("--order-file", type=click.Path(), help="Order file for the input_file policy")
@click.option("--statistics-file", type=click.Path(), help="Run history database")
@click.option("--workers", "-w", type=int, help="Number of workers to balance for")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def order(
    ctx: click.Context,
    tests_file,
    policy: Optional[str],
    order_file: Optional[str],
    statistics_file: Optional[str],
    workers: Optional[int],
    as_json: bool,
) -> None:
    """Order test names read from TESTS_FILE (default: stdin).

    Prints one test name per line, in the order they should run.
    """
    from pydantic import ValidationError

    from runorder.calculator import OrderCalculator
    from runorder.config import RunOrderConfig
    from runorder.core.units import TestUnit
    from runorder.log import configure_logging

    try:
        settings, base_dir = _load_settings(ctx.obj.get("config_path"))

        overrides = {
            "policies": policy,
            "order_file": order_file,
            "statistics_file": statistics_file,
            "worker_count": workers,
        }
        data = settings.run_order.model_dump()
        data.update({k: v for k, v in overrides.items() if v is not None})
        run_order = RunOrderConfig.model_validate(data)
    except (FileNotFoundError, ValidationError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    level = "DEBUG" if ctx.obj.get("verbose") else settings.logging.level
    configure_logging(level, settings.get_absolute_paths(base_dir)["log_file"])

    tests = TestUnit.from_names(tests_file.read().splitlines())
    calculator = OrderCalculator(run_order, base_dir=base_dir)

    try:
        result = calculator.order(tests)
    except Exception as e:
        console.print(f"[red]Error ordering tests:[/red] {e}")
        sys.exit(1)

    for message in result.diagnostics:
        console.print(f"[yellow]Warning:[/yellow] {message}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        for name in result.names():
            click.echo(name)


@main.command()
@click.argument("results_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--statistics-file", type=click.Path(), help="Run history database")
@click.pass_context
def record(ctx: click.Context, results_file: str, statistics_file: Optional[str]) -> None:
    """Record test results from RESULTS_FILE as one run.

    RESULTS_FILE is a JSON list of objects with "name", "status"
    (passed, failed, skipped or error) and "duration_ms".
    """
    from runorder.storage.database import Database
    from runorder.storage.models import TestResult, TestStatus

    try:
        settings, base_dir = _load_settings(ctx.obj.get("config_path"))
        with open(results_file) as f:
            entries = json.load(f)

        results = [
            TestResult(
                test_name=entry["name"],
                status=TestStatus(entry.get("status", "passed")),
                duration_ms=int(entry.get("duration_ms", 0)),
            )
            for entry in entries
        ]
    except (FileNotFoundError, KeyError, TypeError, ValueError) as e:
        console.print(f"[red]Error reading results:[/red] {e}")
        sys.exit(1)

    db_path = Path(statistics_file) if statistics_file else (
        settings.get_absolute_paths(base_dir)["statistics_file"]
    )
    db = Database(db_path)
    run = db.record_run(results)

    console.print(
        f"[green]Recorded run {run.id}:[/green] {run.total_tests} tests, "
        f"{run.passed} passed, {run.failed} failed, {run.skipped} skipped"
    )


@main.command()
@click.option("--limit", "-n", type=int, default=20, help="Number of tests to show")
@click.option(
    "--flaky",
    type=float,
    default=None,
    help="Only show tests failing at least this share of their runs (e.g. 0.1)",
)
@click.option("--statistics-file", type=click.Path(), help="Run history database")
@click.pass_context
def history(
    ctx: click.Context, limit: int, flaky: Optional[float], statistics_file: Optional[str]
) -> None:
    """Show recorded per-test history."""
    from runorder.storage.database import Database

    try:
        settings, base_dir = _load_settings(ctx.obj.get("config_path"))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    db_path = Path(statistics_file) if statistics_file else (
        settings.get_absolute_paths(base_dir)["statistics_file"]
    )
    if not db_path.exists():
        console.print("[yellow]No test history found[/yellow]")
        console.print("Run [bold]runorder record[/bold] first to store results")
        return

    db = Database(db_path, read_only=True)
    if flaky is not None:
        records = db.get_flaky_tests(min_failure_rate=flaky)[:limit]
    else:
        records = db.get_all_test_history()[:limit]

    table = Table(title="Test History")
    table.add_column("Test", style="cyan")
    table.add_column("Last", justify="center")
    table.add_column("Runs", justify="right")
    table.add_column("Failures", justify="right", style="red")
    table.add_column("Fail Rate", justify="right")
    table.add_column("Avg ms", justify="right", style="dim")

    for record in records:
        last = record.last_status.value if record.last_status else "-"
        table.add_row(
            record.test_name,
            f"[red]{last}[/red]" if record.last_status and record.last_status.is_failure else last,
            str(record.total_runs),
            str(record.failure_count),
            f"{record.failure_rate:.0%}",
            f"{record.avg_duration_ms:.0f}",
        )

    Console().print(table)


if __name__ == "__main__":
    main()
