"""CLI entry point for css-regression."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from css_regression.errors import ConfigurationError, CssRegressionError
from css_regression.executor.driver import BrowserSession
from css_regression.models.config import RegressionConfig
from css_regression.models.suite import CheckCase, PageChecks, SuitePlan
from css_regression.orchestrator import RegressionSuite

console = Console()

_STATUS_STYLE = {
    "passed": "green",
    "tolerated": "yellow",
    "incomplete": "blue",
    "failed": "red",
    "error": "red",
}


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Visual regression checks for page elements."""
    setup_logging(verbose)


@cli.command()
@click.option("--config", "-c", default="regression-config.json", help="Config file path")
@click.option("--suite", "-s", "suite_file", default="regression-suite.json", help="Suite file path")
def run(config: str, suite_file: str) -> None:
    """Capture every check of the suite and compare it with its reference image."""
    try:
        cfg = RegressionConfig.load(config)
        plan = SuitePlan.load(suite_file)
    except FileNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Run 'css-regression init' to create a default config and suite.")
        sys.exit(1)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    suite = RegressionSuite(cfg)
    try:
        suite.on_suite_start()
        with BrowserSession(headless=cfg.headless) as driver:
            outcomes = suite.run(plan, driver)
            report = suite.on_run_end()
    except CssRegressionError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    table = Table(title=f"Suite {plan.name} (run {suite.context.init_epoch})")
    table.add_column("Identifier", style="bold")
    table.add_column("Viewport")
    table.add_column("Result")
    table.add_column("Difference")
    for o in outcomes:
        style = _STATUS_STYLE.get(o.status, "white")
        diff = ""
        if o.verdict is not None and o.verdict.comparison is not None:
            diff = f"{o.verdict.comparison.normalized_difference:.2f}"
        table.add_row(o.identifier, o.viewport, f"[{style}]{o.status}[/{style}]", diff)
    console.print(table)

    if report:
        latest = suite.resolver.latest_pointer_path()
        console.print(f"\n[bold red]Report has been created:[/bold red] [blue]{latest / 'index.html'}[/blue]\n")

    if any(o.failed for o in outcomes):
        sys.exit(1)


@cli.command()
@click.option("--reference-dir", default="tests/_data/reference", help="Reference image directory")
@click.option("--fail-dir", default="tests/_output/css-regression", help="Fail image directory")
@click.option("--url", "-u", prompt="Page URL", help="Page the sample suite checks")
def init(reference_dir: str, fail_dir: str, url: str) -> None:
    """Create a default configuration file and a sample suite."""
    config_path = Path("regression-config.json")
    suite_path = Path("regression-suite.json")
    if config_path.exists() or suite_path.exists():
        if not click.confirm("regression-config.json or regression-suite.json already exists. Overwrite?"):
            return

    cfg = RegressionConfig(reference_image_directory=reference_dir, fail_image_directory=fail_dir)
    cfg.save(config_path)

    plan = SuitePlan(pages=[PageChecks(url=url, checks=[CheckCase(identifier="Page", selector="body")])])
    suite_path.write_text(plan.model_dump_json(indent=2))

    console.print(f"[green]Created {config_path} and {suite_path}[/green]")
    console.print("\nYou can now customize these files and run:")
    console.print("  [blue]css-regression run[/blue]")


if __name__ == "__main__":
    cli()
