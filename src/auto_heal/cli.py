"""Command-line interface for auto-heal."""

import asyncio
import json
import logging
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from auto_heal import __version__
from auto_heal.config import AutoHealConfig, ConfigurationError
from auto_heal.controller import HealingLoopController
from auto_heal.ledger import Issue, IssueLedger, IssueStatus, LedgerError
from auto_heal.models import HealReport

app = typer.Typer(
    name="auto-heal",
    help="Autonomous CI repair: test, diagnose and fix a repository in a sandbox",
    add_completion=False,
)
console = Console()

# Help text constants
VERBOSE_OUTPUT_HELP = "Verbose output"
ENV_FILE_HELP = "Path to custom environment file (default: .env.autoheal or .env)"

STATUS_STYLES = {
    IssueStatus.OPEN: "yellow",
    IssueStatus.FIXED: "green",
    IssueStatus.FAILED_FILE_NOT_FOUND: "red",
    IssueStatus.FAILED_GENERATION: "red",
}


def setup_logging(verbose: bool) -> None:
    """Setup logging configuration.

    Args:
        verbose: If True, enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )

    # HTTP and container client chatter breaks the progress display
    if not verbose:
        for name in ("httpx", "docker", "urllib3"):
            logging.getLogger(name).setLevel(logging.WARNING)


def write_results(report: HealReport, path: Path) -> None:
    """Write the run report as JSON.

    Args:
        report: Final run report
        path: Destination file
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_results_dict(), indent=2), encoding="utf-8")


def _display_report(report: HealReport) -> None:
    """Display the final report.

    Args:
        report: Final run report
    """
    status_style = "green" if report.passed else "red"
    console.print("\n[bold]Healing Summary:[/bold]")
    console.print(f"  Status: [{status_style}]{report.status.value}[/{status_style}]")
    console.print(f"  Iterations: {report.iterations}")
    if report.branch_name:
        console.print(f"  Branch: {report.branch_name}")
    console.print(f"  [green]Fixes applied: {report.total_fixes_applied}[/green]")
    console.print(f"  Commits: {len(report.commits)}")
    console.print(f"  Pushed: {'yes' if report.pushed else 'no'}")
    if report.total_open_failures:
        console.print(f"  [yellow]Unresolved issues: {report.total_open_failures}[/yellow]")
    if report.error_message:
        console.print(f"  [red]Error: {report.error_message}[/red]")
    console.print(f"  Duration: {report.duration_seconds:.1f}s")

    if report.issues:
        console.print()
        console.print(_issues_table(report.issues))


def _issues_table(issues: list[Issue]) -> Table:
    table = Table(title="Issues")
    table.add_column("File")
    table.add_column("Line", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Description", overflow="fold")

    for issue in issues:
        style = STATUS_STYLES.get(issue.status, "white")
        table.add_row(
            issue.file,
            str(issue.line) if issue.line else "-",
            issue.kind.value,
            f"[{style}]{issue.status.value}[/{style}]",
            issue.description,
        )
    return table


@app.command()
def heal(
    repo_url: str = typer.Argument(..., help="URL of the repository to heal"),
    team_name: str | None = typer.Option(
        None,
        "--team",
        "-t",
        help="Team name used in the fix branch name",
    ),
    leader_name: str | None = typer.Option(
        None,
        "--leader",
        "-l",
        help="Team leader name used in the fix branch name",
    ),
    max_iterations: int | None = typer.Option(
        None,
        "--max-iterations",
        "-i",
        help="Iteration ceiling (overrides config)",
    ),
    results_file: Path | None = typer.Option(
        None,
        "--results-file",
        help="Write the final report as JSON to this file (overrides config)",
    ),
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help=VERBOSE_OUTPUT_HELP,
    ),
) -> None:
    """Clone a repository and heal it until its checks pass."""
    setup_logging(verbose)

    try:
        # Load configuration
        overrides: dict[str, object] = {}
        if max_iterations is not None:
            overrides["max_iterations"] = max_iterations
        if results_file is not None:
            overrides["results_file"] = results_file
        config = AutoHealConfig(env_file=env_file, **overrides)

        controller = HealingLoopController(config, console=console)
        report = asyncio.run(
            controller.run(
                repo_url=repo_url,
                team_name=team_name,
                leader_name=leader_name,
            )
        )

        _display_report(report)

        if config.results_file:
            write_results(report, config.results_file)
            console.print(f"\n[dim]Results written to {config.results_file}[/dim]")

        # Exit with error unless the suite passes
        if not report.passed:
            sys.exit(1)

    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if verbose:
            console.print_exception()
        sys.exit(1)


@app.command()
def ledger(
    ledger_file: Path = typer.Argument(..., help="Path to a persisted issue ledger"),
) -> None:
    """Show the issues recorded in a ledger file."""
    try:
        issue_ledger = IssueLedger.load(ledger_file)
    except LedgerError as e:
        console.print(f"[red]Ledger error: {e}[/red]")
        sys.exit(1)

    record = issue_ledger.record
    console.print(f"[bold]Run {record.run_id}[/bold]")
    console.print(f"  Repository: {record.repo_url}")
    console.print(f"  Branch: {record.branch_name}")
    console.print(f"  Status: {record.status.value}")
    console.print()

    if record.issues:
        console.print(_issues_table(record.issues))
    else:
        console.print("[dim]No issues recorded[/dim]")


@app.command()
def config(
    env_file: str | None = typer.Option(
        None,
        "--env-file",
        help=ENV_FILE_HELP,
    ),
) -> None:
    """Show current configuration."""
    try:
        cfg = AutoHealConfig(env_file=env_file)
        console.print("[bold]Current Configuration:[/bold]\n")
        console.print(f"  Oracle: {cfg.oracle_type.display_name}")
        console.print(f"  Oracle API Base: {cfg.oracle_api_base}")
        console.print(f"  Oracle Model: {cfg.oracle_model}")
        console.print(f"  Oracle API Key: {'*' * 8}{cfg.oracle_api_key[-4:]}")
        console.print("\n[bold]Healing Loop:[/bold]")
        console.print(f"  Max Iterations: {cfg.max_iterations}")
        console.print(f"  Sandbox Timeout: {cfg.sandbox_timeout}s")
        console.print(f"  Workspace Dir: {cfg.workspace_dir}")
        console.print(f"  Ledger Dir: {cfg.ledger_dir}")
        if cfg.results_file:
            console.print(f"  Results File: {cfg.results_file}")
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"auto-heal version {__version__}")


if __name__ == "__main__":
    app()
