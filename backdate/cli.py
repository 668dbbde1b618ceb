"""CLI entrypoint (Typer + Rich).

Commands:
- `backdate init`      write a configuration file
- `backdate generate`  plan and create backdated commits (with --dry-run preview)
- `backdate rollback`  discard the most recent commits
- `backdate status`    show repository, configuration and estimate
"""

from __future__ import annotations

import asyncio
import logging
import random
import signal
import sys
import threading
from dataclasses import dataclass
from datetime import date, timedelta
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table

from backdate import __version__
from backdate.agent.executor import CommitEngine
from backdate.agent.planner import SATURDAY, SUNDAY, parse_date
from backdate.agent.preflight import run_preflight
from backdate.config import get_settings
from backdate.errors import BackdateError, GenerationCancelled, InvalidConfigError, NotARepositoryError
from backdate.schemas import GenerationResult, PlanEntry, RunOutcome
from backdate.tools.config_file import (
    build_generation_config,
    find_config_file,
    load_config_file,
    sample_config,
    save_config_file,
)
from backdate.tools.git_ops import GitBackend


logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="backdate",
    help="Generate git commits with custom dates, and undo them.",
    add_completion=False,
)

EXIT_INTERRUPTED = 130
DRY_RUN_HEAD = 10
DRY_RUN_TAIL = 5


@dataclass
class GenerateOptions:
    """Options for the generate command."""

    start: str | None
    end: str | None
    repo: str | None
    message: str | None
    min_commits: int | None
    max_commits: int | None
    skip_weekends: bool
    skip_days: str | None
    skip_prob: float | None
    time_start: str | None
    time_end: str | None
    target_file: str | None
    push: bool
    branch: str | None
    seed: int | None
    dry_run: bool
    config_path: Path | None
    yes: bool
    keep_partial: bool


def _setup_logging(verbose: bool = False) -> None:
    """Configure stderr logging; --verbose forces DEBUG."""
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
        force=True,
    )


def _print_error(error: BackdateError) -> None:
    console.print(f"[red]✖[/red] {escape(error.message)}")
    console.print(f"  [dim]└─[/dim] [cyan]Suggestion:[/cyan] {error.suggestion}")
    if error.retryable:
        console.print("  [dim]└─[/dim] [cyan]Retryable:[/cyan] this may be temporary, run the command again.")


def _title(text: str) -> None:
    console.print()
    console.rule(f"[bold]{text}", align="left")


def _summary(rows: dict[str, Any]) -> None:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="white")
    table.add_column(style="cyan")
    for key, value in rows.items():
        table.add_row(key, str(value))
    console.print(table)


def _parse_skip_days(value: str) -> list[int]:
    try:
        days = [int(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        raise InvalidConfigError(f'Invalid --skip-days value "{value}"') from e
    if any(day < 0 or day > 6 for day in days):
        raise InvalidConfigError("Skip days must be integers between 0 (Sunday) and 6 (Saturday)")
    return days


def _build_overrides(opts: GenerateOptions) -> dict[str, Any]:
    overrides: dict[str, Any] = {
        "message_template": opts.message,
        "target_path": opts.target_file,
        "skip_probability": opts.skip_prob,
        "branch": opts.branch,
        "commits_per_day": {"min": opts.min_commits, "max": opts.max_commits},
        "time_window": {"start": opts.time_start, "end": opts.time_end},
    }
    if opts.start:
        overrides["start_date"] = parse_date(opts.start, "start date")
    if opts.end:
        overrides["end_date"] = parse_date(opts.end, "end date")
    if opts.push:
        overrides["auto_push"] = True
    if opts.skip_weekends:
        overrides["skip_weekdays"] = [SUNDAY, SATURDAY]
    elif opts.skip_days:
        overrides["skip_weekdays"] = _parse_skip_days(opts.skip_days)
    return overrides


def _print_plan(plan: list[PlanEntry]) -> None:
    def _row(position: int, entry: PlanEntry) -> None:
        console.print(
            f"  [dim]{position}.[/dim] [cyan]{entry.timestamp:%Y-%m-%d %H:%M:%S}[/cyan] {escape(entry.message)}"
        )

    if len(plan) <= DRY_RUN_HEAD + DRY_RUN_TAIL:
        for position, entry in enumerate(plan, 1):
            _row(position, entry)
        return

    for position, entry in enumerate(plan[:DRY_RUN_HEAD], 1):
        _row(position, entry)
    hidden = len(plan) - DRY_RUN_HEAD - DRY_RUN_TAIL
    console.print(f"  [dim]... {hidden} more commits ...[/dim]")
    start = len(plan) - DRY_RUN_TAIL + 1
    for position, entry in enumerate(plan[-DRY_RUN_TAIL:], start):
        _row(position, entry)


def _print_result(result: GenerationResult, auto_push: bool) -> None:
    status_label = {
        RunOutcome.SUCCESS: "[green]Success[/green]",
        RunOutcome.COMPLETED_WITH_ERRORS: "[yellow]Completed with errors[/yellow]",
        RunOutcome.FAILED: "[red]Failed[/red]",
    }[result.outcome]

    _title("Generation Complete")
    _summary({
        "Total Commits": f"{result.applied_count}/{result.total_planned}",
        "Duration": f"{result.duration_seconds:.2f}s",
        "Speed": f"{result.commits_per_second:.1f} commits/sec",
        "Status": status_label,
    })

    if result.errors:
        _title("Errors")
        for error in result.errors:
            console.print(f"[red]✖[/red] {escape(error)}")

    if result.success:
        console.print(f"[green]✔[/green] Generated {result.applied_count} commits.")
        if not auto_push:
            console.print('[blue]ℹ[/blue] Run "git push" to push commits to the remote.')


# =============================================================================
# generate
# =============================================================================

async def _generate(opts: GenerateOptions) -> int:
    repo_path = opts.repo or get_settings().repo_path
    loaded = load_config_file(opts.config_path, search_dir=repo_path)
    file_values = loaded[0] if loaded else None
    config = build_generation_config(file_values, _build_overrides(opts))

    backend = GitBackend(repo_path)
    with console.status("Running preflight checks..."):
        preflight = await run_preflight(backend, config)

    if not preflight.passed:
        _title("Preflight Check Failed")
        for error in preflight.errors:
            console.print(f"[red]✖[/red] {escape(error)}")
        return 1

    if preflight.warnings:
        _title("Warnings")
        for warning in preflight.warnings:
            console.print(f"[yellow]⚠[/yellow] {warning}")

    rng = random.Random(opts.seed) if opts.seed is not None else None
    engine = CommitEngine(backend, rng=rng)
    plan = engine.plan(config)
    stats = engine.stats(config)
    bounds = config.commits_per_day
    window = config.time_window

    _title("Commit Plan")
    _summary({
        "Repository": backend.repo_path,
        "Date Range": f"{config.start_date} → {config.end_date}",
        "Total Days": stats.total_days,
        "Active Days": stats.active_days,
        "Commits per Day": f"{bounds.min}-{bounds.max}",
        "Total Commits": len(plan),
        "Time Range": f"{window.start:%H:%M} - {window.end:%H:%M}",
        "Target File": config.target_path,
        "Auto Push": "Yes" if config.auto_push else "No",
    })

    if opts.dry_run:
        _title("Dry Run - Commits to be created")
        _print_plan(plan)
        console.print()
        console.print(f"[blue]ℹ[/blue] Dry run complete. {len(plan)} commits would be created.")
        return 0

    if not plan:
        console.print("[blue]ℹ[/blue] No commits to generate based on the configuration.")
        return 0

    if not opts.yes and not typer.confirm(
        f"Generate {len(plan)} commits? This cannot be easily undone.", default=False
    ):
        console.print("[blue]ℹ[/blue] Operation cancelled.")
        return 0

    interrupted = threading.Event()

    def _handle_interrupt(signum: int, frame: Any) -> None:
        # Before generate() creates its run state cancel() is a no-op; the flag covers that gap
        interrupted.set()
        engine.cancel()

    previous_handlers = {
        sig: signal.signal(sig, _handle_interrupt) for sig in (signal.SIGINT, signal.SIGTERM)
    }

    try:
        with Progress(
            BarColumn(),
            TaskProgressColumn(),
            MofNCompleteColumn(),
            TextColumn("{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Starting...", total=len(plan))

            def _on_progress(current: int, total: int, message: str) -> None:
                if interrupted.is_set():
                    engine.cancel()
                progress.update(task, completed=current, description=escape(message[:50]))

            if interrupted.is_set():
                raise GenerationCancelled(0, len(plan))
            result = await engine.generate(config, _on_progress, plan=plan)
    except GenerationCancelled as e:
        console.print(f"[yellow]⚠[/yellow] Interrupted after {e.applied_count} commits.")
        if e.applied_count == 0:
            return EXIT_INTERRUPTED
        if opts.keep_partial:
            console.print(
                f"[blue]ℹ[/blue] Kept {e.applied_count} commits. "
                f'Undo them with "backdate rollback {e.applied_count}".'
            )
            return EXIT_INTERRUPTED
        try:
            await engine.rollback(e.applied_count)
            console.print(f"[green]✔[/green] Rolled back {e.applied_count} commits.")
        except BackdateError as rollback_error:
            console.print(f"[red]✖[/red] Failed to roll back: {escape(str(rollback_error))}")
            console.print(
                f"[yellow]⚠[/yellow] You may need to run manually: git reset --hard HEAD~{e.applied_count}"
            )
        return EXIT_INTERRUPTED
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)

    _print_result(result, config.auto_push)
    return 1 if result.outcome is RunOutcome.FAILED else 0


@app.command()
def generate(
    start: Optional[str] = typer.Option(None, "--from", "-f", help="Start date (YYYY-MM-DD)"),
    end: Optional[str] = typer.Option(None, "--to", "-t", help="End date (YYYY-MM-DD)"),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository path"),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Commit message template"),
    min_commits: Optional[int] = typer.Option(None, "--min", help="Minimum commits per day"),
    max_commits: Optional[int] = typer.Option(None, "--max", help="Maximum commits per day"),
    skip_weekends: bool = typer.Option(False, "--skip-weekends", help="Skip Saturday and Sunday"),
    skip_days: Optional[str] = typer.Option(None, "--skip-days", help="Days to skip (0=Sun, 6=Sat), comma-separated"),
    skip_prob: Optional[float] = typer.Option(None, "--skip-prob", help="Probability to skip any day (0-1)"),
    time_start: Optional[str] = typer.Option(None, "--time-start", help="Earliest commit time (HH:MM)"),
    time_end: Optional[str] = typer.Option(None, "--time-end", help="Latest commit time (HH:MM)"),
    target_file: Optional[str] = typer.Option(None, "--target-file", help="File to modify for commits"),
    push: bool = typer.Option(False, "--push", help="Push after generating commits"),
    branch: Optional[str] = typer.Option(None, "--branch", help="Branch to push"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed for a reproducible plan"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the plan without making changes"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    keep_partial: bool = typer.Option(False, "--keep-partial", help="Keep commits made before an interrupt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Generate commits with custom dates."""
    _setup_logging(verbose)
    opts = GenerateOptions(
        start=start,
        end=end,
        repo=repo,
        message=message,
        min_commits=min_commits,
        max_commits=max_commits,
        skip_weekends=skip_weekends,
        skip_days=skip_days,
        skip_prob=skip_prob,
        time_start=time_start,
        time_end=time_end,
        target_file=target_file,
        push=push,
        branch=branch,
        seed=seed,
        dry_run=dry_run,
        config_path=config_path,
        yes=yes,
        keep_partial=keep_partial,
    )
    try:
        exit_code = asyncio.run(_generate(opts))
    except BackdateError as e:
        _print_error(e)
        raise typer.Exit(1) from e
    raise typer.Exit(exit_code)


# =============================================================================
# rollback
# =============================================================================

async def _rollback(count: int | None, repo: str | None, yes: bool) -> int:
    backend = GitBackend(repo)
    if not await backend.is_usable():
        raise NotARepositoryError(f'"{backend.repo_path}" is not a Git repository')

    recent = await backend.recent_commits(20)
    if not recent:
        console.print("[yellow]⚠[/yellow] No commits found in repository.")
        return 0

    if count is None:
        _title("Recent Commits")
        for position, commit in enumerate(recent, 1):
            console.print(
                f"  [dim]{position}.[/dim] [yellow]{commit.id}[/yellow] "
                f"[dim]{commit.timestamp:%Y-%m-%d %H:%M:%S}[/dim] {escape(commit.message[:50])}"
            )
        console.print()
        count = typer.prompt("How many commits to roll back?", type=int, default=1)

    if count <= 0:
        raise InvalidConfigError("Rollback count must be a positive integer")

    total = await backend.commit_count()
    if count > total:
        raise InvalidConfigError(
            f"Cannot roll back {count} commits. Repository only has {total} commits."
        )

    _title("Commits to Roll Back")
    for commit in recent[:count]:
        console.print(f"  [red]✖[/red] [yellow]{commit.id}[/yellow] {escape(commit.message[:50])}")
    if count > len(recent):
        console.print(f"  [dim]... and {count - len(recent)} older commits[/dim]")
    console.print()

    if not yes and not typer.confirm(
        f"Permanently delete {count} commit(s)? This cannot be undone!", default=False
    ):
        console.print("[blue]ℹ[/blue] Rollback cancelled.")
        return 0

    engine = CommitEngine(backend)
    with console.status(f"Rolling back {count} commit(s)..."):
        await engine.rollback(count)
    console.print(f"[green]✔[/green] Rolled back {count} commit(s)")

    head = await backend.recent_commits(1)
    if head:
        console.print("[blue]ℹ[/blue] Current HEAD after rollback:")
        console.print(f"  [green]→[/green] [yellow]{head[0].id}[/yellow] {escape(head[0].message)}")
    return 0


@app.command()
def rollback(
    count: Optional[int] = typer.Argument(None, help="Number of commits to roll back"),
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository path"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Roll back (discard) the most recent commits."""
    _setup_logging(verbose)
    try:
        exit_code = asyncio.run(_rollback(count, repo, yes))
    except BackdateError as e:
        _print_error(e)
        raise typer.Exit(1) from e
    raise typer.Exit(exit_code)


# =============================================================================
# status
# =============================================================================

async def _status(repo: str | None, config_path: Path | None) -> int:
    backend = GitBackend(repo)

    _title("Repository Status")
    status = await backend.get_status()
    if not status.is_repo:
        _summary({"Git Repository": "[red]No[/red]"})
        console.print('[blue]ℹ[/blue] Run "git init" to initialize a repository.')
    else:
        _summary({
            "Git Repository": "[green]Yes[/green]",
            "Current Branch": status.current_branch or "N/A",
            "Commits": status.commit_count,
            "Uncommitted Changes": "[yellow]Yes[/yellow]" if status.has_uncommitted_changes else "[green]No[/green]",
            "Remote URL": status.remote_url or "[dim]Not configured[/dim]",
            "Remote Connection": "[green]Connected[/green]" if status.is_connected else "[yellow]Not connected[/yellow]",
        })
        recent = await backend.recent_commits(5)
        if recent:
            console.print("[blue]ℹ[/blue] Recent commits:")
            for commit in recent:
                console.print(f"  [dim]•[/dim] [yellow]{commit.id}[/yellow] {escape(commit.message[:60])}")

    _title("Configuration Status")
    loaded = load_config_file(config_path, search_dir=backend.repo_path)
    if loaded is None:
        _summary({"Config File": "[yellow]Not found[/yellow]"})
        console.print('[blue]ℹ[/blue] Run "backdate init" to create a configuration file.')
        return 0

    values, path = loaded
    try:
        config = build_generation_config(values)
    except BackdateError as e:
        _summary({"Config File": str(path)})
        console.print(f"[red]✖[/red] Failed to load config: {escape(str(e))}")
        return 1

    engine = CommitEngine(backend)
    stats = engine.stats(config)
    estimate = engine.estimate(config)
    _summary({
        "Config File": f"[green]{path}[/green]",
        "Start Date": config.start_date,
        "End Date": config.end_date,
        "Commits/Day": f"{config.commits_per_day.min}-{config.commits_per_day.max}",
        "Target File": config.target_path,
        "Auto Push": "Yes" if config.auto_push else "No",
        "Active Days": stats.active_days,
        "Expected Commits": f"~{estimate.expected} ({estimate.min}-{estimate.max})",
    })
    return 0


@app.command()
def status(
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository path"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show repository and configuration status."""
    _setup_logging(verbose)
    try:
        exit_code = asyncio.run(_status(repo, config_path))
    except BackdateError as e:
        _print_error(e)
        raise typer.Exit(1) from e
    raise typer.Exit(exit_code)


# =============================================================================
# init
# =============================================================================

def _prompt_values() -> dict[str, Any]:
    today = date.today()
    start = typer.prompt("Start date (YYYY-MM-DD)", default=str(today - timedelta(days=182)))
    end = typer.prompt("End date (YYYY-MM-DD)", default=str(today))
    min_commits = typer.prompt("Minimum commits per day", type=int, default=1)
    max_commits = typer.prompt("Maximum commits per day", type=int, default=5)
    message = typer.prompt("Commit message template", default="auto commit: {{date}}")
    skip_weekends = typer.confirm("Skip weekends?", default=True)
    skip_probability = typer.prompt("Probability to skip a day (0-1)", type=float, default=0.0)
    time_start = typer.prompt("Earliest commit time (HH:MM)", default="09:00")
    time_end = typer.prompt("Latest commit time (HH:MM)", default="18:00")
    auto_push = typer.confirm("Push after generating?", default=False)

    return {
        "start_date": parse_date(start, "start date"),
        "end_date": parse_date(end, "end date"),
        "commits_per_day": {"min": min_commits, "max": max_commits},
        "message_template": message,
        "skip_weekdays": [SUNDAY, SATURDAY] if skip_weekends else [],
        "skip_probability": skip_probability,
        "time_window": {"start": time_start, "end": time_end},
        "auto_push": auto_push,
    }


@app.command()
def init(
    repo: Optional[str] = typer.Option(None, "--repo", "-r", help="Repository path"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output config file path"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config file"),
    defaults: bool = typer.Option(False, "--defaults", help="Write the sample config without prompting"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Create a configuration file."""
    _setup_logging(verbose)
    repo_path = Path(repo or get_settings().repo_path)
    target = output or repo_path / ".backdaterc.json"

    existing = target if target.is_file() else find_config_file(repo_path)
    if existing and not force:
        if not typer.confirm(f"Config file already exists at {existing}. Overwrite?", default=False):
            console.print("[blue]ℹ[/blue] Init cancelled. Use the existing config or pass --force.")
            raise typer.Exit(0)

    if not asyncio.run(GitBackend(str(repo_path)).is_usable()):
        console.print(f'[yellow]⚠[/yellow] "{repo_path.resolve()}" is not a Git repository.')

    try:
        values = sample_config() if defaults else _prompt_values()
        config = build_generation_config(values)
    except BackdateError as e:
        _print_error(e)
        raise typer.Exit(1) from e

    saved = save_config_file(config, target)
    console.print(f"[green]✔[/green] Configuration saved to {saved}")
    console.print('[blue]ℹ[/blue] Preview with "backdate generate --dry-run".')


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"backdate {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show the version"
    ),
):
    """Generate git commits with custom dates, and undo them."""


if __name__ == "__main__":
    app()
