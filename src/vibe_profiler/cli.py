"""Click CLI entry point for vibe-profiler."""

import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from vibe_profiler import __version__
from vibe_profiler.community import RollupConfig
from vibe_profiler.reporter import generate_json_report, print_terminal_report, write_html_report
from vibe_profiler.rollup import compute_community_rollup
from vibe_profiler.snapshot import load_snapshots, read_json_rows, snapshot_row_from_profile
from vibe_profiler.store import RollupStore, read_community_stats, store_rollup

console = Console()
err_console = Console(stderr=True)


# Attributes every LogRecord carries; anything else came in through extra=
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class _ExtraFormatter(logging.Formatter):
    """Append a record's extra fields to the event name as key=value pairs."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        extras = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        if not extras:
            return message
        return message + " " + " ".join(f"{key}={value}" for key, value in sorted(extras.items()))


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    handler.setFormatter(_ExtraFormatter("%(message)s", datefmt="[%X]"))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        handlers=[handler],
        force=True,
    )


def _build_config(**overrides: Optional[object]) -> RollupConfig:
    """Environment config with any explicitly passed CLI options applied on top."""
    config = RollupConfig.from_env()
    given = {name: value for name, value in overrides.items() if value is not None}
    if given:
        config = dataclasses.replace(config, **given)
    return config


@click.group()
@click.version_option(version=__version__, prog_name="vibe-profiler")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging on stderr.")
def main(verbose: bool) -> None:
    """vibe-profiler: Privacy-preserving community stats for vibe coding profiles."""
    _configure_logging(verbose)


@main.command("rollup")
@click.argument("snapshots_path", type=click.Path(exists=True, dir_okay=False), metavar="SNAPSHOTS")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["terminal", "json", "html"], case_sensitive=False),
    default="terminal",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--output",
    "-o",
    default=None,
    type=click.Path(),
    help="Write output to a file (defaults to community-report.html for --format html).",
)
@click.option(
    "--store",
    "store_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="Also persist the rollup into this store file.",
)
@click.option("--global-threshold", type=click.IntRange(min=1), default=None, help="Minimum eligible profiles.")
@click.option("--bucket-threshold", type=click.IntRange(min=1), default=None, help="Minimum profiles per bucket.")
@click.option("--min-commits", type=click.IntRange(min=1), default=None, help="Minimum commits for eligibility.")
@click.option("--window", default=None, help="Rollup window label.")
def rollup(
    snapshots_path: str,
    output_format: str,
    output: Optional[str],
    store_path: Optional[str],
    global_threshold: Optional[int],
    bucket_threshold: Optional[int],
    min_commits: Optional[int],
    window: Optional[str],
) -> None:
    """Compute community stats from a JSON file of snapshot rows.

    Rows flagged is_eligible=false, or below the minimum commit count, are
    left out before aggregation.
    """
    try:
        config = _build_config(
            global_threshold=global_threshold,
            bucket_threshold=bucket_threshold,
            eligible_min_commits=min_commits,
            window=window,
        )
        snapshots = load_snapshots(snapshots_path, config)
        if store_path:
            result = store_rollup(RollupStore(store_path), snapshots, config)
        else:
            result = compute_community_rollup(snapshots, config)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except Exception as e:
        err_console.print(f"[red]Unexpected error:[/red] {e}")
        sys.exit(1)

    if output_format == "terminal":
        print_terminal_report(result)

    elif output_format == "json":
        json_output = generate_json_report(result)
        if output:
            Path(output).write_text(json_output, encoding="utf-8")
            console.print(f"[green]JSON report written to:[/green] {output}")
        else:
            click.echo(json_output)

    elif output_format == "html":
        if not output:
            output = "community-report.html"
        write_html_report(result, output_path=output)
        console.print(f"[green]HTML report written to:[/green] {output}")
        if result.suppressed:
            console.print(f"[yellow]Suppressed:[/yellow] {result.eligible_profiles}/{result.threshold} profiles")
        else:
            console.print(f"[cyan]Developers:[/cyan] {result.eligible_profiles}")

    # Keep stdout clean when the JSON payload is printed there
    if store_path and (output_format != "json" or output):
        console.print(f"[green]Rollup stored in:[/green] {store_path}")


@main.command("backfill")
@click.argument("profiles_path", type=click.Path(exists=True, dir_okay=False), metavar="PROFILES")
@click.option("--output", "-o", default=None, type=click.Path(), help="Write snapshot rows to a file.")
@click.option("--min-commits", type=click.IntRange(min=1), default=None, help="Minimum commits for eligibility.")
def backfill(profiles_path: str, output: Optional[str], min_commits: Optional[int]) -> None:
    """Convert stored user profiles into community snapshot rows."""
    try:
        config = _build_config(eligible_min_commits=min_commits)
        profiles = read_json_rows(profiles_path, "profiles")
        rows = [snapshot_row_from_profile(profile, config) for profile in profiles]
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    json_output = json.dumps(rows, indent=2)
    if output:
        Path(output).write_text(json_output, encoding="utf-8")
        eligible = sum(1 for row in rows if row["is_eligible"])
        console.print(f"[green]Snapshots written to:[/green] {output}")
        console.print(
            f"[cyan]{len(rows)} profiles, {eligible} eligible[/cyan] (>= {config.eligible_min_commits} commits)"
        )
    else:
        click.echo(json_output)


@main.command("stats")
@click.option(
    "--store",
    "store_path",
    required=True,
    type=click.Path(dir_okay=False),
    help="Rollup store file to read from.",
)
@click.option("--window", default=None, help="Rollup window label.")
@click.option("--headers", is_flag=True, default=False, help="Print the Cache-Control header before the payload.")
def stats(store_path: str, window: Optional[str], headers: bool) -> None:
    """Print the latest stored community stats payload."""
    try:
        config = _build_config(window=window)
        response = read_community_stats(RollupStore(store_path), config)
    except ValueError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if headers:
        click.echo(f"Cache-Control: {response.cache_control}")
        click.echo()
    click.echo(json.dumps(response.payload, indent=2))


@main.command("version")
def version() -> None:
    """Show the vibe-profiler version."""
    console.print(f"vibe-profiler {__version__}")
