"""Command line interface."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import github as github_api
from ._version import __version__
from .cache import Cache
from .config import (
    RepositorySpec,
    filter_by_tags,
    load_specs,
    resolve_specs_file,
    resolve_store_root,
)
from .core import FleetManager
from .core import infect as infect_checkout
from .errors import AuthError, FlotillaError
from .formatters import OutputFormatter

logger = logging.getLogger(__name__)

# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="git-flotilla",
    help="Keep a fleet of repository mirrors in sync, see where they stand, search them all.",
    no_args_is_help=True,
)

err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-flotilla {__version__}")
        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    handler = RichHandler(console=err_console, show_time=False, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log fetch progress and other details",
    ),
):
    """git-flotilla: keep a fleet of repository mirrors in sync."""
    setup_logging(verbose)


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console()
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def exit_with_error(error: FlotillaError) -> None:
    err_console.print(f"[red]Error: {escape(str(error))}[/]")
    raise typer.Exit(1)


@contextmanager
def spinner(console: Console, description: str, enabled: bool = True) -> Iterator[None]:
    """Show a spinner while the block runs, on interactive terminals only."""
    if not enabled or not console.is_terminal:
        yield
        return
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        yield


def load_fleet(
    specs_file: Path | None, root: Path | None, tags: list[str] | None, workers: int
) -> FleetManager:
    specs: list[RepositorySpec] = load_specs(resolve_specs_file(specs_file))
    return FleetManager(
        filter_by_tags(specs, tags or []),
        resolve_store_root(root),
        max_workers=workers,
    )


SPECS_OPTION = typer.Option(
    None,
    "--specs",
    "-f",
    help="Spec file listing the repositories (one locator per line, then tags)",
)
ROOT_OPTION = typer.Option(
    None,
    "--root",
    "-r",
    help="Directory holding the mirrors (default: $GIT_FLOTILLA_ROOT or current directory)",
)
TAG_OPTION = typer.Option(
    None,
    "--tag",
    "-t",
    help="Only repositories carrying this tag (repeatable)",
)
SEQUENTIAL_OPTION = typer.Option(
    False,
    "--sequential",
    "-s",
    help="Run sequentially instead of parallel",
)
WORKERS_OPTION = typer.Option(
    8,
    "--workers",
    "-w",
    min=1,
    help="Number of repositories processed at once",
)


@app.command()
def status(
    update: bool = typer.Option(
        False,
        "--update",
        "-u",
        help="Fetch every mirror before checking",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    specs: Path = SPECS_OPTION,
    root: Path = ROOT_OPTION,
    tags: list[str] = TAG_OPTION,
    sequential: bool = SEQUENTIAL_OPTION,
    workers: int = WORKERS_OPTION,
):
    """Show which repositories are absent, clean, or have changes."""
    console, formatter = get_console_and_formatter(json_output)
    try:
        fleet = load_fleet(specs, root, tags, workers)
        with spinner(
            console,
            "Fetching and analyzing..." if update else "Analyzing...",
            enabled=not json_output,
        ):
            statuses = fleet.get_all_status(update=update, sequential=sequential)
    except FlotillaError as e:
        exit_with_error(e)

    formatter.print_status_list(statuses, fleet.get_summary(statuses))


@app.command()
def sync(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    specs: Path = SPECS_OPTION,
    root: Path = ROOT_OPTION,
    tags: list[str] = TAG_OPTION,
    sequential: bool = SEQUENTIAL_OPTION,
    workers: int = WORKERS_OPTION,
):
    """Clone missing mirrors and fetch the existing ones."""
    console, formatter = get_console_and_formatter(json_output)
    try:
        fleet = load_fleet(specs, root, tags, workers)
        with spinner(console, "Syncing mirrors...", enabled=not json_output):
            results = fleet.sync_all(sequential=sequential)
    except FlotillaError as e:
        exit_with_error(e)

    formatter.print_sync_results(results)


@app.command()
def grep(
    pattern: str = typer.Argument(..., help="Regular expression to search for"),
    globs: list[str] = typer.Argument(
        None,
        help="Only search paths matching one of these globs",
    ),
    specs: Path = SPECS_OPTION,
    root: Path = ROOT_OPTION,
    tags: list[str] = TAG_OPTION,
    sequential: bool = SEQUENTIAL_OPTION,
    workers: int = WORKERS_OPTION,
):
    """Search every mirror at the commit upstream's HEAD pointed at when last synced."""
    try:
        fleet = load_fleet(specs, root, tags, workers)
        count = fleet.grep_all(pattern, globs or [], sequential=sequential)
    except FlotillaError as e:
        exit_with_error(e)
    logger.debug("%d matching lines", count)


@app.command()
def infect(
    path: Path = typer.Argument(
        Path("."),
        help="Checkout to configure (default: current directory)",
    ),
):
    """Make an existing checkout track upstream's HEAD as origin/REMOTE_HEAD."""
    try:
        changed = infect_checkout(path)
    except FlotillaError as e:
        exit_with_error(e)

    if changed:
        print(f"{path}: now fetching origin's HEAD into origin/REMOTE_HEAD")
    else:
        print(f"{path}: already fetching origin's HEAD into origin/REMOTE_HEAD")


@app.command()
def github(
    org: str = typer.Argument(..., help="GitHub organization to list"),
    token: str = typer.Option(
        None,
        "--token",
        envvar="GITHUB_TOKEN",
        help="API token (default: $GITHUB_TOKEN)",
    ),
    include_archived: bool = typer.Option(
        False,
        "--include-archived",
        help="Also list archived repositories",
    ),
):
    """Print spec lines for every repository of a GitHub organization."""
    try:
        if not token:
            raise AuthError("no GitHub token: pass --token or set $GITHUB_TOKEN")
        repos = github_api.list_org_repositories(org, token)
        snapshot = github_api.write_org_snapshot(Cache(), org, repos)
    except FlotillaError as e:
        exit_with_error(e)

    logger.info("%d repositories of %s saved to %s", len(repos), org, snapshot)
    for line in github_api.spec_lines(repos, include_archived=include_archived):
        print(line)
