"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from .core import FleetSummary, RepositoryStatus, SyncResult
    from .identity import GithubOrgRepo


def href(label: str, url: str) -> str:
    """Wrap ``label`` in an OSC 8 terminal hyperlink to ``url``."""
    return f"\x1b]8;;{url}\x1b\\{label}\x1b]8;;\x1b\\"


def format_grep_match(
    local_dir: str,
    path: str,
    lineno: int,
    line: str,
    provider: GithubOrgRepo | None = None,
) -> str:
    """One grep result line; the path links to the provider's web view if known."""
    display = path
    if provider is not None:
        display = href(path, provider.browse_url(None, path, lineno))
    return f"{local_dir}/{display} {lineno}: {line.rstrip()}"


def render_status_lines(statuses: Sequence[RepositoryStatus]) -> list[str]:
    """Status report as plain text lines.

    Absent and clean repositories are listed on one line each; every
    repository with changes gets its own line showing its variance and up to
    two changes.
    """
    from .core import StatusKind

    absent = [s.local_dir for s in statuses if s.kind == StatusKind.ABSENT]
    clean = [s.local_dir for s in statuses if s.kind == StatusKind.CLEAN]
    lines = [f"absent: {', '.join(absent)}", f"clean: {', '.join(clean)}"]

    for status in statuses:
        if status.kind != StatusKind.CHANGES:
            continue
        suffix = ", ..." if len(status.changes) > 2 else ""
        lines.append(
            f"{status.local_dir}: ({status.variance}) {', '.join(status.changes[:2])}{suffix}"
        )
    return lines


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_status_list(self, statuses: Sequence[RepositoryStatus], summary: FleetSummary):
        """Print status list."""
        if self.use_json:
            self._print_status_json(statuses, summary)
        else:
            for line in render_status_lines(statuses):
                self.console.print(line, markup=False, highlight=False, soft_wrap=True)

    def _print_status_json(self, statuses: Sequence[RepositoryStatus], summary: FleetSummary):
        """Print JSON output."""
        output = {
            "repositories": [s.to_dict() for s in statuses],
            "summary": summary.to_dict(),
        }
        self.console.print(
            json.dumps(output, indent=2, default=str), markup=False, highlight=False, soft_wrap=True
        )

    def print_sync_results(self, results: Sequence[SyncResult]):
        """Print sync results."""
        if self.use_json:
            output = {
                "results": [r.to_dict() for r in results],
                "summary": {
                    "total": len(results),
                    "cloned": sum(1 for r in results if r.created),
                    "fetched": sum(1 for r in results if not r.created),
                },
            }
            self.console.print(
                json.dumps(output, indent=2), markup=False, highlight=False, soft_wrap=True
            )
            return

        if not results:
            self.console.print("[dim]No repositories to sync[/]")
            return

        table = Table(title="Sync Results")
        table.add_column("Repository", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        for result in results:
            status = "[green]+[/]" if result.created else "[green]✓[/]"
            table.add_row(result.name, status, result.message)

        self.console.print(table)
        cloned = sum(1 for r in results if r.created)
        self.console.print(
            f"\n[bold]Cloned:[/] {cloned} | [bold]Fetched:[/] {len(results) - cloned}"
        )
