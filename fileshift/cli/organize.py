"""
CLI command for organizing files.

Moves the given files into category folders under a destination directory,
recording an undo manifest for the batch.
"""

import sys
from pathlib import Path
from typing import Tuple

import click
from rich.console import Console
from rich.table import Table

from ..config import Settings
from ..core.errors import FileShiftError
from ..core.types import ConflictStrategy, ExecutionOutcome
from ..organization import FileOrganizer
from ..shared import format_bytes, load_candidates, setup_logging

console = Console()


@click.command()
@click.argument("destination", type=click.Path(file_okay=False))
@click.argument("files", nargs=-1, required=True, type=click.Path())
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in ConflictStrategy], case_sensitive=False),
    default=ConflictStrategy.RENAME.value,
    help="How to resolve destination conflicts",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Preview changes without executing (RECOMMENDED FIRST)",
)
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for manifests and backups (default: ~/.fileshift)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Verbose output",
)
def organize(
    destination: str,
    files: Tuple[str, ...],
    strategy: str,
    dry_run: bool,
    state_dir: str,
    verbose: bool,
) -> None:
    """
    Move FILES into category folders under DESTINATION.

    \b
    Examples:
        # DRY RUN (preview changes - always do this first!)
        fileshift organize ~/Sorted ~/Downloads/* --dry-run

        # Move, renaming on conflicts
        fileshift organize ~/Sorted ~/Downloads/*

        # Overwrite older files (originals are backed up)
        fileshift organize ~/Sorted ~/Downloads/* --strategy overwrite_if_newer

    \b
    Conflict Strategies:
        rename:              report.txt -> report_1.txt
        skip:                leave the source where it is
        overwrite:           replace, keeping a backup of the old file
        overwrite_if_newer:  replace only if the source is not older
    """
    setup_logging(verbose, console)

    settings = Settings(state_dir=Path(state_dir)) if state_dir else Settings()
    candidates, rejected = load_candidates(Path(f) for f in files)

    for message in rejected:
        console.print(f"[yellow]⚠ {message}[/yellow]")

    if not candidates:
        console.print("[red]✗ No files to organize[/red]")
        sys.exit(1)

    total_size = sum(c.size for c in candidates)
    console.print("\n[cyan]Organization Configuration:[/cyan]")
    console.print(f"  Destination: {destination}")
    console.print(f"  Files: {len(candidates)} ({format_bytes(total_size)})")
    console.print(f"  Strategy: {strategy}")
    console.print(f"  Dry run: {'YES' if dry_run else 'NO'}")

    if dry_run:
        console.print("\n[yellow]⚠ DRY RUN MODE - No files will be modified[/yellow]")

    try:
        organizer = FileOrganizer(settings, show_progress=not verbose)
        result = organizer.organize(
            Path(destination),
            candidates,
            strategy=ConflictStrategy(strategy.lower()),
            dry_run=dry_run,
        )
    except FileShiftError as e:
        console.print(f"\n[red]✗ {e.format()}[/red]")
        sys.exit(1)

    _display_result(result)

    if result.manifest_id:
        console.print(f"\n[dim]Manifest ID: {result.manifest_id}[/dim]")
        console.print("[dim]You can undo this operation with:[/dim]")
        console.print(f"[dim]  fileshift undo run {result.manifest_id}[/dim]")


def _display_result(result: ExecutionOutcome) -> None:
    """Display execution result."""
    title = "Planned moves" if result.dry_run else "Results"
    console.print(f"\n[green]✓ {title}[/green]\n")

    table = Table(title="Categories")
    table.add_column("Category", style="cyan")
    table.add_column("Files", style="green", justify="right")
    for category, count in sorted(result.category_counts.items()):
        table.add_row(category, str(count))
    console.print(table)

    label = "Would move" if result.dry_run else "Moved"
    console.print(f"\n{label}: {result.success_count}")
    console.print(f"Errors: {result.error_count}")

    if result.dry_run:
        for action in result.successes[:20]:
            console.print(f"  [dim]{action.source} → {action.destination}[/dim]")
        console.print("\n[yellow]This was a DRY RUN - no files were modified[/yellow]")

    if result.aborted:
        console.print("[red]Planning was aborted after repeated errors[/red]")

    if result.errors:
        console.print("\n[red]Errors:[/red]")
        for error in result.errors[:10]:
            console.print(f"  [red]• {error}[/red]")
        if len(result.errors) > 10:
            console.print(f"  [dim]... and {len(result.errors) - 10} more[/dim]")


if __name__ == "__main__":
    organize()
