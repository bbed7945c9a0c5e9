"""
CLI commands for listing and undoing organization batches.
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from ..config import Settings
from ..core.errors import FileShiftError
from ..organization import FileOrganizer
from ..shared import setup_logging

console = Console()


def _organizer(state_dir: Optional[str]) -> FileOrganizer:
    settings = Settings(state_dir=Path(state_dir)) if state_dir else Settings()
    return FileOrganizer(settings)


@click.group()
def undo() -> None:
    """List and undo previous organization batches."""


@undo.command("list")
@click.option(
    "--state-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for manifests and backups (default: ~/.fileshift)",
)
def list_manifests(state_dir: Optional[str]) -> None:
    """List undoable batches, most recent first."""
    listing = _organizer(state_dir).store.list_manifests()

    if not listing.manifests:
        console.print("No undo history found.")
    else:
        table = Table(title="Undo history")
        table.add_column("Manifest ID", style="cyan", no_wrap=True)
        table.add_column("Created")
        table.add_column("Actions", justify="right")
        table.add_column("Description")

        for manifest in listing.manifests:
            created = datetime.fromtimestamp(manifest.timestamp / 1000)
            table.add_row(
                manifest.id,
                created.strftime("%Y-%m-%d %H:%M:%S"),
                str(len(manifest.actions)),
                manifest.description,
            )
        console.print(table)

    for corrupt in listing.corrupt:
        console.print(f"[yellow]⚠ Unreadable manifest {corrupt.file}: {corrupt.reason}[/yellow]")


@undo.command("run")
@click.argument("manifest_id", required=False)
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
def run(manifest_id: Optional[str], state_dir: Optional[str], verbose: bool) -> None:
    """
    Undo the batch MANIFEST_ID (default: the most recent one).
    """
    setup_logging(verbose, console)
    service = _organizer(state_dir).rollback_service

    if not manifest_id:
        manifest_id = service.latest_manifest_id()
        if not manifest_id:
            console.print("No undo history found.")
            return

    console.print(f"[yellow]Rolling back manifest {manifest_id}...[/yellow]")
    try:
        result = service.rollback(manifest_id)
    except FileShiftError as e:
        console.print(f"[red]✗ Rollback failed: {e.message}[/red]")
        sys.exit(1)

    console.print(f"\n✅ Restored: {result.success} files")
    console.print(f"❌ Failed: {result.failed} files")

    for message in result.recovered:
        console.print(f"  [yellow]↺ {message}[/yellow]")
    for message in result.warnings:
        console.print(f"  [dim]• {message}[/dim]")
    if result.errors:
        console.print("\n[red]Errors:[/red]")
        for error in result.errors:
            console.print(f"  [red]• {error}[/red]")

    if result.manifest_retained:
        if result.undone:
            console.print("\n[cyan]Undone in this run (removed from the manifest):[/cyan]")
            for action in result.undone:
                console.print(f"  [dim]{action.current_path or action.backup_path} → {action.original_path}[/dim]")
        console.print(f"\n[yellow]Manifest {manifest_id} kept.[/yellow]")
        console.print(
            f"[yellow]{result.failed} action(s) still to undo. Run again to retry.[/yellow]"
        )
        sys.exit(1)

    console.print("[green]✓ Rollback complete[/green]")
