"""CLI for timemachine."""

import logging
import os
from pathlib import Path

import typer
from rich.console import Console

from .constants import TIMEMACHINE_VERSION
from .errors import (
    InsufficientSpaceError,
    NotFoundError,
    TimeMachineError,
    UncommittedChangesError,
)
from .ops import (
    cleanup_content,
    delete_snapshot as ops_delete_snapshot,
    diff_snapshots,
    get_status,
    initialize,
    list_snapshots,
    restore_snapshot,
    take_snapshot,
    verify_content,
)
from .status_display import (
    display_comparison,
    display_restore_report,
    display_snapshot_list,
    display_status,
)
from .utils import humanize_size


app = typer.Typer(help="""\
Snapshot a directory, compare snapshots, and restore any earlier state.
File contents are stored once, compressed, under .timemachine/.""")

console = Console()

DirectoryArg = typer.Argument(Path("."), help="Directory to operate on")


def _fail(e: TimeMachineError) -> None:
    """Print an error and exit with status 1."""
    console.print(f"[red]✗[/red] {e}")
    if isinstance(e, UncommittedChangesError):
        for path in e.modified_files:
            console.print(f"  [yellow]M[/yellow] {path}")
        for path in e.new_files:
            console.print(f"  [green]+[/green] {path}")
        for path in e.deleted_files:
            console.print(f"  [red]-[/red] {path}")
    elif isinstance(e, InsufficientSpaceError):
        console.print(
            f"[dim]Need {humanize_size(e.required)}, "
            f"have {humanize_size(e.available)}[/dim]"
        )
    elif isinstance(e, NotFoundError) and e.snapshot_id is not None:
        console.print("[dim]Hint: run `timemachine list` to see snapshots[/dim]")
    raise typer.Exit(1)


def _version_callback(value: bool):
    if value:
        console.print(f"timemachine {TIMEMACHINE_VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
):
    if verbose or os.environ.get("TIMEMACHINE_DEBUG", "").lower() in ("1", "true", "yes"):
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")


@app.command()
def init(directory: Path = DirectoryArg):
    """Initialize a directory for snapshots."""
    try:
        created = initialize(directory)
    except TimeMachineError as e:
        _fail(e)
    if created:
        console.print(f"[green]✓[/green] Initialized timemachine in `{directory}`")
    else:
        console.print(f"[dim]Already initialized: {directory}[/dim]")


@app.command()
def snapshot(directory: Path = DirectoryArg):
    """Record the current state of the directory."""
    try:
        snap = take_snapshot(directory)
    except TimeMachineError as e:
        _fail(e)
    console.print(
        f"[green]✓[/green] Snapshot {snap.id} taken ({snap.changes} files, "
        f"{humanize_size(snap.total_size)})"
    )


@app.command()
def diff(
    snapshot1: int = typer.Argument(..., help="Older snapshot id"),
    snapshot2: int = typer.Argument(..., help="Newer snapshot id"),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory to operate on"),
):
    """Show differences between two snapshots.

    Examples:
        timemachine diff 1 2            # What changed from 1 to 2
        timemachine diff 1 3 --dir src  # In another directory
    """
    try:
        comparison = diff_snapshots(directory, snapshot1, snapshot2)
    except TimeMachineError as e:
        _fail(e)
    display_comparison(comparison, console, snapshot1, snapshot2)


@app.command()
def restore(
    snapshot_id: int = typer.Argument(..., help="Snapshot id to restore"),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory to operate on"),
    force: bool = typer.Option(
        False, "--force", help="Restore despite uncommitted changes (backs them up first)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview what would change"),
):
    """Restore the directory to a snapshot.

    Examples:
        timemachine restore 2 --dry-run  # Preview
        timemachine restore 2            # Restore (fails on uncommitted changes)
        timemachine restore 2 --force    # Back up current state, then restore
    """
    try:
        report = restore_snapshot(directory, snapshot_id, force=force, dry_run=dry_run)
    except TimeMachineError as e:
        _fail(e)
    display_restore_report(report, console)


@app.command("list")
def list_cmd(
    directory: Path = DirectoryArg,
    detailed: bool = typer.Option(False, "--detailed", "-l", help="Include total sizes"),
):
    """List recorded snapshots."""
    try:
        snapshots = list_snapshots(directory, detailed=detailed)
    except TimeMachineError as e:
        _fail(e)
    display_snapshot_list(snapshots, console, detailed=detailed)


@app.command()
def status(directory: Path = DirectoryArg):
    """Show changes since the latest snapshot."""
    try:
        info = get_status(directory)
    except TimeMachineError as e:
        _fail(e)
    display_status(info, console)


@app.command()
def delete(
    snapshot_id: int = typer.Argument(..., help="Snapshot id to delete"),
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Directory to operate on"),
    cleanup: bool = typer.Option(False, "--cleanup", help="Also remove content no snapshot uses"),
):
    """Delete a snapshot."""
    try:
        result = ops_delete_snapshot(directory, snapshot_id, cleanup=cleanup)
    except TimeMachineError as e:
        _fail(e)
    console.print(f"[green]✓[/green] Deleted snapshot {snapshot_id}")
    if cleanup:
        console.print(f"[dim]{result.summary()}[/dim]")


@app.command()
def cleanup(directory: Path = DirectoryArg):
    """Remove stored content that no snapshot references."""
    try:
        result = cleanup_content(directory)
    except TimeMachineError as e:
        _fail(e)
    console.print(f"[green]✓[/green] {result.summary()}")


@app.command()
def verify(directory: Path = DirectoryArg):
    """Check stored content against its hashes."""
    try:
        results = verify_content(directory)
    except TimeMachineError as e:
        _fail(e)

    bad = [digest for digest, ok in results.items() if not ok]
    if not bad:
        console.print(f"[green]✓[/green] All {len(results)} blobs verified")
        return

    console.print(f"[red]✗[/red] {len(bad)} of {len(results)} blobs missing or corrupt:")
    for digest in bad:
        console.print(f"  [red]•[/red] {digest}")
    raise typer.Exit(1)


def main():
    """Entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
