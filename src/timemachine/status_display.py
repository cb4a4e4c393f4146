"""Display logic for snapshot listings, diffs, status and restore reports."""

from typing import Dict, List

from rich.console import Console
from rich.table import Table

from .core import RestoreReport, SnapshotComparison, SnapshotListInfo, StatusInfo
from .utils import format_epoch, format_iso_date, humanize_size


def display_snapshot_list(snapshots: List[SnapshotListInfo], console: Console, detailed: bool = False):
    """Display snapshot history as a table."""
    if not snapshots:
        console.print("[yellow]No snapshots yet[/yellow]")
        return

    table = Table(title=f"Snapshots ({len(snapshots)})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Created")
    table.add_column("Files", justify="right")
    if detailed:
        table.add_column("Size", justify="right")

    for info in snapshots:
        row = [str(info.id), format_iso_date(info.timestamp), str(info.changes)]
        if detailed:
            row.append(humanize_size(info.total_size))
        table.add_row(*row)

    console.print(table)


def display_comparison(comparison: SnapshotComparison, console: Console, id1: int, id2: int):
    """Display differences between two snapshots."""
    console.print(f"[bold]Comparing snapshot {id1} with snapshot {id2}[/bold]\n")

    if not comparison.has_changes:
        console.print("[green]✓[/green] No differences")
        return

    if comparison.new_files:
        console.print("[bold]New files:[/bold]")
        for path in comparison.new_files:
            console.print(f"  [green]+[/green] {path}")
        console.print()

    if comparison.modified_files:
        console.print("[bold]Modified files:[/bold]")
        for m in comparison.modified_files:
            console.print(f"  [yellow]M[/yellow] {m.path}")
            console.print(
                f"    [dim]{humanize_size(m.old_size)} → {humanize_size(m.new_size)}, "
                f"{m.old_hash[:12]} → {m.new_hash[:12]}, "
                f"modified {format_epoch(m.new_last_modified)}[/dim]"
            )
        console.print()

    if comparison.deleted_files:
        console.print("[bold]Deleted files:[/bold]")
        for path in comparison.deleted_files:
            console.print(f"  [red]-[/red] {path}")
        console.print()


def display_status(status: StatusInfo, console: Console):
    """Display working directory status against the latest snapshot."""
    if status.latest_snapshot_id is None:
        console.print("[dim]No snapshots yet[/dim]")
    else:
        console.print(f"[bold]Latest snapshot:[/bold] {status.latest_snapshot_id}")
    console.print(f"[dim]Available space: {humanize_size(status.available_space)}[/dim]\n")

    if status.latest_snapshot_id is not None and not status.has_uncommitted_changes:
        console.print("[green]✓[/green] Working directory matches the latest snapshot")
        return

    groups: Dict[str, tuple] = {
        "Modified": (status.modified_files, "[yellow]M[/yellow]"),
        "New": (status.new_files, "[green]+[/green]"),
        "Deleted": (status.deleted_files, "[red]-[/red]"),
    }
    for label, (paths, icon) in groups.items():
        if paths:
            console.print(f"[bold]{label}:[/bold]")
            for path in paths:
                console.print(f"  {icon} {path}")
            console.print()


def display_restore_report(report: RestoreReport, console: Console):
    """Display the changes a restore made (or would make, for dry runs)."""
    if report.backup_snapshot_id is not None:
        console.print(
            f"[yellow]⚠[/yellow] Backed up uncommitted changes as snapshot {report.backup_snapshot_id}"
        )

    if report.is_empty:
        console.print(f"[green]✓[/green] Already at snapshot {report.snapshot_id}")
        return

    if report.dry_run:
        console.print(f"[bold]Dry run, restoring snapshot {report.snapshot_id} would apply:[/bold] {report.summary()}")
    else:
        console.print(f"[green]✓[/green] [bold]Restored snapshot {report.snapshot_id}:[/bold] {report.summary()}")
    for path in report.added:
        console.print(f"  [green]+[/green] {path}")
    for path in report.modified:
        console.print(f"  [yellow]M[/yellow] {path}")
    for path in report.deleted:
        console.print(f"  [red]-[/red] {path}")
