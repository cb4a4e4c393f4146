"""Diff computation logic - stable module for computing differences.

A single primitive compares two ``path -> FileState`` maps. It backs both
snapshot-to-snapshot comparison and the current-directory-to-snapshot restore
report; only the direction of the maps changes.

A file counts as modified when its hash or its size differs. ``last_modified``
is informational and never triggers a change on its own.
"""

from typing import Dict, Iterable, List

from .core import (
    FileState,
    ModifiedFileDetail,
    RestoreReport,
    Snapshot,
    SnapshotComparison,
)

FileMap = Dict[str, FileState]


def create_file_map(file_states: Iterable[FileState]) -> FileMap:
    """Index file states by path."""
    return {fs.path: fs for fs in file_states}


def _is_modified(old: FileState, new: FileState) -> bool:
    return old.hash != new.hash or old.size != new.size


def find_new_files(new_map: FileMap, old_map: FileMap) -> List[str]:
    """Paths in ``new_map`` absent from ``old_map``."""
    return sorted(path for path in new_map if path not in old_map)


def find_deleted_files(old_map: FileMap, new_map: FileMap) -> List[str]:
    """Paths in ``old_map`` absent from ``new_map``."""
    return sorted(path for path in old_map if path not in new_map)


def find_modified_files(old_map: FileMap, new_map: FileMap) -> List[ModifiedFileDetail]:
    """Paths present in both maps whose hash or size differs."""
    details = []
    for path in sorted(new_map):
        old = old_map.get(path)
        new = new_map[path]
        if old is None or not _is_modified(old, new):
            continue
        details.append(ModifiedFileDetail(
            path=path,
            old_size=old.size,
            new_size=new.size,
            old_hash=old.hash,
            new_hash=new.hash,
            old_last_modified=old.last_modified,
            new_last_modified=new.last_modified,
        ))
    return details


def find_unchanged_files(old_map: FileMap, new_map: FileMap) -> List[str]:
    """Paths present in both maps with matching hash and size."""
    return sorted(
        path for path, old in old_map.items()
        if path in new_map and not _is_modified(old, new_map[path])
    )


def compare_snapshots(old: Snapshot, new: Snapshot) -> SnapshotComparison:
    """Compare two snapshots (old -> new)."""
    old_map = create_file_map(old.file_states)
    new_map = create_file_map(new.file_states)
    return SnapshotComparison(
        new_files=find_new_files(new_map, old_map),
        modified_files=find_modified_files(old_map, new_map),
        deleted_files=find_deleted_files(old_map, new_map),
    )


def generate_restore_report(current_map: FileMap, target_map: FileMap) -> RestoreReport:
    """
    Compute what restoring ``target_map`` over ``current_map`` would change.

    Args:
        current_map: File states scanned from the working directory.
        target_map: File states recorded in the restore target.

    Returns:
        RestoreReport with added (target only), modified (differing),
        deleted (current only) and unchanged paths.
    """
    return RestoreReport(
        added=find_new_files(target_map, current_map),
        modified=[m.path for m in find_modified_files(current_map, target_map)],
        deleted=find_deleted_files(current_map, target_map),
        unchanged=find_unchanged_files(current_map, target_map),
    )
