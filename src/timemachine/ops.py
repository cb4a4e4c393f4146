"""Core operations for timemachine.

Each public function maps one-to-one to a CLI command and takes the root of
the versioned directory. Mutating operations hold the repository lock for
their whole duration; read-only ones take no lock.

Nothing here prints or retries: failures surface as
:class:`timemachine.errors.TimeMachineError` subclasses.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import TimeMachineConfig, load_config
from .content import ContentStore
from .context import RepositoryContext
from .core import (
    CleanupResult,
    RestoreReport,
    Snapshot,
    SnapshotComparison,
    SnapshotListInfo,
    StatusInfo,
)
from .diffing import (
    compare_snapshots,
    create_file_map,
    find_deleted_files,
    find_modified_files,
    find_new_files,
)
from .errors import NotFoundError
from .locking import repository_lock
from .repository import SnapshotRepository
from .restore import DiskSpaceProvider, RestoreEngine, ShutilDiskSpaceProvider
from .snapshot import WorkingTree

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# ============= Wiring =============

def _open(root: PathLike):
    ctx = RepositoryContext(root)
    config = load_config(ctx)
    store = ContentStore(ctx.contents_dir, compression_level=config.compression_level)
    return ctx, config, SnapshotRepository(ctx), store


def _record_snapshot(
    ctx: RepositoryContext,
    config: TimeMachineConfig,
    repository: SnapshotRepository,
    store: ContentStore,
) -> Snapshot:
    """Store every file's contents and append a snapshot. Caller holds the lock."""
    if not repository.is_initialized():
        logger.debug("Directory '%s' is not initialized for snapshots; initializing", ctx.root)
        repository.initialize()

    metadata = repository.load()
    tree = WorkingTree.scan(ctx.root, config.recursive)
    store.init()
    for file_state in tree.file_states:
        stored = store.store(ctx.absolute(file_state.path))
        if stored != file_state.hash:
            # File changed between scan and store; record what was stored
            logger.debug("Content of %s changed during snapshot", file_state.path)
            file_state.hash = stored
            file_state.size = ctx.absolute(file_state.path).stat().st_size

    snapshot = repository.append(metadata, tree.file_states)
    store.auto_cleanup(metadata)
    return snapshot


# ============= Public Operations =============

def initialize(root: PathLike) -> bool:
    """Initialize a directory for snapshots.

    Returns:
        True if a new repository was created, False if one already existed
    """
    ctx = RepositoryContext(root)
    return SnapshotRepository(ctx).initialize()


def take_snapshot(root: PathLike) -> Snapshot:
    """Record the current state of root as a new snapshot.

    Uninitialized directories are initialized first.
    """
    ctx, config, repository, store = _open(root)
    if not ctx.root.is_dir():
        raise NotFoundError(f"Directory not found: {ctx.root}", path=str(ctx.root))
    with repository_lock(ctx, config.lock_timeout):
        return _record_snapshot(ctx, config, repository, store)


def diff_snapshots(root: PathLike, snapshot_id1: int, snapshot_id2: int) -> SnapshotComparison:
    """Compare two recorded snapshots (id1 -> id2)."""
    _, _, repository, _ = _open(root)
    metadata = repository.load()
    old = repository.require(metadata, snapshot_id1)
    new = repository.require(metadata, snapshot_id2)
    return compare_snapshots(old, new)


def restore_snapshot(
    root: PathLike,
    snapshot_id: int,
    force: bool = False,
    dry_run: bool = False,
    disk_space: Optional[DiskSpaceProvider] = None,
) -> RestoreReport:
    """Restore root to a recorded snapshot.

    Args:
        root: Versioned directory
        snapshot_id: Target snapshot
        force: Proceed despite uncommitted changes, after taking a backup snapshot
        dry_run: Report what would change without touching the filesystem
        disk_space: Free space provider (defaults to shutil.disk_usage)

    Returns:
        RestoreReport; ``backup_snapshot_id`` is set when a backup was taken
    """
    ctx, config, repository, store = _open(root)
    engine = RestoreEngine(
        ctx,
        repository,
        store,
        disk_space or ShutilDiskSpaceProvider(),
        take_snapshot=lambda: _record_snapshot(ctx, config, repository, store),
        recursive=config.recursive,
    )
    repository.require_initialized()
    with repository_lock(ctx, config.lock_timeout):
        return engine.restore(snapshot_id, force=force, dry_run=dry_run)


def list_snapshots(root: PathLike, detailed: bool = False) -> List[SnapshotListInfo]:
    """List recorded snapshots in history order."""
    _, _, repository, _ = _open(root)
    metadata = repository.load()
    return [
        SnapshotListInfo(
            id=s.id,
            timestamp=s.timestamp,
            changes=s.changes,
            total_size=s.total_size if detailed else 0,
        )
        for s in metadata.snapshots
    ]


def get_status(root: PathLike, disk_space: Optional[DiskSpaceProvider] = None) -> StatusInfo:
    """Compare the working directory with the latest snapshot."""
    ctx, config, repository, _ = _open(root)
    metadata = repository.load()
    latest = metadata.latest

    status = StatusInfo(
        latest_snapshot_id=latest.id if latest else None,
        available_space=(disk_space or ShutilDiskSpaceProvider()).available_bytes(ctx.root),
    )
    if latest is None:
        return status

    current = WorkingTree.scan(ctx.root, config.recursive).files
    recorded = create_file_map(latest.file_states)
    status.modified_files = [m.path for m in find_modified_files(recorded, current)]
    status.new_files = find_new_files(current, recorded)
    status.deleted_files = find_deleted_files(recorded, current)
    status.has_uncommitted_changes = bool(
        status.modified_files or status.new_files or status.deleted_files
    )
    return status


def delete_snapshot(root: PathLike, snapshot_id: int, cleanup: bool = False) -> CleanupResult:
    """Delete a snapshot; with ``cleanup`` also remove blobs it alone referenced."""
    ctx, config, repository, store = _open(root)
    repository.require_initialized()
    with repository_lock(ctx, config.lock_timeout):
        metadata = repository.load()
        repository.remove(metadata, snapshot_id)
        if not cleanup:
            return CleanupResult()
        return store.cleanup(store.find_orphaned(metadata))


def cleanup_content(root: PathLike) -> CleanupResult:
    """Remove every blob no snapshot references."""
    ctx, config, repository, store = _open(root)
    repository.require_initialized()
    with repository_lock(ctx, config.lock_timeout):
        metadata = repository.load()
        return store.cleanup(store.find_orphaned(metadata))


def verify_content(root: PathLike) -> Dict[str, bool]:
    """Verify every blob referenced by history.

    Returns:
        Mapping of hash -> True if the blob is present and intact
    """
    _, _, repository, store = _open(root)
    metadata = repository.load()
    return {digest: store.verify(digest) for digest in sorted(metadata.referenced_hashes())}


def find_orphaned_content(root: PathLike) -> List[str]:
    """Blobs present in storage but unreferenced, sorted."""
    _, _, repository, store = _open(root)
    return sorted(store.find_orphaned(repository.load()))


__all__ = [
    "cleanup_content",
    "delete_snapshot",
    "diff_snapshots",
    "find_orphaned_content",
    "get_status",
    "initialize",
    "list_snapshots",
    "restore_snapshot",
    "take_snapshot",
    "verify_content",
]
