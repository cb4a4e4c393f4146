"""Restore pipeline: bring a directory back to a recorded snapshot.

Stages run in order and the first failure ends the restore:

1. permission check       - PermissionDeniedError
2. load target snapshot   - NotFoundError (with available ids)
3. disk space check       - InsufficientSpaceError
4. uncommitted changes    - UncommittedChangesError, or a backup snapshot with force
5. build report           - RestoreReport (current -> target)
6. dry run                - return the report untouched
7. apply                  - restore added/modified blobs, then delete removed files

Apply is not transactional. A blob retrieval failure stops the loop and
propagates; files already written stay written. The report returned before
apply describes the intended change set, not necessarily a completed one.
"""

import logging
import shutil
import uuid
from pathlib import Path
from typing import Callable, Optional, Protocol, Tuple

from .constants import WORKING_TEMP_PREFIX
from .content import ContentStore
from .context import RepositoryContext
from .core import RestoreReport, Snapshot, SnapshotMetadata
from .diffing import (
    create_file_map,
    find_deleted_files,
    find_modified_files,
    find_new_files,
    generate_restore_report,
)
from .errors import (
    InsufficientSpaceError,
    PermissionDeniedError,
    TimeMachineIOError,
    UncommittedChangesError,
)
from .repository import SnapshotRepository
from .snapshot import WorkingTree

logger = logging.getLogger(__name__)


class DiskSpaceProvider(Protocol):
    """Reports free bytes on the filesystem hosting a path."""

    def available_bytes(self, path: Path) -> int:
        ...


class ShutilDiskSpaceProvider:
    """DiskSpaceProvider backed by shutil.disk_usage."""

    def available_bytes(self, path: Path) -> int:
        return shutil.disk_usage(Path(path).resolve()).free


class RestoreEngine:
    """Drives a single restore invocation against one repository.

    Args:
        ctx: Repository context
        repository: Snapshot history
        store: Blob store materializing file contents
        disk_space: Free space provider for the space check
        take_snapshot: Callable recording the current directory state as a new
            snapshot; used for the backup taken by a forced restore
        recursive: Whether directory scans descend into subdirectories
    """

    def __init__(
        self,
        ctx: RepositoryContext,
        repository: SnapshotRepository,
        store: ContentStore,
        disk_space: DiskSpaceProvider,
        take_snapshot: Callable[[], Snapshot],
        recursive: bool = False,
    ):
        self.ctx = ctx
        self.repository = repository
        self.store = store
        self.disk_space = disk_space
        self.take_snapshot = take_snapshot
        self.recursive = recursive

    def restore(self, snapshot_id: int, force: bool = False, dry_run: bool = False) -> RestoreReport:
        """Run the full pipeline and return the restore report."""
        self.check_permissions()
        metadata, target = self.load_target(snapshot_id)
        self.check_space(target)
        backup_id = self.check_changes(metadata, force)

        report = self.build_report(target)
        report.backup_snapshot_id = backup_id

        if dry_run:
            report.dry_run = True
            return report

        self.apply(target, report)
        return report

    # ---- stages ---------------------------------------------------------------

    def check_permissions(self) -> None:
        """Write and delete a throwaway file in the root."""
        marker = self.ctx.root / f"{WORKING_TEMP_PREFIX}{uuid.uuid4().hex}"
        try:
            marker.write_bytes(b"")
            marker.unlink()
        except OSError as e:
            raise PermissionDeniedError(str(self.ctx.root)) from e

    def load_target(self, snapshot_id: int) -> Tuple[SnapshotMetadata, Snapshot]:
        """Load history and the requested snapshot (NotFoundError lists valid ids)."""
        metadata = self.repository.load()
        return metadata, self.repository.require(metadata, snapshot_id)

    def check_space(self, snapshot: Snapshot) -> None:
        """Fail if the snapshot's total size exceeds free space."""
        required = snapshot.total_size
        try:
            available = self.disk_space.available_bytes(self.ctx.root)
        except OSError as e:
            raise TimeMachineIOError(
                f"Failed to query free space for {self.ctx.root}: {e}", path=str(self.ctx.root)
            ) from e
        if available < required:
            raise InsufficientSpaceError(required, available)

    def check_changes(self, metadata: SnapshotMetadata, force: bool) -> Optional[int]:
        """Compare the working tree with the latest snapshot.

        Returns:
            Id of the backup snapshot taken under ``force``, else None
        """
        current = WorkingTree.scan(self.ctx.root, self.recursive).files
        latest = metadata.latest
        recorded = create_file_map(latest.file_states) if latest else {}

        new_files = find_new_files(current, recorded)
        modified = [m.path for m in find_modified_files(recorded, current)]
        deleted = find_deleted_files(recorded, current)
        if not (new_files or modified or deleted):
            return None

        if not force:
            raise UncommittedChangesError(new_files, modified, deleted)

        backup = self.take_snapshot()
        logger.warning(
            "Uncommitted changes backed up as snapshot %d before forced restore", backup.id
        )
        return backup.id

    def build_report(self, target: Snapshot) -> RestoreReport:
        current = WorkingTree.scan(self.ctx.root, self.recursive).files
        report = generate_restore_report(current, create_file_map(target.file_states))
        report.snapshot_id = target.id
        return report

    def apply(self, target: Snapshot, report: RestoreReport) -> None:
        """Materialize added/modified files, then remove deleted ones."""
        to_restore = set(report.added) | set(report.modified)
        for file_state in target.file_states:
            if file_state.path in to_restore:
                self.store.retrieve(file_state.hash, self.ctx.absolute(file_state.path))

        # Deletions after restorations so no needed parent directory is lost
        for path in report.deleted:
            file_path = self.ctx.absolute(path)
            try:
                file_path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise TimeMachineIOError(f"Failed to delete {file_path}: {e}", path=str(file_path)) from e
            logger.debug("Deleted %s", file_path)
