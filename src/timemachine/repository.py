"""Snapshot history persistence.

History lives in a single JSON document, ``.timemachine/metadata.json``.
Every mutation rewrites the whole file (read, mutate, write): cost is
O(total history) per operation. Writes go through a temp file and an atomic
rename, so a crash mid-write leaves the previous history intact.

Callers mutating history must hold the repository lock
(:func:`timemachine.locking.repository_lock`); this module does not lock.
"""

import json
import logging
from typing import List, Optional

from pydantic import ValidationError

from .context import RepositoryContext
from .core import FileState, Snapshot, SnapshotMetadata
from .errors import InvalidDataError, NotFoundError, TimeMachineIOError
from .utils import atomic_write_text, get_iso_timestamp

logger = logging.getLogger(__name__)


class SnapshotRepository:
    """Loads and persists the ordered snapshot history of one directory."""

    def __init__(self, ctx: RepositoryContext):
        self.ctx = ctx

    def is_initialized(self) -> bool:
        return self.ctx.metadata_path.exists()

    def require_initialized(self) -> None:
        """Raise NotFoundError unless metadata.json exists."""
        if not self.is_initialized():
            raise self._not_initialized()

    def _not_initialized(self) -> NotFoundError:
        return NotFoundError(
            f"Directory '{self.ctx.root}' is not initialized for snapshots",
            path=str(self.ctx.metadata_path),
        )

    def initialize(self) -> bool:
        """Create ``.timemachine`` with an empty history if absent.

        Returns:
            True if a new repository was created
        """
        try:
            self.ctx.contents_dir.mkdir(parents=True, exist_ok=True)
            if self.ctx.metadata_path.exists():
                return False
            # Compact form, identical to what existing repositories contain
            atomic_write_text(
                self.ctx.metadata_path,
                json.dumps({"snapshots": []}, separators=(",", ":")),
            )
        except OSError as e:
            raise TimeMachineIOError(
                f"Failed to initialize {self.ctx.storage_dir}: {e}",
                path=str(self.ctx.storage_dir),
            ) from e
        logger.debug("Initialized repository at %s", self.ctx.root)
        return True

    def load(self) -> SnapshotMetadata:
        """Load snapshot history.

        Raises:
            NotFoundError: If the repository was never initialized
            InvalidDataError: If metadata.json cannot be parsed
        """
        path = self.ctx.metadata_path
        try:
            raw = path.read_bytes()
        except FileNotFoundError as e:
            raise self._not_initialized() from e
        except OSError as e:
            raise TimeMachineIOError(f"Failed to read {path}: {e}", path=str(path)) from e

        try:
            return SnapshotMetadata.model_validate_json(raw)
        except ValidationError as e:
            raise InvalidDataError(str(path), str(e)) from e

    def save(self, metadata: SnapshotMetadata) -> None:
        """Rewrite metadata.json atomically."""
        path = self.ctx.metadata_path
        try:
            atomic_write_text(path, json.dumps(metadata.model_dump(), indent=2))
        except OSError as e:
            raise TimeMachineIOError(f"Failed to write {path}: {e}", path=str(path)) from e

    def append(self, metadata: SnapshotMetadata, file_states: List[FileState]) -> Snapshot:
        """Build the next snapshot from file_states, append it and persist."""
        snapshot = Snapshot(
            id=metadata.next_id(),
            timestamp=get_iso_timestamp(),
            changes=len(file_states),
            file_states=list(file_states),
        )
        metadata.snapshots.append(snapshot)
        self.save(metadata)
        logger.debug("Recorded snapshot %d with %d files", snapshot.id, snapshot.changes)
        return snapshot

    def remove(self, metadata: SnapshotMetadata, snapshot_id: int) -> Snapshot:
        """Remove a snapshot by id and persist.

        Raises:
            NotFoundError: If no snapshot has that id
        """
        snapshot = self.require(metadata, snapshot_id)
        metadata.snapshots.remove(snapshot)
        self.save(metadata)
        logger.debug("Deleted snapshot %d", snapshot_id)
        return snapshot

    @staticmethod
    def find(metadata: SnapshotMetadata, snapshot_id: int) -> Optional[Snapshot]:
        return next((s for s in metadata.snapshots if s.id == snapshot_id), None)

    @classmethod
    def require(cls, metadata: SnapshotMetadata, snapshot_id: int) -> Snapshot:
        """Find a snapshot or raise NotFoundError listing the valid ids."""
        snapshot = cls.find(metadata, snapshot_id)
        if snapshot is None:
            raise NotFoundError.snapshot(snapshot_id, metadata.ids)
        return snapshot
