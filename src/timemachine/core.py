"""Core data models for timemachine.

Persisted models (FileState, Snapshot, SnapshotMetadata) serialize to the
fixed ``metadata.json`` layout:

    {"snapshots": [{"id": 1, "timestamp": "...", "changes": 1,
                    "file_states": [{"path": ..., "size": ..., "last_modified": ..., "hash": ...}]}]}

Everything else in this module is a transient result handed back to callers.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .constants import SHA256_HEX_PATTERN
from .utils import humanize_size


# ============= Persisted History =============

class FileState(BaseModel):
    """Recorded state of a single file. Identity key is ``path``."""

    path: str  # root-relative, POSIX separators
    size: int
    last_modified: str  # epoch seconds as text
    hash: str = Field(pattern=SHA256_HEX_PATTERN)  # sha256 hex of uncompressed bytes


class Snapshot(BaseModel):
    """Immutable record of all tracked files at a point in time."""

    id: int
    timestamp: str  # ISO-8601
    changes: int  # len(file_states) at creation, never recomputed
    file_states: List[FileState] = Field(default_factory=list)

    @property
    def total_size(self) -> int:
        """Sum of recorded file sizes in bytes."""
        return sum(f.size for f in self.file_states)

    @property
    def hashes(self) -> set:
        return {f.hash for f in self.file_states}


class SnapshotMetadata(BaseModel):
    """Ordered snapshot history (stored in .timemachine/metadata.json)."""

    snapshots: List[Snapshot] = Field(default_factory=list)

    @property
    def ids(self) -> List[int]:
        return [s.id for s in self.snapshots]

    @property
    def latest(self) -> Optional[Snapshot]:
        return self.snapshots[-1] if self.snapshots else None

    def next_id(self) -> int:
        """Next sequential id. Ids of deleted snapshots are never reused."""
        return max(self.ids, default=0) + 1

    def referenced_hashes(self) -> set:
        """All content hashes referenced by any retained snapshot."""
        used = set()
        for snapshot in self.snapshots:
            used |= snapshot.hashes
        return used


# ============= Change Detection =============

class ModifiedFileDetail(BaseModel):
    """Before/after details for a file present in both sides of a diff."""

    path: str
    old_size: int
    new_size: int
    old_hash: str
    new_hash: str
    old_last_modified: str
    new_last_modified: str


class SnapshotComparison(BaseModel):
    """Result of diffing one snapshot against another."""

    new_files: List[str] = Field(default_factory=list)
    modified_files: List[ModifiedFileDetail] = Field(default_factory=list)
    deleted_files: List[str] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.new_files or self.modified_files or self.deleted_files)


class RestoreReport(BaseModel):
    """Changes needed to move the working directory to a target snapshot.

    Direction is current -> target: ``added`` files exist only in the target,
    ``deleted`` files exist only in the working directory.
    """

    snapshot_id: Optional[int] = None
    added: List[str] = Field(default_factory=list)
    modified: List[str] = Field(default_factory=list)
    deleted: List[str] = Field(default_factory=list)
    unchanged: List[str] = Field(default_factory=list)
    backup_snapshot_id: Optional[int] = None  # set when a forced restore took a backup
    dry_run: bool = False

    @property
    def is_empty(self) -> bool:
        """True if the working directory already matches the target."""
        return not (self.added or self.modified or self.deleted)

    def summary(self) -> str:
        """Get human-readable summary."""
        if self.is_empty:
            return "No changes"
        parts = []
        if self.added:
            parts.append(f"{len(self.added)} to restore")
        if self.modified:
            parts.append(f"{len(self.modified)} to revert")
        if self.deleted:
            parts.append(f"{len(self.deleted)} to delete")
        parts.append(f"{len(self.unchanged)} unchanged")
        return ", ".join(parts)


# ============= Listing & Status =============

class SnapshotListInfo(BaseModel):
    """One row of ``list`` output."""

    id: int
    timestamp: str
    changes: int
    total_size: int = 0  # only computed for detailed listings


class StatusInfo(BaseModel):
    """Working directory state relative to the latest snapshot."""

    has_uncommitted_changes: bool = False
    modified_files: List[str] = Field(default_factory=list)
    new_files: List[str] = Field(default_factory=list)
    deleted_files: List[str] = Field(default_factory=list)
    available_space: int = 0
    latest_snapshot_id: Optional[int] = None


class CleanupResult(BaseModel):
    """Blobs removed by a cleanup pass."""

    removed: List[str] = Field(default_factory=list)
    bytes_reclaimed: int = 0

    def summary(self) -> str:
        """Get human-readable summary."""
        if not self.removed:
            return "Nothing to clean up"
        return f"Removed {len(self.removed)} blobs ({humanize_size(self.bytes_reclaimed)})"
