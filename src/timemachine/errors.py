"""Custom exceptions for timemachine.

This module defines typed exceptions for better error handling and clearer
error messages throughout the application. Each error carries structured
context (ids, paths, byte counts) so callers can branch on it without
parsing messages.
"""

from typing import Iterable, List, Optional


class TimeMachineError(RuntimeError):
    """Base class for all timemachine errors."""
    pass


class NotFoundError(TimeMachineError):
    """Missing file, snapshot id, blob or repository."""

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        snapshot_id: Optional[int] = None,
        available_ids: Optional[Iterable[int]] = None,
        hash: Optional[str] = None,
    ):
        self.path = path
        self.snapshot_id = snapshot_id
        self.available_ids: List[int] = list(available_ids) if available_ids is not None else []
        self.hash = hash
        super().__init__(message)

    @classmethod
    def snapshot(cls, snapshot_id: int, available_ids: Iterable[int]) -> "NotFoundError":
        """Build the error for an unknown snapshot id."""
        ids = list(available_ids)
        listing = ", ".join(str(i) for i in ids) if ids else "none"
        return cls(
            f"Snapshot {snapshot_id} does not exist. Available snapshots: {listing}",
            snapshot_id=snapshot_id,
            available_ids=ids,
        )


class InvalidDataError(TimeMachineError):
    """Persisted metadata could not be parsed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse metadata at {path}: {reason}")


class PermissionDeniedError(TimeMachineError):
    """Target directory is not writable."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Insufficient permissions to modify {path}")


class InsufficientSpaceError(TimeMachineError):
    """Not enough free space to materialize a snapshot."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient disk space for restoration: "
            f"need {required} bytes, {available} available"
        )


class UncommittedChangesError(TimeMachineError):
    """Working directory differs from the latest snapshot."""

    def __init__(
        self,
        new_files: Optional[List[str]] = None,
        modified_files: Optional[List[str]] = None,
        deleted_files: Optional[List[str]] = None,
    ):
        self.new_files = new_files or []
        self.modified_files = modified_files or []
        self.deleted_files = deleted_files or []
        super().__init__(
            "Uncommitted changes detected. Take another snapshot before restoring, "
            "or use --force to override (a backup snapshot of the current state "
            "is created automatically)."
        )


class TimeMachineIOError(TimeMachineError):
    """Any other OS-level failure."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        super().__init__(message)


class LockTimeoutError(TimeMachineError):
    """Repository lock held by another process."""

    def __init__(self, path: str, timeout: float):
        self.path = path
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout}s waiting for repository lock {path}. "
            f"Another timemachine process may be running."
        )


class ConfigError(TimeMachineError):
    """Invalid configuration file or environment override."""
    pass
