"""Working directory scan with digest computation."""

import os
from pathlib import Path
from typing import Dict, Iterator, List

from pydantic import BaseModel, Field

from .constants import TIMEMACHINE_DIR, WORKING_TEMP_PREFIX
from .core import FileState
from .errors import NotFoundError, TimeMachineIOError
from .hashing import compute_file_digest


def _is_tracked(path: Path) -> bool:
    """Regular, non-symlink files that are not timemachine scratch files."""
    if path.name.startswith(WORKING_TEMP_PREFIX) or path.is_symlink():
        return False
    return path.is_file()


def _iter_files(root: Path, recursive: bool) -> Iterator[Path]:
    """Yield regular files under root, skipping the metadata directory.

    Non-recursive mode looks only at the direct entries of root;
    subdirectories are skipped, not traversed. Symlinks are never followed
    or recorded.
    """
    if not recursive:
        for entry in root.iterdir():
            if entry.name != TIMEMACHINE_DIR and _is_tracked(entry):
                yield entry
        return

    for dirpath, dirnames, filenames in os.walk(root):
        d = Path(dirpath)
        if d == root and TIMEMACHINE_DIR in dirnames:
            dirnames.remove(TIMEMACHINE_DIR)
        for name in filenames:
            path = d / name
            if _is_tracked(path):
                yield path


class WorkingTree(BaseModel):
    """
    Current state of every file in a versioned directory.

    This is the expensive operation - computes SHA256 for all files.
    """

    files: Dict[str, FileState] = Field(default_factory=dict)

    @classmethod
    def scan(cls, root: Path, recursive: bool = False) -> "WorkingTree":
        """Scan the directory and return its current state.

        Raises:
            NotFoundError: If root does not exist or a file vanishes mid-scan
            TimeMachineIOError: On any other OS-level failure
        """
        root = Path(root)
        if not root.is_dir():
            raise NotFoundError(f"Directory not found: {root}", path=str(root))

        files = {}
        try:
            for path in _iter_files(root, recursive):
                stat = path.stat()
                rel = path.relative_to(root).as_posix()
                files[rel] = FileState(
                    path=rel,
                    size=stat.st_size,
                    last_modified=str(int(stat.st_mtime)),
                    hash=compute_file_digest(path),
                )
        except FileNotFoundError as e:
            raise NotFoundError(f"File disappeared during scan: {e.filename}", path=e.filename) from e
        except OSError as e:
            raise TimeMachineIOError(f"Failed to scan {root}: {e}", path=str(root)) from e
        return cls(files=files)

    @property
    def file_states(self) -> List[FileState]:
        """File states ordered by path."""
        return [self.files[p] for p in sorted(self.files)]

    @property
    def total_size(self) -> int:
        return sum(f.size for f in self.files.values())


def collect_file_states(root: Path, recursive: bool = False) -> List[FileState]:
    """Scan root and return its file states ordered by path."""
    return WorkingTree.scan(root, recursive).file_states
