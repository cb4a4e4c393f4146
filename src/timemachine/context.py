"""Repository context for managing the .timemachine path layout."""

from pathlib import Path
from typing import Optional, Union

from .constants import (
    CONFIG_FILE,
    CONTENTS_DIR,
    LOCK_FILE,
    METADATA_FILE,
    TIMEMACHINE_DIR,
)


class RepositoryContext:
    """Resolves the paths of one versioned directory.

    Unlike a VCS working copy the root is never discovered by walking up the
    tree: every operation names the directory it works on.
    """

    def __init__(self, root: Optional[Union[str, Path]] = None):
        self.root = Path(root) if root is not None else Path.cwd()

    @classmethod
    def is_initialized(cls, path: Optional[Union[str, Path]] = None) -> bool:
        """Check if a directory has repository metadata."""
        return cls(path).metadata_path.exists()

    @property
    def storage_dir(self) -> Path:
        """Get the repository storage directory."""
        return self.root / TIMEMACHINE_DIR

    @property
    def metadata_path(self) -> Path:
        """Get path to snapshot metadata."""
        return self.storage_dir / METADATA_FILE

    @property
    def contents_dir(self) -> Path:
        """Get path to the blob store."""
        return self.storage_dir / CONTENTS_DIR

    @property
    def config_path(self) -> Path:
        return self.storage_dir / CONFIG_FILE

    @property
    def lock_path(self) -> Path:
        return self.storage_dir / LOCK_FILE

    def absolute(self, rel_path: Union[str, Path]) -> Path:
        """Get absolute path from root-relative path."""
        return self.root / rel_path

    def __repr__(self) -> str:
        return f"RepositoryContext(root={str(self.root)!r})"
