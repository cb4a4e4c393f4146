"""Content-addressed blob storage (CAS) for snapshot file contents.

Every unique file body is stored once, zstd-compressed, under its SHA256 hex
digest:

    <root>/.timemachine/contents/<sha256 hex>

Key Features:
- Digest computed over raw (uncompressed) bytes, so the compression level never
  changes a blob's name
- Blobs are created-if-absent and never overwritten
- Writes go to a temp file in the same directory and are promoted with
  os.replace, so a crash never leaves a truncated blob under a valid name
- Digest validation before any path is built (path traversal protection)
- Orphan detection and garbage collection against snapshot metadata
"""

import contextlib
import logging
import os
import re
import tempfile
import uuid
from pathlib import Path
from typing import Iterable, Set, Union

import zstandard

from .constants import (
    AUTO_CLEANUP_THRESHOLD_BYTES,
    DEFAULT_COMPRESSION_LEVEL,
    SHA256_HEX_PATTERN,
    WORKING_TEMP_PREFIX,
)
from .core import CleanupResult, SnapshotMetadata
from .errors import NotFoundError, TimeMachineIOError
from .hashing import compute_file_digest, hash_stream
from .utils import fsync_dir

logger = logging.getLogger(__name__)

# ---- Safety validators ------------------------------------------------------

_HEX64 = re.compile(SHA256_HEX_PATTERN)


def _validate_sha256(digest: str) -> str:
    """Validate a SHA256 hex digest before using it as a file name.

    Raises:
        ValueError: If digest is not 64 lowercase hex characters
    """
    if not _HEX64.fullmatch(digest):
        raise ValueError(f"Invalid sha256 hex (must be 64 hex chars): {digest!r}")
    return digest


# ---- ContentStore -----------------------------------------------------------

class ContentStore:
    """Deduplicated, compressed storage of file contents keyed by digest.

    Attributes:
        base_path: Directory holding one blob file per digest
        compression_level: zstd level for newly written blobs
    """

    def __init__(
        self,
        base_path: Union[str, Path],
        compression_level: int = DEFAULT_COMPRESSION_LEVEL,
    ):
        self.base_path = Path(base_path)
        self.compression_level = compression_level

    def init(self) -> None:
        """Create the contents directory."""
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, digest: str) -> Path:
        """Get blob path for a digest (validated)."""
        return self.base_path / _validate_sha256(digest)

    def has(self, digest: str) -> bool:
        """Check if a blob exists for the digest."""
        try:
            return self.path_for(digest).is_file()
        except ValueError:
            return False

    def store(self, path: Path) -> str:
        """Store a file's contents, returning its digest.

        Idempotent: if a blob for the digest exists nothing is written.

        Raises:
            NotFoundError: If the source file cannot be opened
            TimeMachineIOError: On read/write failure
        """
        path = Path(path)
        digest = compute_file_digest(path)
        dst = self.path_for(digest)

        # Fast path: content already stored
        if dst.exists():
            logger.debug("Blob already present: %s", digest)
            return digest

        self.init()
        tmppath = None
        try:
            with path.open("rb") as src, tempfile.NamedTemporaryFile(
                prefix=".blob-",
                dir=str(self.base_path),
                delete=False,
            ) as tmp:
                tmppath = Path(tmp.name)
                cctx = zstandard.ZstdCompressor(
                    level=self.compression_level, write_checksum=True
                )
                cctx.copy_stream(src, tmp)
                tmp.flush()
                os.fsync(tmp.fileno())

            # Atomically promote into the store
            os.replace(str(tmppath), str(dst))
            fsync_dir(self.base_path)
        except OSError as e:
            if tmppath is not None:
                with contextlib.suppress(OSError):
                    tmppath.unlink()
            raise TimeMachineIOError(f"Failed to store {path}: {e}", path=str(path)) from e

        logger.debug("Stored blob %s for %s", digest, path)
        return digest

    def retrieve(self, digest: str, target_path: Path) -> None:
        """Decompress a blob to target_path, overwriting any existing file.

        Raises:
            NotFoundError: If no blob exists for the digest
            TimeMachineIOError: On read/write failure
        """
        src = self.path_for(digest)
        if not src.exists():
            raise NotFoundError(f"Content not found for hash: {digest}", hash=digest)

        target_path = Path(target_path)
        # Working-tree scans skip this prefix
        tmp = target_path.with_name(f"{WORKING_TEMP_PREFIX}{uuid.uuid4().hex}")
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            with src.open("rb") as s, tmp.open("xb") as d:
                zstandard.ZstdDecompressor().copy_stream(s, d)
                d.flush()
                os.fsync(d.fileno())
            os.replace(str(tmp), str(target_path))
        except (OSError, zstandard.ZstdError) as e:
            raise TimeMachineIOError(
                f"Failed to restore {target_path} from {digest}: {e}",
                path=str(target_path),
            ) from e
        finally:
            with contextlib.suppress(OSError):
                tmp.unlink()

        logger.debug("Restored %s <- %s", target_path, digest)

    def verify(self, digest: str) -> bool:
        """Decompress a blob and check it still hashes to its name.

        Returns False (never raises) for absent or corrupt blobs.
        """
        try:
            src = self.path_for(digest)
        except ValueError:
            return False
        if not src.exists():
            return False

        try:
            with src.open("rb") as fh:
                with zstandard.ZstdDecompressor().stream_reader(fh) as reader:
                    actual = hash_stream(reader)
        except zstandard.ZstdError as e:
            logger.debug("Blob %s failed to decompress: %s", digest, e)
            return False

        return actual == digest

    def stored_hashes(self) -> Set[str]:
        """Digests of all blobs currently on disk (temp files excluded)."""
        if not self.base_path.exists():
            return set()
        return {
            entry.name for entry in self.base_path.iterdir()
            if entry.is_file() and _HEX64.fullmatch(entry.name)
        }

    def find_orphaned(self, metadata: SnapshotMetadata) -> Set[str]:
        """Blobs on disk not referenced by any snapshot."""
        return self.stored_hashes() - metadata.referenced_hashes()

    def orphaned_size(self, digests: Iterable[str]) -> int:
        """On-disk (compressed) bytes used by the given blobs."""
        total = 0
        for digest in digests:
            with contextlib.suppress(OSError, ValueError):
                total += self.path_for(digest).stat().st_size
        return total

    def cleanup(self, to_remove: Iterable[str]) -> CleanupResult:
        """Delete exactly the given blobs. Absent digests are skipped."""
        result = CleanupResult()
        for digest in sorted(set(to_remove)):
            path = self.path_for(digest)
            try:
                size = path.stat().st_size
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise TimeMachineIOError(f"Failed to remove blob {digest}: {e}", path=str(path)) from e
            result.removed.append(digest)
            result.bytes_reclaimed += size

        if result.removed:
            logger.debug(
                "Cleaned up %d blobs (%d bytes)", len(result.removed), result.bytes_reclaimed
            )
        return result

    def auto_cleanup(
        self,
        metadata: SnapshotMetadata,
        threshold: int = AUTO_CLEANUP_THRESHOLD_BYTES,
    ) -> CleanupResult:
        """Sweep orphans only once they take more than ``threshold`` bytes."""
        orphaned = self.find_orphaned(metadata)
        if not orphaned:
            return CleanupResult()

        total_size = self.orphaned_size(orphaned)
        if total_size <= threshold:
            logger.debug(
                "Skipping auto cleanup: %d orphaned bytes under threshold", total_size
            )
            return CleanupResult()

        return self.cleanup(orphaned)
