"""Hashing utilities for content addressing.

Digests are plain lowercase SHA-256 hex (no ``sha256:`` scheme prefix) so blob
names stay compatible with existing ``.timemachine/contents`` directories.
"""

from pathlib import Path
from typing import BinaryIO
import hashlib

from .errors import NotFoundError, TimeMachineIOError

CHUNK_SIZE = 8192


def hash_stream(stream: BinaryIO) -> str:
    """Compute SHA256 hex digest of a binary stream, reading in chunks."""
    sha256 = hashlib.sha256()
    for chunk in iter(lambda: stream.read(CHUNK_SIZE), b""):
        sha256.update(chunk)
    return sha256.hexdigest()


def compute_file_digest(path: Path) -> str:
    """Compute SHA256 hash of file contents.

    Simple byte-for-byte hashing - any change invalidates the digest.

    Args:
        path: Path to file to hash

    Returns:
        64-character lowercase hex digest

    Raises:
        NotFoundError: If the file cannot be opened
        TimeMachineIOError: If reading fails part way
    """
    path = Path(path)
    try:
        f = path.open("rb")
    except OSError as e:
        raise NotFoundError(
            f"Failed to open file for hashing: {path}: {e}", path=str(path)
        ) from e

    with f:
        try:
            return hash_stream(f)
        except OSError as e:
            raise TimeMachineIOError(
                f"Failed to read file for hashing: {path}: {e}", path=str(path)
            ) from e


__all__ = [
    "compute_file_digest",
    "hash_stream",
]
