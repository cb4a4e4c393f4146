"""Shared test fixtures and utilities."""

import os
from pathlib import Path
import pytest

from timemachine.content import ContentStore
from timemachine.context import RepositoryContext
from timemachine.ops import initialize


# Keep user environment from leaking into repository config
for _var in ("TIMEMACHINE_COMPRESSION_LEVEL", "TIMEMACHINE_RECURSIVE", "TIMEMACHINE_LOCK_TIMEOUT"):
    os.environ.pop(_var, None)


class FakeDiskSpace:
    """DiskSpaceProvider returning a fixed number of free bytes."""

    def __init__(self, available: int = 10 * 1024 ** 3):
        self.available = available
        self.calls = []

    def available_bytes(self, path: Path) -> int:
        self.calls.append(Path(path))
        return self.available


@pytest.fixture
def repo(tmp_path):
    """An initialized, empty versioned directory."""
    root = tmp_path / "project"
    root.mkdir()
    initialize(root)
    return root


@pytest.fixture
def ctx(repo):
    return RepositoryContext(repo)


@pytest.fixture
def store(tmp_path):
    """ContentStore in a scratch directory."""
    s = ContentStore(tmp_path / "contents")
    s.init()
    return s


@pytest.fixture
def disk_space():
    return FakeDiskSpace()


@pytest.fixture
def write_file(repo):
    """Factory fixture to write files relative to the repository root."""
    def _write(path: str, content="test content"):
        file_path = repo / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content)
        return file_path
    return _write


@pytest.fixture
def make_disk_space():
    """Factory for DiskSpaceProviders with a chosen amount of free space."""
    return FakeDiskSpace
