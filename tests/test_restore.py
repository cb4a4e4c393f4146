"""Tests for the restore pipeline stages and their ordering."""

import hashlib
import json
import os
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from timemachine.content import ContentStore
from timemachine.errors import (
    InsufficientSpaceError,
    InvalidDataError,
    NotFoundError,
    PermissionDeniedError,
    UncommittedChangesError,
)
from timemachine.ops import take_snapshot
from timemachine.repository import SnapshotRepository
from timemachine.restore import RestoreEngine, ShutilDiskSpaceProvider


def _engine(ctx, disk_space, take=None):
    return RestoreEngine(
        ctx,
        SnapshotRepository(ctx),
        ContentStore(ctx.contents_dir),
        disk_space,
        take_snapshot=take or Mock(side_effect=AssertionError("unexpected backup")),
    )


@pytest.fixture
def two_snapshots(repo, write_file):
    """Snapshot 1: a.txt="hello". Snapshot 2: a.txt="hello!", b.txt added."""
    write_file("a.txt", "hello")
    take_snapshot(repo)
    write_file("a.txt", "hello!")
    write_file("b.txt", "bee")
    take_snapshot(repo)
    return repo


class TestStageOrdering:
    """Each stage fails before any later stage runs."""

    def test_permission_check_first(self, ctx, two_snapshots, disk_space):
        engine = _engine(ctx, disk_space)

        with patch.object(Path, "write_bytes", side_effect=PermissionError("read-only")):
            with pytest.raises(PermissionDeniedError) as exc_info:
                engine.restore(99)

        assert exc_info.value.path == str(ctx.root)
        assert disk_space.calls == []

    def test_permission_check_leaves_no_file(self, ctx, two_snapshots, disk_space):
        _engine(ctx, disk_space).check_permissions()

        assert not list(ctx.root.glob(".timemachine-tmp-*"))

    def test_unknown_snapshot_before_space_check(self, ctx, two_snapshots, disk_space):
        with pytest.raises(NotFoundError) as exc_info:
            _engine(ctx, disk_space).restore(99)

        assert exc_info.value.available_ids == [1, 2]
        assert disk_space.calls == []

    def test_space_check_before_change_check(self, ctx, two_snapshots, write_file, make_disk_space):
        write_file("uncommitted.txt", "x")
        disk_space = make_disk_space(available=0)

        with pytest.raises(InsufficientSpaceError) as exc_info:
            _engine(ctx, disk_space).restore(1)

        assert exc_info.value.required == 5
        assert exc_info.value.available == 0
        assert (ctx.root / "a.txt").read_text() == "hello!"

    def test_space_check_uses_total_size(self, ctx, two_snapshots, make_disk_space):
        # Snapshot 2 holds 6 + 3 bytes
        with pytest.raises(InsufficientSpaceError):
            _engine(ctx, make_disk_space(available=8)).restore(2)

        _engine(ctx, make_disk_space(available=9)).restore(2)


class TestUncommittedChanges:

    def test_clean_tree_takes_no_backup(self, ctx, two_snapshots, disk_space):
        take = Mock()

        report = _engine(ctx, disk_space, take).restore(1)

        take.assert_not_called()
        assert report.backup_snapshot_id is None

    @pytest.mark.parametrize("mutate,bucket", [
        (lambda root: (root / "c.txt").write_text("new"), "new_files"),
        (lambda root: (root / "a.txt").write_text("edited"), "modified_files"),
        (lambda root: (root / "b.txt").unlink(), "deleted_files"),
    ])
    def test_refuses_without_force(self, ctx, two_snapshots, disk_space, mutate, bucket):
        mutate(ctx.root)

        with pytest.raises(UncommittedChangesError) as exc_info:
            _engine(ctx, disk_space).restore(1)

        assert getattr(exc_info.value, bucket)

    def test_mtime_only_change_is_not_uncommitted(self, ctx, two_snapshots, disk_space):
        os.utime(ctx.root / "a.txt", (1, 1))

        report = _engine(ctx, disk_space).restore(1)

        assert report.modified == ["a.txt"]

    def test_force_takes_backup_first(self, ctx, two_snapshots, disk_space):
        (ctx.root / "a.txt").write_text("work in progress")
        backup = Mock(id=3)
        take = Mock(return_value=backup)

        report = _engine(ctx, disk_space, take).restore(1, force=True)

        take.assert_called_once_with()
        assert report.backup_snapshot_id == 3
        assert (ctx.root / "a.txt").read_text() == "hello"

    def test_force_logs_warning(self, ctx, two_snapshots, disk_space, caplog):
        (ctx.root / "a.txt").write_text("work in progress")

        with caplog.at_level("WARNING", logger="timemachine.restore"):
            _engine(ctx, disk_space, Mock(return_value=Mock(id=3))).restore(1, force=True)

        assert "snapshot 3" in caplog.text


class TestDryRun:

    def test_dry_run_touches_nothing(self, ctx, two_snapshots, disk_space):
        before = {p.name: p.read_bytes() for p in ctx.root.iterdir() if p.is_file()}

        report = _engine(ctx, disk_space).restore(1, dry_run=True)

        assert report.dry_run
        assert report.snapshot_id == 1
        assert report.modified == ["a.txt"]
        assert report.deleted == ["b.txt"]
        assert report.added == []
        after = {p.name: p.read_bytes() for p in ctx.root.iterdir() if p.is_file()}
        assert after == before

    def test_dry_run_still_refuses_uncommitted(self, ctx, two_snapshots, disk_space):
        (ctx.root / "a.txt").write_text("edited")

        with pytest.raises(UncommittedChangesError):
            _engine(ctx, disk_space).restore(1, dry_run=True)


class TestApply:

    def test_restores_modified_and_deletes_extra(self, ctx, two_snapshots, disk_space):
        report = _engine(ctx, disk_space).restore(1)

        assert not report.dry_run
        assert (ctx.root / "a.txt").read_text() == "hello"
        assert not (ctx.root / "b.txt").exists()

    def test_restores_deleted_file(self, ctx, repo, write_file, disk_space):
        write_file("a.txt", "hello")
        write_file("b.txt", "bee")
        take_snapshot(repo)
        (repo / "b.txt").unlink()
        take_snapshot(repo)

        report = _engine(ctx, disk_space).restore(1)

        assert report.added == ["b.txt"]
        assert report.unchanged == ["a.txt"]
        assert (repo / "b.txt").read_text() == "bee"

    def test_restore_to_current_is_empty(self, ctx, two_snapshots, disk_space):
        report = _engine(ctx, disk_space).restore(2)

        assert report.is_empty
        assert report.unchanged == ["a.txt", "b.txt"]

    def test_restore_then_back(self, ctx, two_snapshots, disk_space):
        _engine(ctx, disk_space).restore(1)
        # Tree now matches snapshot 1, which differs from latest (2)
        with pytest.raises(UncommittedChangesError):
            _engine(ctx, disk_space).restore(2)

    def test_missing_blob_propagates(self, ctx, two_snapshots, disk_space):
        digest = hashlib.sha256(b"hello").hexdigest()
        ContentStore(ctx.contents_dir).path_for(digest).unlink()

        with pytest.raises(NotFoundError) as exc_info:
            _engine(ctx, disk_space).restore(1)

        assert exc_info.value.hash == digest
        # Deletions run after retrievals and never started
        assert (ctx.root / "b.txt").exists()


def test_shutil_disk_space_provider(tmp_path):
    assert ShutilDiskSpaceProvider().available_bytes(tmp_path) > 0


def test_tampered_hash_fails_before_backup(ctx, repo, write_file, disk_space):
    write_file("a.txt", "hello")
    take_snapshot(repo)
    data = json.loads(ctx.metadata_path.read_text())
    data["snapshots"][0]["file_states"][0]["hash"] = "../../etc/passwd"
    ctx.metadata_path.write_text(json.dumps(data))
    write_file("a.txt", "uncommitted")
    take = Mock()

    with pytest.raises(InvalidDataError):
        _engine(ctx, disk_space, take).restore(1, force=True)

    take.assert_not_called()
    assert (repo / "a.txt").read_text() == "uncommitted"
