"""Integration tests for CLI commands that verify real workflows."""

import json

import pytest
from typer.testing import CliRunner

from timemachine.cli import app


# ========== Fixtures ==========

@pytest.fixture
def runner():
    """Create a CliRunner for in-process testing."""
    return CliRunner()


@pytest.fixture
def project(tmp_path):
    """Uninitialized directory with one file."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.txt").write_text("hello")
    return root


@pytest.fixture
def snapshotted(runner, project):
    """Project with snapshots 1 (a="hello") and 2 (a="hello!", b added)."""
    assert runner.invoke(app, ["snapshot", str(project)]).exit_code == 0
    (project / "a.txt").write_text("hello!")
    (project / "b.txt").write_text("bee")
    assert runner.invoke(app, ["snapshot", str(project)]).exit_code == 0
    return project


# ========== Commands ==========

class TestInitAndSnapshot:

    def test_init(self, runner, project):
        result = runner.invoke(app, ["init", str(project)])

        assert result.exit_code == 0
        assert "Initialized timemachine" in result.output
        assert (project / ".timemachine" / "metadata.json").exists()

    def test_init_twice(self, runner, project):
        runner.invoke(app, ["init", str(project)])
        result = runner.invoke(app, ["init", str(project)])

        assert result.exit_code == 0
        assert "Already initialized" in result.output

    def test_snapshot(self, runner, project):
        result = runner.invoke(app, ["snapshot", str(project)])

        assert result.exit_code == 0
        assert "Snapshot 1 taken" in result.output

    def test_snapshot_missing_directory(self, runner, tmp_path):
        result = runner.invoke(app, ["snapshot", str(tmp_path / "missing")])

        assert result.exit_code == 1
        assert "not found" in result.output


class TestInspect:

    def test_list(self, runner, snapshotted):
        result = runner.invoke(app, ["list", str(snapshotted), "--detailed"])

        assert result.exit_code == 0
        assert "Snapshots (2)" in result.output
        assert "Size" in result.output

    def test_list_uninitialized(self, runner, project):
        result = runner.invoke(app, ["list", str(project)])

        assert result.exit_code == 1
        assert "not initialized" in result.output

    def test_diff(self, runner, snapshotted):
        result = runner.invoke(app, ["diff", "1", "2", "--dir", str(snapshotted)])

        assert result.exit_code == 0
        assert "New files:" in result.output
        assert "b.txt" in result.output
        assert "Modified files:" in result.output

    def test_diff_unknown_snapshot(self, runner, snapshotted):
        result = runner.invoke(app, ["diff", "1", "9", "-d", str(snapshotted)])

        assert result.exit_code == 1
        assert "does not exist" in result.output
        assert "timemachine list" in result.output

    def test_status_clean(self, runner, snapshotted):
        result = runner.invoke(app, ["status", str(snapshotted)])

        assert result.exit_code == 0
        assert "Latest snapshot:" in result.output
        assert "matches the latest snapshot" in result.output

    def test_status_dirty(self, runner, snapshotted):
        (snapshotted / "c.txt").write_text("new")

        result = runner.invoke(app, ["status", str(snapshotted)])

        assert result.exit_code == 0
        assert "New:" in result.output
        assert "c.txt" in result.output


class TestRestore:

    def test_dry_run(self, runner, snapshotted):
        result = runner.invoke(app, ["restore", "1", "--dir", str(snapshotted), "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert (snapshotted / "a.txt").read_text() == "hello!"

    def test_restore(self, runner, snapshotted):
        result = runner.invoke(app, ["restore", "1", "--dir", str(snapshotted)])

        assert result.exit_code == 0
        assert "Restored snapshot 1" in result.output
        assert (snapshotted / "a.txt").read_text() == "hello"
        assert not (snapshotted / "b.txt").exists()

    def test_uncommitted_changes_refused(self, runner, snapshotted):
        (snapshotted / "a.txt").write_text("edited")

        result = runner.invoke(app, ["restore", "1", "--dir", str(snapshotted)])

        assert result.exit_code == 1
        assert "Uncommitted changes" in result.output
        assert "a.txt" in result.output
        assert (snapshotted / "a.txt").read_text() == "edited"

    def test_force_reports_backup(self, runner, snapshotted):
        (snapshotted / "a.txt").write_text("edited")

        result = runner.invoke(app, ["restore", "1", "--dir", str(snapshotted), "--force"])

        assert result.exit_code == 0
        assert "snapshot 3" in result.output
        assert (snapshotted / "a.txt").read_text() == "hello"

    def test_tampered_metadata_reported_cleanly(self, runner, snapshotted):
        metadata = snapshotted / ".timemachine" / "metadata.json"
        data = json.loads(metadata.read_text())
        data["snapshots"][0]["file_states"][0]["hash"] = "../../etc/passwd"
        metadata.write_text(json.dumps(data))
        before = metadata.read_text()
        (snapshotted / "a.txt").write_text("edited")

        result = runner.invoke(app, ["restore", "1", "--dir", str(snapshotted), "--force"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert metadata.read_text() == before


class TestMaintenance:

    def test_delete(self, runner, snapshotted):
        result = runner.invoke(app, ["delete", "1", "--dir", str(snapshotted), "--cleanup"])

        assert result.exit_code == 0
        assert "Deleted snapshot 1" in result.output
        assert "Removed 1 blobs" in result.output

    def test_delete_unknown(self, runner, snapshotted):
        result = runner.invoke(app, ["delete", "5", "--dir", str(snapshotted)])

        assert result.exit_code == 1
        assert "Available snapshots: 1, 2" in result.output

    def test_cleanup_nothing(self, runner, snapshotted):
        result = runner.invoke(app, ["cleanup", str(snapshotted)])

        assert result.exit_code == 0
        assert "Nothing to clean up" in result.output

    def test_verify(self, runner, snapshotted):
        result = runner.invoke(app, ["verify", str(snapshotted)])

        assert result.exit_code == 0
        assert "All 3 blobs verified" in result.output

    def test_verify_corrupt(self, runner, snapshotted):
        contents = snapshotted / ".timemachine" / "contents"
        blob = sorted(contents.iterdir())[0]
        blob.write_bytes(b"corrupt")

        result = runner.invoke(app, ["verify", str(snapshotted)])

        assert result.exit_code == 1
        assert "missing or corrupt" in result.output
        assert blob.name in result.output


def test_verbose_flag(runner, project):
    result = runner.invoke(app, ["--verbose", "init", str(project)])

    assert result.exit_code == 0


def test_version(runner):
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "timemachine 0.1.1" in result.output
