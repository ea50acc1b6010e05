"""Tests for the request-scoped staging directory."""

import pytest

from pygnss_archive.core.exceptions import TransferError
from pygnss_archive.data_access.locator import FileLocator
from pygnss_archive.data_access.staging import LocalStager


def _confirmed(remote, station="abcd", year=2024, days=(100, 101, 102)):
    for doy in days:
        remote.add_file(station, year, doy, content=f"{station}-{doy}".encode() * 100)
    return FileLocator(remote.root).locate(station, year, min(days), max(days), remote.open(None))


class TestCreate:
    """Tests for staging directory allocation."""

    def test_create_makes_directory_with_parents(self, staging_root):
        stager = LocalStager(staging_root / "deep" / "nested")
        path = stager.create()
        assert path.is_dir()
        assert path.parent == staging_root / "deep" / "nested"

    def test_directories_are_unique(self, staging_root):
        paths = {LocalStager(staging_root).create() for _ in range(20)}
        assert len(paths) == 20

    def test_create_twice_rejected(self, staging_root):
        stager = LocalStager(staging_root)
        stager.create()
        with pytest.raises(RuntimeError):
            stager.create()


class TestStage:
    """Tests for copying confirmed files."""

    def test_staged_content_matches_remote(self, remote, staging_root):
        confirmed = _confirmed(remote)
        stager = LocalStager(staging_root)
        stager.create()

        staged = stager.stage(confirmed, remote.open(None))

        assert [s.source.doy for s in staged] == [100, 101, 102]
        for item in staged:
            assert item.local_path.parent == stager.path
            assert item.local_path.name == item.source.filename
            assert item.local_path.read_bytes() == remote.local_for(item.source.remote_path).read_bytes()

    def test_fetch_order_follows_input(self, remote, staging_root):
        confirmed = _confirmed(remote)
        stager = LocalStager(staging_root)
        stager.create()

        stager.stage(list(reversed(confirmed)), remote.open(None))

        assert remote.fetched == [c.remote_path for c in reversed(confirmed)]

    def test_fetch_failure_names_file(self, remote, staging_root):
        confirmed = _confirmed(remote)
        remote.fail_fetch.add(confirmed[1].remote_path)
        stager = LocalStager(staging_root)
        stager.create()

        with pytest.raises(TransferError) as exc_info:
            stager.stage(confirmed, remote.open(None))

        assert exc_info.value.remote_path == confirmed[1].remote_path
        assert remote.fetched == [confirmed[0].remote_path]

    def test_vanished_file_is_transfer_error(self, remote, staging_root):
        """File deleted between probe and fetch."""
        confirmed = _confirmed(remote)
        remote.local_for(confirmed[0].remote_path).unlink()
        stager = LocalStager(staging_root)
        stager.create()

        with pytest.raises(TransferError):
            stager.stage(confirmed, remote.open(None))

    def test_duplicate_basename_not_overwritten(self, remote, staging_root):
        confirmed = _confirmed(remote, days=(5,))
        stager = LocalStager(staging_root)
        stager.create()

        with pytest.raises(TransferError, match="already staged"):
            stager.stage(confirmed + confirmed, remote.open(None))

    def test_stage_before_create(self, remote, staging_root):
        with pytest.raises(RuntimeError):
            LocalStager(staging_root).stage([], remote.open(None))


class TestCleanup:
    """Tests for staging directory removal."""

    def test_cleanup_removes_everything(self, remote, staging_root):
        confirmed = _confirmed(remote)
        stager = LocalStager(staging_root)
        path = stager.create()
        stager.stage(confirmed, remote.open(None))
        (path / "sub").mkdir()
        (path / "sub" / "extra.txt").write_text("x")

        stager.cleanup()

        assert not path.exists()

    def test_cleanup_without_create_is_noop(self, staging_root):
        LocalStager(staging_root).cleanup()
        assert not staging_root.exists()

    def test_cleanup_twice_is_noop(self, staging_root):
        stager = LocalStager(staging_root)
        path = stager.create()
        stager.cleanup()
        stager.cleanup()
        assert not path.exists()

    def test_cleanup_error_is_logged_not_raised(self, staging_root, monkeypatch):
        stager = LocalStager(staging_root)
        path = stager.create()

        def broken_rmtree(p):
            raise PermissionError(13, "Permission denied", str(p))

        monkeypatch.setattr("pygnss_archive.data_access.staging.shutil.rmtree", broken_rmtree)
        stager.cleanup()
        assert path.exists()

    def test_context_manager(self, staging_root):
        with LocalStager(staging_root) as stager:
            path = stager.path
            assert path.is_dir()
        assert not path.exists()
