"""Shared fixtures: a stub remote archive backed by a local directory."""

from __future__ import annotations

import posixpath
import shutil
from pathlib import Path

import pytest

from pygnss_archive.core.config import RemoteConfig
from pygnss_archive.core.exceptions import (
    ProbeError,
    RemoteConnectionError,
    TransferError,
)
from pygnss_archive.data_access.locator import build_filename, build_remote_path


REMOTE_ROOT = "/mnt/disk/gpsdata"


class StubRemote:
    """Remote host whose filesystem is a local directory tree.

    ``fail_probe`` / ``fail_fetch`` hold remote paths that raise transport
    errors; ``fail_open`` holds 1-based session numbers that fail to connect.
    """

    def __init__(self, base_dir: Path, root: str = REMOTE_ROOT):
        self.base_dir = base_dir
        self.root = root
        self.fail_probe: set[str] = set()
        self.fail_fetch: set[str] = set()
        self.fail_open: set[int] = set()
        self.sessions: list[StubSession] = []
        self.probed: list[str] = []
        self.fetched: list[str] = []

    def local_for(self, remote_path: str) -> Path:
        relative = posixpath.relpath(remote_path, self.root)
        return self.base_dir.joinpath(*relative.split("/"))

    def add_file(self, station: str, year: int, doy: int, content: bytes | None = None) -> str:
        """Create the daily file for station/day; return its remote path."""
        filename = build_filename(station, year, doy)
        remote_path = build_remote_path(self.root, year, doy, filename)
        local = self.local_for(remote_path)
        local.parent.mkdir(parents=True, exist_ok=True)
        local.write_bytes(content if content is not None else f"{filename}\n".encode() * 50)
        return remote_path

    def open(self, config: RemoteConfig) -> "StubSession":
        number = len(self.sessions) + 1
        if number in self.fail_open:
            self.sessions.append(None)  # type: ignore[arg-type]
            raise RemoteConnectionError(config.host or "", "Connection refused")
        session = StubSession(self)
        self.sessions.append(session)
        return session

    @property
    def open_count(self) -> int:
        return len(self.sessions)


class StubSession:
    def __init__(self, remote: StubRemote):
        self.remote = remote
        self.closed = False

    def exists(self, remote_path: str) -> bool:
        self.remote.probed.append(remote_path)
        if remote_path in self.remote.fail_probe:
            raise ProbeError(remote_path, "Permission denied")
        return self.remote.local_for(remote_path).is_file()

    def fetch(self, remote_path: str, local_path: Path) -> Path:
        if remote_path in self.remote.fail_fetch:
            raise TransferError(remote_path, "Connection reset")
        source = self.remote.local_for(remote_path)
        if not source.is_file():
            raise TransferError(remote_path, "No such file")
        shutil.copyfile(source, local_path)
        self.remote.fetched.append(remote_path)
        return Path(local_path)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def remote(tmp_path):
    """Stub remote archive."""
    return StubRemote(tmp_path / "remote")


@pytest.fixture
def remote_config():
    """Complete remote configuration."""
    return RemoteConfig(
        host="gnss.example.org",
        username="archive",
        password="s3cret-pass",
        root=REMOTE_ROOT,
    )


@pytest.fixture
def staging_root(tmp_path):
    return tmp_path / "staging"
