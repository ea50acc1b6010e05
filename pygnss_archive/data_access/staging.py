"""
Request-scoped local staging directory.

Each download request copies its files into a private directory named by a
random UUID under the staging root. The directory and everything in it
(including the archive built there) is removed when the request ends.

Usage:
    stager = LocalStager(Path("temp/downloads"))
    stager.create()
    try:
        staged = stager.stage(confirmed_files, session)
        ...
    finally:
        stager.cleanup()
"""

from __future__ import annotations

import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol

from pygnss_archive.core.exceptions import TransferError
from pygnss_archive.data_access.locator import RemoteFileDescriptor
from pygnss_archive.utils.logging import get_logger


logger = get_logger(__name__)


class FetchSession(Protocol):
    """What the stager needs from a remote session."""

    def fetch(self, remote_path: str, local_path: Path) -> Path: ...


@dataclass(frozen=True)
class StagedFile:
    """A confirmed remote file copied into the staging directory."""

    source: RemoteFileDescriptor
    local_path: Path

    @property
    def size(self) -> int:
        return self.local_path.stat().st_size


class LocalStager:
    """Owns one staging directory for the lifetime of a request."""

    def __init__(self, staging_root: Path | str):
        self.staging_root = Path(staging_root)
        self.path: Path | None = None

    def create(self) -> Path:
        """Create a new uniquely named staging directory."""
        if self.path is not None:
            raise RuntimeError(f"Staging directory already created: {self.path}")

        path = self.staging_root / uuid.uuid4().hex
        path.mkdir(parents=True, exist_ok=False)
        self.path = path
        logger.info("Created staging directory", path=str(path))
        return path

    def stage(
        self,
        confirmed_files: Iterable[RemoteFileDescriptor],
        session: FetchSession,
    ) -> list[StagedFile]:
        """Copy every confirmed file into the staging directory, in order.

        All or nothing: the first failed fetch aborts staging.

        Raises:
            TransferError: A fetch failed or two files share a basename
        """
        if self.path is None:
            raise RuntimeError("stage() called before create()")

        staged: list[StagedFile] = []
        for descriptor in confirmed_files:
            local_path = self.path / descriptor.filename
            if local_path.exists():
                raise TransferError(
                    descriptor.remote_path,
                    f"local name {descriptor.filename} already staged",
                )
            session.fetch(descriptor.remote_path, local_path)
            staged.append(StagedFile(source=descriptor, local_path=local_path))

        logger.info("Staged files", path=str(self.path), count=len(staged))
        return staged

    def cleanup(self) -> None:
        """Remove the staging directory and its contents.

        A no-op when the directory was never created or is already gone.
        Removal errors are logged, not raised.
        """
        path = self.path
        if path is None or not path.exists():
            return

        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.error("Failed to remove staging directory", path=str(path), error=str(e))
            return

        logger.info("Removed staging directory", path=str(path))

    def __enter__(self) -> "LocalStager":
        if self.path is None:
            self.create()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()
