"""
Zip archive creation for staged GNSS files.

Usage:
    from pygnss_archive.utils.archive import Archiver

    archiver = Archiver(compresslevel=9)
    archiver.create_archive(local_files, Path("/tmp/abc/data_2024_100-102_abcd.zip"))
"""

from __future__ import annotations

import os
import zipfile
from pathlib import Path
from typing import Iterable

from pygnss_archive.core.exceptions import ArchiveError
from pygnss_archive.utils.logging import get_logger


logger = get_logger(__name__)


class Archiver:
    """Bundles local files into a single flat zip archive.

    Entries are stored under their basename only. Output is not
    byte-for-byte reproducible (entry timestamps come from the files).
    """

    def __init__(self, compresslevel: int = 9):
        self.compresslevel = compresslevel

    def create_archive(
        self,
        local_files: Iterable[Path | str],
        archive_path: Path | str,
    ) -> Path:
        """Write ``local_files`` into a new zip at ``archive_path``.

        Args:
            local_files: Files to include, in archive order
            archive_path: Output zip path (overwritten if present)

        Returns:
            Path to the written archive

        Raises:
            ArchiveError: If there is nothing to archive, an input cannot be
                read, or the output cannot be written
        """
        files = [Path(f) for f in local_files]
        archive_path = Path(archive_path)

        if not files:
            raise ArchiveError(str(archive_path), "no files to archive")

        names = [f.name for f in files]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ArchiveError(
                str(archive_path), f"duplicate entry names: {', '.join(duplicates)}"
            )

        try:
            with zipfile.ZipFile(
                archive_path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=self.compresslevel,
            ) as zf:
                for file_path in files:
                    zf.write(file_path, arcname=file_path.name)
                    logger.debug("Added to archive", entry=file_path.name)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            self._discard(archive_path)
            raise ArchiveError(str(archive_path), str(e)) from e

        size = archive_path.stat().st_size
        logger.info(
            "Archive created",
            path=str(archive_path),
            entries=len(files),
            size=size,
        )
        return archive_path

    @staticmethod
    def _discard(archive_path: Path) -> None:
        """Remove a partially written archive."""
        try:
            os.remove(archive_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "Could not remove partial archive",
                path=str(archive_path),
                error=str(e),
            )
