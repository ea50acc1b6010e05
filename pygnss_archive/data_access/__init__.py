"""Data access layer: SFTP session, remote file locator, local staging."""

from pygnss_archive.data_access.sftp_client import RemoteSession
from pygnss_archive.data_access.locator import (
    FileLocator,
    RemoteFileDescriptor,
    StationAvailability,
    build_filename,
    build_remote_path,
)
from pygnss_archive.data_access.staging import LocalStager, StagedFile

__all__ = [
    "RemoteSession",
    "FileLocator",
    "RemoteFileDescriptor",
    "StationAvailability",
    "build_filename",
    "build_remote_path",
    "LocalStager",
    "StagedFile",
]
