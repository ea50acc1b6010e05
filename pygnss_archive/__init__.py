"""
PyGNSS-Archive: remote GNSS station file acquisition and archiving.

Locates daily observation files for a set of stations on a remote SFTP
archive, copies them into a request-scoped staging directory and bundles
them into a zip archive for download.
"""

__version__ = "1.0.0"
__author__ = "PyGNSS-RT Team"

from pygnss_archive.core.config import Settings, RemoteConfig
from pygnss_archive.core.pipeline import DownloadPipeline, DownloadRequest

__all__ = [
    "DownloadPipeline",
    "DownloadRequest",
    "RemoteConfig",
    "Settings",
    "__version__",
]
