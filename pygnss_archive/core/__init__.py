"""Core configuration, exceptions and the download pipeline."""

from pygnss_archive.core.config import (
    Settings,
    RemoteConfig,
    StagingConfig,
    LoggingConfig,
    load_settings,
)
from pygnss_archive.core.exceptions import (
    PyGNSSArchiveError,
    RequestValidationError,
    ConfigurationError,
    RemoteConnectionError,
    ProbeError,
    TransferError,
    ArchiveError,
)

__all__ = [
    "Settings",
    "RemoteConfig",
    "StagingConfig",
    "LoggingConfig",
    "load_settings",
    "PyGNSSArchiveError",
    "RequestValidationError",
    "ConfigurationError",
    "RemoteConnectionError",
    "ProbeError",
    "TransferError",
    "ArchiveError",
]
