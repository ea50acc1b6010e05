"""
Custom exceptions for PyGNSS-Archive.

Provides a hierarchy of exceptions for the archive download pipeline. Every
class carries an HTTP-style ``status_code`` and a ``public_message`` that is
safe to hand to a client (no hosts, paths or credentials).
"""

from __future__ import annotations


class PyGNSSArchiveError(Exception):
    """Base exception for all PyGNSS-Archive errors."""

    status_code: int = 500
    public_message: str = "Internal server error"


class RequestValidationError(PyGNSSArchiveError):
    """Malformed or inconsistent download request."""

    status_code = 400

    def __init__(self, reason: str):
        self.reason = reason
        self.public_message = reason
        super().__init__(f"Invalid request: {reason}")


class ConfigurationError(PyGNSSArchiveError):
    """Required remote connection parameters are absent."""

    public_message = "Remote archive connection is not configured"

    def __init__(self, missing: list[str] | None = None, message: str | None = None):
        self.missing = list(missing or [])
        if message is None:
            message = f"Missing remote configuration: {', '.join(self.missing)}"
        super().__init__(message)


class RemoteConnectionError(PyGNSSArchiveError):
    """Transport or authentication failure while opening a remote session."""

    public_message = "Could not connect to the remote archive"

    def __init__(self, host: str, message: str):
        self.host = host
        super().__init__(f"connect failed on {host}: {message}")


class ProbeError(PyGNSSArchiveError):
    """Existence probe failed for a reason other than the file being absent."""

    public_message = "Failed to search the remote archive"

    def __init__(self, remote_path: str, message: str):
        self.remote_path = remote_path
        super().__init__(f"probe failed for {remote_path}: {message}")


class TransferError(PyGNSSArchiveError):
    """A confirmed remote file could not be copied locally."""

    public_message = "Failed to copy files from the remote archive"

    def __init__(self, remote_path: str, message: str):
        self.remote_path = remote_path
        super().__init__(f"transfer failed for {remote_path}: {message}")


class ArchiveError(PyGNSSArchiveError):
    """Local zip creation or write failure."""

    public_message = "Failed to build the download archive"

    def __init__(self, archive_path: str, message: str):
        self.archive_path = archive_path
        super().__init__(f"archive {archive_path}: {message}")
