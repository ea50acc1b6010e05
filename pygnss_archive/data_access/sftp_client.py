"""
SFTP session to the remote GNSS data host.

One ``RemoteSession`` wraps one authenticated SSH transport and its SFTP
channel. Sessions are cheap to discard: the pipeline opens one per phase
(locate, then copy) rather than sharing a connection across a request.

Usage:
    from pygnss_archive.data_access.sftp_client import RemoteSession

    with RemoteSession.open(config) as session:
        if session.exists("/data/2024/101/abcd1010.24d.Z"):
            session.fetch("/data/2024/101/abcd1010.24d.Z", Path("abcd1010.24d.Z"))
"""

from __future__ import annotations

import os
import socket
import threading
from pathlib import Path

import paramiko

from pygnss_archive.core.config import RemoteConfig
from pygnss_archive.core.exceptions import (
    ProbeError,
    RemoteConnectionError,
    TransferError,
)
from pygnss_archive.utils.logging import get_logger


logger = get_logger(__name__)

PARTIAL_SUFFIX = ".part"


class RemoteSession:
    """SFTP session using paramiko.

    Operations are serialized: paramiko's SFTP channel is not safe for
    concurrent requests from several threads.
    """

    def __init__(self, config: RemoteConfig):
        """Initialize session (does not connect).

        Args:
            config: Remote host configuration
        """
        self.config = config
        self.host = config.host or ""
        self._client: paramiko.SSHClient | None = None
        self._sftp: paramiko.SFTPClient | None = None
        self._lock = threading.Lock()

    @classmethod
    def open(cls, config: RemoteConfig) -> "RemoteSession":
        """Validate configuration and connect.

        Raises:
            ConfigurationError: Required settings are missing (no connection
                is attempted)
            RemoteConnectionError: Host unreachable, timeout or auth failure
        """
        config.require()
        session = cls(config)
        session.connect()
        return session

    @property
    def connected(self) -> bool:
        return self._sftp is not None

    def connect(self) -> None:
        """Connect to SFTP server."""
        cfg = self.config
        client = paramiko.SSHClient()

        if cfg.verify_host_keys:
            client.load_system_host_keys()
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=cfg.host,
                port=cfg.port,
                username=cfg.username,
                password=cfg.password.get_secret_value() if cfg.password else None,
                key_filename=str(cfg.key_path) if cfg.key_path else None,
                passphrase=(
                    cfg.key_passphrase.get_secret_value() if cfg.key_passphrase else None
                ),
                timeout=cfg.connect_timeout,
                banner_timeout=cfg.connect_timeout,
                auth_timeout=cfg.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            self._sftp = client.open_sftp()
            self._client = client

        except socket.timeout as e:
            client.close()
            raise RemoteConnectionError(self.host, "Connection timeout") from e
        except paramiko.AuthenticationException as e:
            client.close()
            raise RemoteConnectionError(self.host, "Authentication failed") from e
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise RemoteConnectionError(self.host, type(e).__name__ + ": " + str(e)) from e

        logger.info("Connected to SFTP server", host=self.host, user=cfg.username)

    def close(self) -> None:
        """Disconnect from SFTP server. Safe to call repeatedly."""
        sftp, client = self._sftp, self._client
        self._sftp = None
        self._client = None

        if sftp is not None:
            try:
                sftp.close()
            except Exception as e:
                logger.debug("Error closing SFTP channel", host=self.host, error=str(e))
        if client is not None:
            client.close()
            logger.info("SFTP connection closed", host=self.host)

    def _require_sftp(self, operation: str, remote_path: str) -> paramiko.SFTPClient:
        if self._sftp is None:
            if operation == "stat":
                raise ProbeError(remote_path, "Not connected")
            raise TransferError(remote_path, "Not connected")
        return self._sftp

    def exists(self, remote_path: str) -> bool:
        """Check if remote file exists.

        Returns False only when the server reports the file as absent.

        Raises:
            ProbeError: Any other failure (permissions, dropped transport)
        """
        sftp = self._require_sftp("stat", remote_path)

        with self._lock:
            try:
                sftp.stat(remote_path)
            except FileNotFoundError:
                return False
            except (OSError, paramiko.SSHException, EOFError) as e:
                raise ProbeError(remote_path, str(e) or type(e).__name__) from e

        logger.debug("Found remote file", remote=remote_path)
        return True

    def fetch(self, remote_path: str, local_path: Path | str) -> Path:
        """Download a file, publishing it only once complete.

        Bytes go to ``<local_path>.part`` first and are renamed into place
        after the transfer finishes, so ``local_path`` never holds a
        truncated copy.

        Raises:
            TransferError: Transfer failed; no file is left at local_path
        """
        sftp = self._require_sftp("get", remote_path)
        local_path = Path(local_path)
        partial = local_path.with_name(local_path.name + PARTIAL_SUFFIX)

        with self._lock:
            try:
                sftp.get(remote_path, str(partial))
                os.replace(partial, local_path)
            except (OSError, paramiko.SSHException, EOFError) as e:
                _remove_quietly(partial)
                raise TransferError(remote_path, str(e) or type(e).__name__) from e

        logger.info(
            "Downloaded file via SFTP",
            remote=remote_path,
            local=str(local_path),
        )
        return local_path

    def __enter__(self) -> "RemoteSession":
        if not self.connected:
            self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Could not remove partial file", path=str(path), error=str(e))
