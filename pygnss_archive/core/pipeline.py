"""
Download pipeline: locate, copy, zip and hand over GNSS station files.

A request names stations and a date range inside one calendar year. The
pipeline probes the remote archive for the daily files of every station and
day, copies the ones that exist into a private staging directory, zips them
and returns a handle the HTTP layer streams to the client. The staging
directory is removed on every exit path: immediately on failure or when no
files are found, and through ``ArchiveHandle.cleanup()`` once the response
has been sent.

Usage:
    from pygnss_archive.core.pipeline import DownloadPipeline, DownloadRequest

    pipeline = DownloadPipeline(settings.remote, staging_root=Path("temp/downloads"))
    outcome = pipeline.run(DownloadRequest(["vlkz"], "2025-07-20", "2025-07-22"))

    if outcome.success:
        with outcome.archive as archive:
            for chunk in archive.iter_chunks():
                response.write(chunk)
"""

from __future__ import annotations

import os
import re
import shutil
import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterator, Mapping, Protocol

from pygnss_archive.core.config import RemoteConfig, Settings
from pygnss_archive.core.exceptions import (
    ArchiveError,
    PyGNSSArchiveError,
    RequestValidationError,
)
from pygnss_archive.data_access.locator import (
    FileLocator,
    RemoteFileDescriptor,
    StationAvailability,
)
from pygnss_archive.data_access.sftp_client import RemoteSession
from pygnss_archive.data_access.staging import LocalStager, StagedFile
from pygnss_archive.utils.archive import Archiver
from pygnss_archive.utils.dates import doy_from_date, parse_iso_date
from pygnss_archive.utils.logging import get_logger


logger = get_logger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"
STATION_CODE_RE = re.compile(r"[a-z0-9_-]+")
# Name of the zip inside the staging directory; the client sees archive_name
STAGED_ARCHIVE_NAME = "archive.zip"


class Session(Protocol):
    """Remote session interface used by the pipeline."""

    def exists(self, remote_path: str) -> bool: ...

    def fetch(self, remote_path: str, local_path: Path) -> Path: ...

    def close(self) -> None: ...


SessionFactory = Callable[[RemoteConfig], Session]


class PipelineState(str, Enum):
    """States of one download run."""

    PENDING = "pending"
    VALIDATING = "validating"
    LOCATING = "locating"
    NOT_FOUND = "not_found"
    STAGING = "staging"
    ARCHIVING = "archiving"
    STREAMING = "streaming"
    FAILED = "failed"
    CLEANUP = "cleanup"
    DONE = "done"


class DownloadStatus(str, Enum):
    """Terminal outcome of a successful (non-raising) run."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"


@dataclass
class DownloadRequest:
    """Download request as received from the client."""

    stations: list[str]
    start_date: str
    end_date: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "DownloadRequest":
        """Build from a JSON body (``startDate``/``endDate`` or snake_case)."""
        return cls(
            stations=payload.get("stations") or [],
            start_date=payload.get("startDate", payload.get("start_date", "")),
            end_date=payload.get("endDate", payload.get("end_date", "")),
        )


@dataclass(frozen=True)
class ValidatedRequest:
    """Normalized request: lowercase unique stations, one year, DOY range."""

    stations: tuple[str, ...]
    year: int
    day_start: int
    day_end: int

    @property
    def archive_name(self) -> str:
        return (
            f"data_{self.year}_{self.day_start}-{self.day_end}_"
            f"{'-'.join(self.stations)}.zip"
        )


def _normalize_stations(stations: Any) -> tuple[str, ...]:
    if isinstance(stations, str) or not isinstance(stations, (list, tuple)):
        raise RequestValidationError("stations must be a list of station codes")
    if not stations:
        raise RequestValidationError("At least one station is required")

    normalized: list[str] = []
    for code in stations:
        if not isinstance(code, str) or not code.strip():
            raise RequestValidationError("Station codes must be non-empty strings")
        code = code.strip().lower()
        if not STATION_CODE_RE.fullmatch(code):
            raise RequestValidationError(f"Invalid station code: {code!r}")
        if code not in normalized:
            normalized.append(code)
    return tuple(normalized)


def _parse_request_date(value: Any, label: str) -> date:
    if not value:
        raise RequestValidationError(f"{label} is required")
    try:
        return parse_iso_date(value)
    except ValueError as e:
        raise RequestValidationError(f"Invalid {label}: {value!r}") from e


def validate_request(request: DownloadRequest, config: RemoteConfig) -> ValidatedRequest:
    """Check a request and the remote configuration.

    Raises:
        RequestValidationError: Empty station list, bad date, reversed or
            cross-year range
        ConfigurationError: Remote connection settings incomplete
    """
    stations = _normalize_stations(request.stations)
    start = _parse_request_date(request.start_date, "start date")
    end = _parse_request_date(request.end_date, "end date")

    if start > end:
        raise RequestValidationError("Start date is after end date")
    if start.year != end.year:
        raise RequestValidationError("Date range must be within one calendar year")

    config.require()

    return ValidatedRequest(
        stations=stations,
        year=start.year,
        day_start=doy_from_date(start),
        day_end=doy_from_date(end),
    )


class ArchiveHandle:
    """Readable archive plus the callback that releases its staging directory.

    The HTTP layer must call :meth:`cleanup` once the response has been fully
    sent or the client went away. Using the handle as a context manager does
    that automatically.
    """

    content_type = ARCHIVE_CONTENT_TYPE

    def __init__(self, path: Path, filename: str, on_cleanup: Callable[[], None]):
        self.path = path
        self.filename = filename
        self._on_cleanup = on_cleanup
        self._cleaned = False

    @property
    def size(self) -> int:
        return self.path.stat().st_size

    @property
    def headers(self) -> dict[str, str]:
        """Response headers for the attachment."""
        return {
            "Content-Type": self.content_type,
            "Content-Disposition": f'attachment; filename="{self.filename}"',
            "Content-Transfer-Encoding": "binary",
            "Cache-Control": "no-cache",
        }

    @property
    def closed(self) -> bool:
        return self._cleaned

    def open(self) -> BinaryIO:
        """Open the archive for reading."""
        if self._cleaned:
            raise RuntimeError("Archive already cleaned up")
        return open(self.path, "rb")

    def iter_chunks(self, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """Yield the archive in chunks."""
        with self.open() as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                yield chunk

    def cleanup(self) -> None:
        """Release the staging directory. Only the first call has effect."""
        if self._cleaned:
            return
        self._cleaned = True
        self._on_cleanup()

    def __enter__(self) -> "ArchiveHandle":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.cleanup()


@dataclass
class DownloadOutcome:
    """Non-error result of a download run."""

    status: DownloadStatus
    request: ValidatedRequest
    files: list[RemoteFileDescriptor] = field(default_factory=list)
    archive: ArchiveHandle | None = None
    saved_to: Path | None = None

    @property
    def success(self) -> bool:
        return self.status == DownloadStatus.SUCCESS

    @property
    def status_code(self) -> int:
        return 200 if self.success else 404

    @property
    def message(self) -> str:
        if self.success:
            return f"{len(self.files)} files archived"
        return "No files found for the selected criteria"


def error_response(exc: BaseException) -> tuple[int, str]:
    """Map an exception to (status code, client-safe message)."""
    if isinstance(exc, PyGNSSArchiveError):
        return exc.status_code, exc.public_message
    return 500, PyGNSSArchiveError.public_message


class DownloadJob:
    """One execution of the pipeline for a single request.

    Tracks the state machine and owns the request's staging directory. A
    job runs once; create a new one per request.
    """

    def __init__(self, pipeline: "DownloadPipeline", request: DownloadRequest):
        self.pipeline = pipeline
        self.request = request
        self.request_id = uuid.uuid4().hex[:12]
        self.state = PipelineState.PENDING
        self.history: list[PipelineState] = []
        self.failed_state: PipelineState | None = None
        self.error: BaseException | None = None
        self._stager: LocalStager | None = None
        self._log = logger.bind(request_id=self.request_id)

    @property
    def staging_dir(self) -> Path | None:
        return self._stager.path if self._stager else None

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        self._log.debug("Pipeline state", state=state.value)

    def execute(self) -> DownloadOutcome:
        """Run the pipeline.

        Returns:
            DownloadOutcome with SUCCESS (archive handle attached, cleanup
            deferred to the handle) or NOT_FOUND (already cleaned up)

        Raises:
            PyGNSSArchiveError: Categorized failure; cleanup has already run
        """
        if self.state is not PipelineState.PENDING:
            raise RuntimeError(f"Job {self.request_id} already executed")

        try:
            self._transition(PipelineState.VALIDATING)
            validated = validate_request(self.request, self.pipeline.config)
            self._log = self._log.bind(
                stations=",".join(validated.stations),
                year=validated.year,
                days=f"{validated.day_start}-{validated.day_end}",
            )

            self._transition(PipelineState.LOCATING)
            confirmed = self._locate(validated)

            if not confirmed:
                self._transition(PipelineState.NOT_FOUND)
                self._log.info("No files found")
                self._finish()
                return DownloadOutcome(status=DownloadStatus.NOT_FOUND, request=validated)

            self._log.info("Files located", count=len(confirmed))

            self._transition(PipelineState.STAGING)
            staged = self._stage(confirmed)

            self._transition(PipelineState.ARCHIVING)
            archive_path = self.pipeline.archiver.create_archive(
                [s.local_path for s in staged],
                self._stager.path / STAGED_ARCHIVE_NAME,
            )

            self._transition(PipelineState.STREAMING)
            handle = ArchiveHandle(archive_path, validated.archive_name, self._finish)

        except BaseException as exc:
            self._fail(exc)
            raise

        return DownloadOutcome(
            status=DownloadStatus.SUCCESS,
            request=validated,
            files=confirmed,
            archive=handle,
        )

    def _locate(self, validated: ValidatedRequest) -> list[RemoteFileDescriptor]:
        locator = self.pipeline.locator
        session = self.pipeline.session_factory(self.pipeline.config)
        try:
            confirmed: list[RemoteFileDescriptor] = []
            for station in validated.stations:
                confirmed.extend(
                    locator.locate(
                        station,
                        validated.year,
                        validated.day_start,
                        validated.day_end,
                        session,
                    )
                )
            return confirmed
        finally:
            session.close()

    def _stage(self, confirmed: list[RemoteFileDescriptor]) -> list[StagedFile]:
        self._stager = LocalStager(self.pipeline.staging_root)
        self._stager.create()

        session = self.pipeline.session_factory(self.pipeline.config)
        try:
            return self._stager.stage(confirmed, session)
        finally:
            session.close()

    def _fail(self, exc: BaseException) -> None:
        self.failed_state = self.state
        self.error = exc
        self._transition(PipelineState.FAILED)

        if isinstance(exc, RequestValidationError):
            self._log.warning("Rejected download request", reason=exc.reason)
        elif isinstance(exc, PyGNSSArchiveError):
            self._log.error(
                "Download failed",
                phase=self.failed_state.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
        else:
            self._log.error(
                "Download failed unexpectedly",
                phase=self.failed_state.value,
                exc_info=True,
            )

        self._finish()

    def _finish(self) -> None:
        """Cleanup then Done. Safe to call more than once."""
        if self.state in (PipelineState.CLEANUP, PipelineState.DONE):
            return
        self._transition(PipelineState.CLEANUP)
        if self._stager is not None:
            self._stager.cleanup()
        self._transition(PipelineState.DONE)


class DownloadPipeline:
    """Orchestrates locate, stage and archive for download requests.

    Holds only configuration; every request gets its own ``DownloadJob``,
    sessions and staging directory, so one pipeline can serve concurrent
    requests.
    """

    def __init__(
        self,
        config: RemoteConfig,
        staging_root: Path | str = Path("temp/downloads"),
        session_factory: SessionFactory | None = None,
        archiver: Archiver | None = None,
        probe_workers: int = 1,
    ):
        """Initialize pipeline.

        Args:
            config: Remote host configuration
            staging_root: Parent of per-request staging directories
            session_factory: Opens a session from config (default: SFTP)
            archiver: Archive builder (default: maximum zip compression)
            probe_workers: Probe threads per station. ``RemoteSession``
                serializes SFTP requests on its channel, so values above 1
                only pay off with a session_factory whose sessions answer
                ``exists`` concurrently.
        """
        self.config = config
        self.staging_root = Path(staging_root)
        self.session_factory: SessionFactory = session_factory or RemoteSession.open
        self.archiver = archiver or Archiver()
        self.probe_workers = probe_workers

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> "DownloadPipeline":
        """Create from loaded Settings."""
        kwargs.setdefault("staging_root", settings.staging.root)
        kwargs.setdefault("archiver", Archiver(settings.staging.compresslevel))
        kwargs.setdefault("probe_workers", settings.staging.probe_workers)
        return cls(settings.remote, **kwargs)

    @property
    def locator(self) -> FileLocator:
        return FileLocator(self.config.root or "", max_workers=self.probe_workers)

    def prepare(self, request: DownloadRequest) -> DownloadJob:
        """Create a job for a request without running it."""
        return DownloadJob(self, request)

    def run(self, request: DownloadRequest) -> DownloadOutcome:
        """Run a request end to end (see DownloadJob.execute)."""
        return self.prepare(request).execute()

    def download_to(self, request: DownloadRequest, destination: Path | str) -> DownloadOutcome:
        """Run a request and save the archive to a file or directory.

        ``destination`` is a directory when it exists as one, ends with a
        path separator or has no suffix; the archive then keeps its
        ``data_<year>_...zip`` name inside it. The staging directory is
        removed before returning in all cases.

        Raises:
            ArchiveError: The archive could not be written to destination
        """
        outcome = self.run(request)
        if outcome.archive is None:
            return outcome

        as_dir = str(destination).endswith(("/", os.sep))
        destination = Path(destination)
        with outcome.archive as archive:
            if as_dir or destination.is_dir() or not destination.suffix:
                destination = destination / archive.filename
            try:
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(archive.path, destination)
            except OSError as e:
                raise ArchiveError(str(destination), f"could not save: {e}") from e

        outcome.saved_to = destination
        logger.info("Archive saved", path=str(destination), files=len(outcome.files))
        return outcome

    def availability(self, request: DownloadRequest) -> list[StationAvailability]:
        """Per-station completeness for a request, by probing only."""
        validated = validate_request(request, self.config)
        locator = self.locator

        session = self.session_factory(self.config)
        try:
            return [
                locator.availability(
                    station,
                    validated.year,
                    validated.day_start,
                    validated.day_end,
                    session,
                )
                for station in validated.stations
            ]
        finally:
            session.close()

    def check_connection(self, station: str, on_date: date | None = None) -> int:
        """Open a session and probe one station-day.

        Returns:
            Number of files found (0 or 1)
        """
        self.config.require()
        on_date = on_date or date.today()
        doy = doy_from_date(on_date)

        session = self.session_factory(self.config)
        try:
            found = self.locator.locate(station, on_date.year, doy, doy, session)
        finally:
            session.close()

        logger.info(
            "Connection check passed",
            host=self.config.host,
            station=station.lower(),
            found=len(found),
        )
        return len(found)
