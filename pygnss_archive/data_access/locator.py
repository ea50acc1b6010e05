"""
Remote file locator for daily GNSS observation files.

The remote archive stores one compressed daily RINEX observation file per
station and day under ``<root>/<yyyy>/<ddd>/``::

    /mnt/disk/gpsdata/2025/203/vlkz2030.25d.Z

Paths are derived purely from (station, year, doy); whether a file exists
has to be probed on the server.
"""

from __future__ import annotations

import posixpath
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Protocol

from pygnss_archive.utils.dates import days_in_year, two_digit_year
from pygnss_archive.utils.logging import get_logger


logger = get_logger(__name__)


class ProbeSession(Protocol):
    """What the locator needs from a remote session."""

    def exists(self, remote_path: str) -> bool: ...


def build_filename(station: str, year: int, doy: int) -> str:
    """Build daily observation filename, e.g. ``vlkz2030.25d.Z``.

    Args:
        station: Station code (any case)
        year: Four-digit year
        doy: Day of year (1-366)
    """
    return f"{station.lower()}{doy:03d}0.{two_digit_year(year)}d.Z"


def build_remote_path(root: str, year: int, doy: int, filename: str) -> str:
    """Build remote path ``<root>/<yyyy>/<ddd>/<filename>``."""
    return posixpath.join(root, str(year), f"{doy:03d}", filename)


@dataclass(frozen=True)
class RemoteFileDescriptor:
    """A candidate (or, once probed, confirmed) remote file."""

    station: str
    year: int
    doy: int
    remote_path: str
    confirmed: bool = False

    @classmethod
    def for_day(cls, root: str, station: str, year: int, doy: int) -> "RemoteFileDescriptor":
        """Construct the descriptor for one station and day."""
        station = station.lower()
        filename = build_filename(station, year, doy)
        return cls(
            station=station,
            year=year,
            doy=doy,
            remote_path=build_remote_path(root, year, doy, filename),
        )

    @property
    def filename(self) -> str:
        return posixpath.basename(self.remote_path)

    def as_confirmed(self) -> "RemoteFileDescriptor":
        return RemoteFileDescriptor(
            station=self.station,
            year=self.year,
            doy=self.doy,
            remote_path=self.remote_path,
            confirmed=True,
        )


@dataclass
class StationAvailability:
    """Per-station data completeness over a day range."""

    station: str
    year: int
    day_start: int
    day_end: int
    found_days: list[int] = field(default_factory=list)

    @property
    def expected(self) -> int:
        return self.day_end - self.day_start + 1

    @property
    def found_count(self) -> int:
        return len(self.found_days)

    @property
    def missing_days(self) -> list[int]:
        found = set(self.found_days)
        return [d for d in range(self.day_start, self.day_end + 1) if d not in found]

    @property
    def completeness(self) -> float:
        """Percentage of days with a file."""
        return 100.0 * self.found_count / self.expected if self.expected else 0.0

    def to_dict(self) -> dict:
        return {
            "station": self.station,
            "year": self.year,
            "dayStart": self.day_start,
            "dayEnd": self.day_end,
            "foundCount": self.found_count,
            "totalExpected": self.expected,
            "foundDays": list(self.found_days),
            "missingDays": self.missing_days,
            "completeness": round(self.completeness, 1),
        }


class FileLocator:
    """Finds which daily files exist for a station over a day range.

    Day probes may run on a small thread pool; results are always returned
    in ascending day order.
    """

    def __init__(self, root: str, max_workers: int = 1):
        """Initialize locator.

        Args:
            root: Remote archive root directory
            max_workers: Concurrent probes per station (1 = sequential)
        """
        self.root = root
        self.max_workers = max(1, max_workers)

    def candidates(
        self,
        station: str,
        year: int,
        day_start: int,
        day_end: int,
    ) -> list[RemoteFileDescriptor]:
        """All candidate descriptors for the range, ascending by day."""
        _check_day_range(year, day_start, day_end)
        return [
            RemoteFileDescriptor.for_day(self.root, station, year, doy)
            for doy in range(day_start, day_end + 1)
        ]

    def locate(
        self,
        station: str,
        year: int,
        day_start: int,
        day_end: int,
        session: ProbeSession,
    ) -> list[RemoteFileDescriptor]:
        """Return confirmed files for one station, ascending by day.

        Days without a file are skipped silently.

        Raises:
            ProbeError: A probe failed for a reason other than absence
            ValueError: Invalid day range
        """
        candidates = self.candidates(station, year, day_start, day_end)
        flags = self._probe_all(candidates, session)

        confirmed = [
            descriptor.as_confirmed()
            for descriptor, present in zip(candidates, flags)
            if present
        ]

        logger.info(
            "Located files",
            station=station.lower(),
            year=year,
            days=f"{day_start}-{day_end}",
            found=len(confirmed),
            expected=len(candidates),
        )
        return confirmed

    def availability(
        self,
        station: str,
        year: int,
        day_start: int,
        day_end: int,
        session: ProbeSession,
    ) -> StationAvailability:
        """Completeness summary for one station over a day range."""
        confirmed = self.locate(station, year, day_start, day_end, session)
        return StationAvailability(
            station=station.lower(),
            year=year,
            day_start=day_start,
            day_end=day_end,
            found_days=[f.doy for f in confirmed],
        )

    def _probe_all(
        self,
        candidates: list[RemoteFileDescriptor],
        session: ProbeSession,
    ) -> list[bool]:
        """Probe every candidate; flags line up with ``candidates``."""
        if self.max_workers == 1 or len(candidates) < 2:
            return [session.exists(c.remote_path) for c in candidates]

        workers = min(self.max_workers, len(candidates))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [
                executor.submit(session.exists, c.remote_path) for c in candidates
            ]
            try:
                return [future.result() for future in futures]
            except BaseException:
                for future in futures:
                    future.cancel()
                raise


def _check_day_range(year: int, day_start: int, day_end: int) -> None:
    last = days_in_year(year)
    if not 1 <= day_start <= last or not 1 <= day_end <= last:
        raise ValueError(f"Day range {day_start}-{day_end} outside 1-{last} for {year}")
    if day_start > day_end:
        raise ValueError(f"Start day {day_start} after end day {day_end}")
