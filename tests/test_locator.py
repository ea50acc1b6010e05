"""Tests for remote file naming and the file locator."""

import pytest

from pygnss_archive.core.exceptions import ProbeError
from pygnss_archive.data_access.locator import (
    FileLocator,
    RemoteFileDescriptor,
    build_filename,
    build_remote_path,
)

from conftest import REMOTE_ROOT


class TestNaming:
    """Tests for the daily filename template."""

    def test_filename_template(self):
        """Filename is <station><ddd>0.<yy>d.Z."""
        assert build_filename("vlkz", 2025, 203) == "vlkz2030.25d.Z"

    def test_filename_lowercases_station(self):
        assert build_filename("VLKZ", 2025, 203) == "vlkz2030.25d.Z"

    def test_filename_pads_day(self):
        assert build_filename("abcd", 2024, 5) == "abcd0050.24d.Z"
        assert build_filename("abcd", 2024, 45) == "abcd0450.24d.Z"

    def test_filename_two_digit_year(self):
        assert build_filename("abcd", 2005, 1) == "abcd0010.05d.Z"
        assert build_filename("abcd", 2000, 366) == "abcd3660.00d.Z"

    def test_remote_path(self):
        path = build_remote_path("/mnt/disk/gpsdata", 2025, 7, "vlkz0070.25d.Z")
        assert path == "/mnt/disk/gpsdata/2025/007/vlkz0070.25d.Z"

    def test_remote_path_root_trailing_slash(self):
        path = build_remote_path("/data/", 2024, 101, "abcd1010.24d.Z")
        assert path == "/data/2024/101/abcd1010.24d.Z"

    def test_descriptor_is_pure(self):
        """Same inputs always give the same descriptor."""
        a = RemoteFileDescriptor.for_day(REMOTE_ROOT, "AbCd", 2024, 101)
        b = RemoteFileDescriptor.for_day(REMOTE_ROOT, "abcd", 2024, 101)
        assert a == b
        assert a.remote_path == f"{REMOTE_ROOT}/2024/101/abcd1010.24d.Z"
        assert a.filename == "abcd1010.24d.Z"
        assert a.confirmed is False


class TestLocate:
    """Tests for FileLocator.locate against the stub remote."""

    def test_only_existing_day_returned(self, remote):
        """Scenario: files only for day 101 of 100-102."""
        remote.add_file("abcd", 2024, 101)
        session = remote.open(None)

        found = FileLocator(REMOTE_ROOT).locate("abcd", 2024, 100, 102, session)

        assert len(found) == 1
        assert found[0].doy == 101
        assert found[0].confirmed is True
        assert len(remote.probed) == 3

    def test_no_files_is_not_an_error(self, remote):
        session = remote.open(None)
        assert FileLocator(REMOTE_ROOT).locate("abcd", 2024, 1, 10, session) == []

    def test_results_in_day_order(self, remote):
        for doy in (12, 3, 7, 30, 21):
            remote.add_file("abcd", 2024, doy)
        session = remote.open(None)

        found = FileLocator(REMOTE_ROOT, max_workers=4).locate("abcd", 2024, 1, 31, session)

        assert [f.doy for f in found] == [3, 7, 12, 21, 30]

    def test_parallel_matches_sequential(self, remote):
        for doy in range(40, 60, 3):
            remote.add_file("efgh", 2023, doy)
        session = remote.open(None)

        sequential = FileLocator(REMOTE_ROOT, max_workers=1).locate("efgh", 2023, 35, 65, session)
        parallel = FileLocator(REMOTE_ROOT, max_workers=8).locate("efgh", 2023, 35, 65, session)

        assert sequential == parallel

    def test_locate_is_idempotent(self, remote):
        remote.add_file("abcd", 2024, 100)
        remote.add_file("abcd", 2024, 102)
        session = remote.open(None)
        locator = FileLocator(REMOTE_ROOT, max_workers=3)

        first = locator.locate("abcd", 2024, 100, 102, session)
        second = locator.locate("abcd", 2024, 100, 102, session)

        assert first == second

    def test_probe_error_propagates(self, remote):
        """Transport errors abort locate instead of reading as 'no files'."""
        remote.add_file("abcd", 2024, 100)
        bad = RemoteFileDescriptor.for_day(REMOTE_ROOT, "abcd", 2024, 101).remote_path
        remote.fail_probe.add(bad)
        session = remote.open(None)

        with pytest.raises(ProbeError) as exc_info:
            FileLocator(REMOTE_ROOT).locate("abcd", 2024, 100, 102, session)
        assert exc_info.value.remote_path == bad

    def test_probe_error_propagates_from_pool(self, remote):
        bad = RemoteFileDescriptor.for_day(REMOTE_ROOT, "abcd", 2024, 105).remote_path
        remote.fail_probe.add(bad)
        session = remote.open(None)

        with pytest.raises(ProbeError):
            FileLocator(REMOTE_ROOT, max_workers=4).locate("abcd", 2024, 100, 110, session)

    def test_reversed_range_rejected(self, remote):
        with pytest.raises(ValueError, match="after end day"):
            FileLocator(REMOTE_ROOT).locate("abcd", 2024, 10, 5, remote.open(None))

    def test_day_366_only_in_leap_years(self, remote):
        locator = FileLocator(REMOTE_ROOT)
        assert len(locator.candidates("abcd", 2024, 366, 366)) == 1
        with pytest.raises(ValueError, match="outside"):
            locator.candidates("abcd", 2023, 366, 366)


class TestAvailability:
    """Tests for the per-station completeness summary."""

    def test_availability_counts(self, remote):
        remote.add_file("abcd", 2024, 1)
        remote.add_file("abcd", 2024, 3)
        session = remote.open(None)

        report = FileLocator(REMOTE_ROOT).availability("ABCD", 2024, 1, 4, session)

        assert report.station == "abcd"
        assert report.found_days == [1, 3]
        assert report.expected == 4
        assert report.found_count == 2
        assert report.missing_days == [2, 4]
        assert report.completeness == pytest.approx(50.0)

    def test_availability_dict(self, remote):
        remote.add_file("abcd", 2024, 10)
        report = FileLocator(REMOTE_ROOT).availability("abcd", 2024, 10, 10, remote.open(None))

        data = report.to_dict()
        assert data["foundCount"] == 1
        assert data["totalExpected"] == 1
        assert data["completeness"] == 100.0
