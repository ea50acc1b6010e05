"""
Command-line interface for PyGNSS-Archive.

Provides a Click CLI for downloading station archives, checking data
availability and testing the remote connection.
"""

from __future__ import annotations

import json
import sys
from datetime import date
from pathlib import Path

import click

from pygnss_archive import __version__
from pygnss_archive.core.config import Settings, load_settings
from pygnss_archive.core.exceptions import (
    PyGNSSArchiveError,
    RequestValidationError,
)
from pygnss_archive.core.pipeline import DownloadPipeline, DownloadRequest
from pygnss_archive.utils.dates import parse_iso_date
from pygnss_archive.utils.logging import setup_logging


EXIT_NOT_FOUND = 1
EXIT_INVALID = 2
EXIT_SERVER_ERROR = 3


def _split_stations(value: str) -> list[str]:
    return [s.strip() for s in value.split(",") if s.strip()]


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _fail(exc: PyGNSSArchiveError) -> None:
    click.echo(f"Error: {exc.public_message}", err=True)
    if isinstance(exc, RequestValidationError):
        sys.exit(EXIT_INVALID)
    sys.exit(EXIT_SERVER_ERROR)


@click.group()
@click.version_option(version=__version__, prog_name="PyGNSS-Archive")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--verbose", "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.option(
    "--debug",
    is_flag=True,
    help="Enable debug mode",
)
@click.pass_context
def cli(ctx: click.Context, config: Path | None, verbose: bool, debug: bool) -> None:
    """PyGNSS-Archive: GNSS station data download tool

    Finds daily observation files for the requested stations on the remote
    archive and packs them into a single zip file.
    """
    ctx.ensure_object(dict)
    settings = load_settings(config)
    ctx.obj["settings"] = settings

    level = "DEBUG" if debug else ("INFO" if verbose else settings.logging.level)
    setup_logging(
        level=level,
        log_dir=settings.logging.log_dir,
        log_to_file=settings.logging.log_to_file,
        log_to_console=settings.logging.log_to_console,
        json_format=settings.logging.json_format,
    )


@cli.command()
@click.option(
    "--stations", "-S",
    type=str,
    required=True,
    help="Comma-separated list of stations",
)
@click.option(
    "--start-date", "-s",
    type=str,
    required=True,
    help="Start date (YYYY-MM-DD)",
)
@click.option(
    "--end-date", "-e",
    type=str,
    help="End date (YYYY-MM-DD, defaults to start date)",
)
@click.option(
    "--output", "-o",
    type=click.Path(path_type=Path),
    default=Path("."),
    help="Output .zip file, or directory (created if missing)",
)
@click.pass_context
def download(
    ctx: click.Context,
    stations: str,
    start_date: str,
    end_date: str | None,
    output: Path,
) -> None:
    """Download station files as a zip archive.

    Examples:

        # Three days for two stations into ./out
        pygnss-archive download -S vlkz,abcd -s 2025-07-20 -e 2025-07-22 -o out
    """
    pipeline = DownloadPipeline.from_settings(_settings(ctx))
    request = DownloadRequest(
        stations=_split_stations(stations),
        start_date=start_date,
        end_date=end_date or start_date,
    )

    try:
        outcome = pipeline.download_to(request, output)
    except PyGNSSArchiveError as e:
        _fail(e)
        return

    if not outcome.success:
        click.echo(outcome.message, err=True)
        sys.exit(EXIT_NOT_FOUND)

    click.echo(f"Archived {len(outcome.files)} files to {outcome.saved_to}")
    for f in outcome.files:
        click.echo(f"  {f.filename}")


@cli.command()
@click.option(
    "--stations", "-S",
    type=str,
    required=True,
    help="Comma-separated list of stations",
)
@click.option(
    "--start-date", "-s",
    type=str,
    required=True,
    help="Start date (YYYY-MM-DD)",
)
@click.option(
    "--end-date", "-e",
    type=str,
    help="End date (YYYY-MM-DD, defaults to start date)",
)
@click.option(
    "--format", "-f",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.pass_context
def availability(
    ctx: click.Context,
    stations: str,
    start_date: str,
    end_date: str | None,
    format: str,
) -> None:
    """Show which days have files for each station."""
    pipeline = DownloadPipeline.from_settings(_settings(ctx))
    request = DownloadRequest(
        stations=_split_stations(stations),
        start_date=start_date,
        end_date=end_date or start_date,
    )

    try:
        report = pipeline.availability(request)
    except PyGNSSArchiveError as e:
        _fail(e)
        return

    if format == "json":
        click.echo(json.dumps([r.to_dict() for r in report], indent=2))
        return

    click.echo(f"{'Station':<8} {'Found':>5} {'Expected':>8} {'Complete':>9}  Missing")
    click.echo("-" * 60)
    for r in report:
        missing = ",".join(str(d) for d in r.missing_days) or "-"
        click.echo(
            f"{r.station:<8} {r.found_count:>5} {r.expected:>8} "
            f"{r.completeness:>8.1f}%  {missing}"
        )


@cli.command("check-connection")
@click.option(
    "--station",
    type=str,
    required=True,
    help="Station to probe",
)
@click.option(
    "--date", "on_date",
    type=str,
    help="Day to probe (YYYY-MM-DD, defaults to today)",
)
@click.pass_context
def check_connection(ctx: click.Context, station: str, on_date: str | None) -> None:
    """Test the remote connection by probing one station-day."""
    settings = _settings(ctx)
    pipeline = DownloadPipeline.from_settings(settings)

    try:
        day = parse_iso_date(on_date) if on_date else date.today()
    except ValueError:
        raise click.BadParameter(f"Invalid date: {on_date}", param_hint="--date")

    try:
        found = pipeline.check_connection(station, day)
    except PyGNSSArchiveError as e:
        _fail(e)
        return

    click.echo(f"Connection to {settings.remote.host} OK. Files found: {found}")


@cli.command("show-config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Print the remote configuration (secrets redacted)."""
    remote = _settings(ctx).remote
    click.echo(json.dumps(remote.describe(), indent=2))
    missing = remote.missing_fields()
    if missing:
        click.echo(f"Missing: {', '.join(missing)}", err=True)


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
