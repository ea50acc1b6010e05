"""
Logging utilities for PyGNSS-Archive.

structlog renders every record; stdlib handlers decide where it goes. Log
output is for operators, so remote credentials never reach it: any event
key that looks like a secret is masked before rendering, and paramiko's
transport chatter is held back unless DEBUG is requested.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, MutableMapping

import structlog


LOG_FILE_NAME = "pygnss_archive.log"
REDACTED = "***"
SECRET_KEYS = frozenset({"password", "passphrase", "secret", "token"})


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask values of secret-looking keys (``password``, ``key_passphrase``...)."""
    for key in list(event_dict):
        if key.lower().rsplit("_", 1)[-1] in SECRET_KEYS:
            if event_dict[key] is not None:
                event_dict[key] = REDACTED
    return event_dict


def quiet_transport_loggers(level: int) -> None:
    """paramiko logs banner and auth negotiation at INFO."""
    transport_level = level if level <= logging.DEBUG else max(level, logging.WARNING)
    logging.getLogger("paramiko").setLevel(transport_level)


def build_processors(json_format: bool = False) -> list[Any]:
    """Processor chain shared by console and file output."""
    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def setup_logging(
    level: str = "INFO",
    log_dir: Path | str | None = None,
    log_to_file: bool = True,
    log_to_console: bool = True,
    json_format: bool = False,
) -> None:
    """Configure logging for the application.

    Console output goes to stderr so command output on stdout stays
    parseable. Calling this again replaces the previous configuration.

    Args:
        level: Log level name; unknown names fall back to INFO
        log_dir: Directory for ``pygnss_archive.log``
        log_to_file: Whether to log to file (needs log_dir)
        log_to_console: Whether to log to stderr
        json_format: One JSON object per line instead of key=value text
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []
    if log_to_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_to_file and log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path / LOG_FILE_NAME))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(level=log_level, handlers=handlers, format="%(message)s", force=True)
    quiet_transport_loggers(log_level)

    structlog.configure(
        processors=build_processors(json_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
