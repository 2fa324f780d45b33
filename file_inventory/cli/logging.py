"""CLI logging configuration with file output.

Provides ``configure_cli_logging`` which sets up a rotating DEBUG log file
per CLI command under ``~/.local/share/file-inventory/logs/`` plus a
console handler, so scheduled runs leave a trail even when nobody reads
stdout.

Naming convention::

    <command>.log              # e.g. scan.log, check.log

Usage from any CLI command::

    from file_inventory.cli.logging import configure_cli_logging

    configure_cli_logging("scan", verbose=verbose)

The directory can be moved with ``FILE_INVENTORY_LOG_DIR``.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Standard log directory follows XDG convention
LOG_DIR = Path.home() / ".local" / "share" / "file-inventory" / "logs"

_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_log_dir() -> Path:
    """Return the CLI log directory, creating it if needed."""
    log_dir = Path(os.getenv("FILE_INVENTORY_LOG_DIR", LOG_DIR)).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_log_file(command: str) -> Path:
    """Return the log file path for a given CLI command."""
    return get_log_dir() / f"{command}.log"


def configure_cli_logging(
    command: str,
    *,
    verbose: bool = False,
    console: bool = True,
    console_level: int | None = None,
    file_level: int = logging.DEBUG,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 3,
) -> Path:
    """Configure logging for a CLI command with file output.

    Sets up:
    - File handler: DEBUG-level rotating log at
      ``~/.local/share/file-inventory/logs/<command>.log``
    - Console handler (stderr): WARNING, or INFO when verbose. Skipped
      when ``console=False`` (rich output renders its own console view).

    Returns:
        Path to the log file
    """
    log_file = get_log_file(command)

    package_logger = logging.getLogger("file_inventory")

    # Remove our handlers from earlier calls to avoid duplicates
    for handler in package_logger.handlers[:]:
        if isinstance(handler, (RotatingFileHandler, logging.StreamHandler)):
            package_logger.removeHandler(handler)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    package_logger.addHandler(file_handler)

    level = console_level or (logging.INFO if verbose else logging.WARNING)
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(level)
        stream_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        package_logger.addHandler(stream_handler)

    # NOTSET would inherit WARNING from root and starve the file handler
    if package_logger.level == logging.NOTSET or package_logger.level > file_level:
        package_logger.setLevel(file_level)

    return log_file
