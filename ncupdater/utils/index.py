"""
Nextcloud Manual Update Utility
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "ncupdater"
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger(LOGGER_NAME)


def log_message(message, level="INFO"):
    """
    Log a message through the updater logger.
    Args:
        message (str): The message to log.
        level (str): Log level (e.g., 'INFO', 'ERROR').
    """
    if level == "ERROR":
        logger.error(message)
    elif level == "WARNING":
        logger.warning(message)
    elif level == "DEBUG":
        logger.debug(message)
    else:
        logger.info(message)


def make_run_timestamp(now: Optional[datetime.datetime] = None) -> str:
    """Return the run identifier used in log and backup names (YYYYmmdd_HHMMSS)."""
    now = now or datetime.datetime.now()
    return now.strftime("%Y%m%d_%H%M%S")


def iso_now() -> str:
    return datetime.datetime.now().astimezone().isoformat(timespec="seconds")


def setup_update_logging(log_file: Optional[Path] = None, verbose: bool = False) -> None:
    """
    Configure stdout logging and, when a log file is given, an append-only
    file handler on the same format.

    Every phase logs through the same logger so the file receives command
    lines, command output and phase banners interleaved in run order.
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(formatter)

    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def log_session_header(config) -> None:
    """Write the run header: start time and the resolved paths."""
    log_message("=" * 80)
    log_message(f"=== Nextcloud manual update started: {iso_now()} ===")
    log_message(f"Install dir: {config.install_dir}")
    log_message(f"Data dir:    {config.data_dir}")
    log_message(f"Backup base: {config.backup_root}")
    log_message(f"Log file:    {config.log_file}")
    log_message(f"Command: {' '.join(sys.argv)}")
    log_message(f"Working Directory: {os.getcwd()}")
    log_message("=" * 80)


def human_size(num_bytes: int) -> str:
    """Format a byte count the way `ls -lh` does (1024 based, one decimal)."""
    size = float(num_bytes)
    for unit in ("B", "K", "M", "G"):
        if size < 1024:
            if unit == "B":
                return f"{int(size)}{unit}"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}T"
