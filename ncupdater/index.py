#!/usr/bin/env python3
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

import argparse
import json
import os
import signal
import sys
import threading
import traceback

from packaging.version import InvalidVersion, Version

from .config import load_config
from .errors import (
    EXIT_ERROR,
    EXIT_INTERRUPTED,
    EXIT_MISSING_DIRECTORY,
    EXIT_NOT_ROOT,
    EXIT_OK,
    Terminated,
    UpdateError,
)
from .occ import OccClient
from .updater import NextcloudUpdater
from .utils.commands import CommandRunner
from .utils.index import log_message, setup_update_logging


def _raise_terminated(signum, frame):
    raise Terminated("received SIGTERM")


def install_signal_handlers() -> None:
    """Turn SIGTERM into an exception so the exit cleanup still runs."""
    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGTERM, _raise_terminated)


def show_config(config) -> int:
    log_message("Current Nextcloud updater configuration:")
    for line in json.dumps(config.to_dict(), indent=2).splitlines():
        log_message(f"  {line}")
    return EXIT_OK


def check_versions(config) -> int:
    """
    Report installed and default target versions without changing anything.

    Returns:
        int: exit status
    """
    # occ runs through sudo -u, which would stop for a password without root
    if os.geteuid() != 0:
        log_message("ERROR: --check must be run as root (use sudo).", "ERROR")
        return EXIT_NOT_ROOT
    if not config.install_dir.is_dir():
        log_message(f"ERROR: install dir {config.install_dir} does not exist.", "ERROR")
        return EXIT_MISSING_DIRECTORY

    occ = OccClient(config, CommandRunner())
    installed = occ.installed_version()
    target = config.default_version
    if not installed:
        log_message("Could not read installed version from occ status", "ERROR")
        return EXIT_ERROR

    log_message(f"OK - Installed version: {installed}")
    log_message(f"Default target version: {target}")
    try:
        if Version(target) > Version(installed):
            log_message(f"Update available: {installed} → {target}")
        else:
            log_message("No newer default target configured")
    except InvalidVersion as e:
        log_message(f"Cannot compare versions: {e}", "WARNING")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Interactive Nextcloud manual updater (run as root)"
    )
    parser.add_argument("--config-file", metavar="PATH", default=None,
                        help="Load configuration from this index.json instead of the bundled one")
    parser.add_argument("--show-config", action="store_true",
                        help="Print the resolved configuration and exit")
    parser.add_argument("--check", action="store_true",
                        help="Only report installed and default target versions")
    return parser


def main(argv=None):
    """
    Main entry point for the Nextcloud updater.
    Exits with the status of the run (see errors.py for the codes).
    """
    args = build_parser().parse_args(argv)

    try:
        setup_update_logging()
        config = load_config(args.config_file)

        if args.show_config:
            sys.exit(show_config(config))
        if args.check:
            sys.exit(check_versions(config))

        install_signal_handlers()
        sys.exit(NextcloudUpdater(config).run())

    except UpdateError as e:
        log_message(f"ERROR: {e}", "ERROR")
        sys.exit(e.exit_code)
    except KeyboardInterrupt:
        log_message("Update process interrupted by user", "WARNING")
        sys.exit(EXIT_INTERRUPTED)
    except Exception as e:
        log_message(f"Unhandled error in update process: {e}", "ERROR")
        traceback.print_exc()
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
