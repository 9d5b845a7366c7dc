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

"""
Exit statuses and the exception types that carry them up to the CLI.
"""

from typing import List

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NOT_ROOT = 2
EXIT_MISSING_DIRECTORY = 3
EXIT_MISSING_TMP_DIR = 4
EXIT_EXTRACTION_FAILED = 5
EXIT_DOWNLOAD_FAILED = 6
EXIT_DOWNGRADE_DECLINED = 7
EXIT_INTERRUPTED = 130
EXIT_TERMINATED = 143


class UpdateError(Exception):
    """Base class for failures that end the run with a specific exit status."""

    exit_code = EXIT_ERROR

    def __init__(self, message: str, exit_code: int = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(UpdateError):
    """Configuration file missing or unreadable."""


class PreflightError(UpdateError):
    """Privilege or directory precondition not met; nothing has been changed yet."""


class DownloadError(UpdateError):
    exit_code = EXIT_DOWNLOAD_FAILED


class ExtractionError(UpdateError):
    exit_code = EXIT_EXTRACTION_FAILED


class DowngradeDeclined(UpdateError):
    exit_code = EXIT_DOWNGRADE_DECLINED


class CommandFailedError(UpdateError):
    """An external command returned non-zero; the run exits with its status."""

    def __init__(self, command: List[str], returncode: int):
        self.command = list(command)
        self.returncode = returncode
        # Popen reports death by signal N as -N; the shell convention is 128+N
        exit_code = returncode if returncode > 0 else 128 - returncode
        super().__init__(
            f"command failed with exit code {returncode}: {' '.join(self.command)}",
            exit_code=exit_code,
        )


class Terminated(UpdateError):
    """SIGTERM received while the update was running."""
    exit_code = EXIT_TERMINATED
