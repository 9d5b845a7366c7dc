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

import os
from pathlib import Path

import requests

from .errors import DownloadError
from .utils.index import human_size, log_message

CHUNK_SIZE = 1024 * 1024
PARTIAL_SUFFIX = ".part"


def download_file(url, dest, timeout=60):
    """
    Stream url into dest, overwriting it. Raises requests/OS errors.

    Data goes to <dest>.part first and is renamed into place once complete,
    so an interrupted transfer never leaves a truncated dest behind.
    """
    dest = Path(dest)
    partial = dest.with_name(dest.name + PARTIAL_SUFFIX)
    log_message(f"+ GET {url} -> {dest}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            r.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
        os.replace(partial, dest)
    except BaseException:
        if partial.exists():
            partial.unlink()
        raise


class ArchiveDownloader:
    """Fetches the release ZIP into the temp directory."""

    def __init__(self, prompter):
        self.prompter = prompter

    def _keep_existing(self, config, archive: Path) -> bool:
        """Ask whether an archive already at the destination should be reused."""
        log_message(f"Note: {archive} already exists. Will overwrite after confirmation.")
        if not config.allow_stale_archive:
            log_message("Reusing a previously downloaded archive is disabled; replacing it.")
            return False
        if self.prompter.ask_yes_no(f"Remove existing {archive} and download fresh?", default_yes=True):
            return False
        # No check that the kept file matches the requested version
        log_message("Keeping existing ZIP.")
        return True

    def fetch(self, config) -> Path:
        """
        Make the archive for the target version available locally.

        Returns:
            Path: the archive path

        Raises:
            DownloadError: on any network or filesystem failure
        """
        archive = config.archive_path
        url = config.download_url

        try:
            if archive.exists() and self._keep_existing(config, archive):
                self.log_size(archive)
                return archive

            if archive.exists():
                log_message(f"Removing {archive}")
                os.remove(archive)

            download_file(url, archive, timeout=config.download_timeout)
        except requests.RequestException as e:
            log_message(f"ERROR: download of {url} failed: {e}", "ERROR")
            raise DownloadError(f"Download failed: {url}: {e}")
        except OSError as e:
            log_message(f"ERROR: could not write {archive}: {e}", "ERROR")
            raise DownloadError(f"Could not write {archive}: {e}")

        self.log_size(archive)
        return archive

    @staticmethod
    def log_size(archive: Path) -> None:
        size = archive.stat().st_size
        log_message(f"{archive}: {human_size(size)} ({size} bytes)")
