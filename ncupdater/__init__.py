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
Nextcloud Manual Update Utility

Interactive updater for a single self-hosted Nextcloud install: download,
backup, rsync (config/ and data/ preserved), chown, occ upgrade, optional
repairs. Every step waits for the operator and is logged to
/var/log/nextcloud-update-<timestamp>.log.

Usage:
    sudo ncupdater
    sudo python -m ncupdater --check
"""

from .config import UpdateConfig, load_config
from .errors import UpdateError, CommandFailedError
from .updater import NextcloudUpdater
from .utils.index import log_message

__version__ = "1.0.0"

__all__ = [
    'UpdateConfig',
    'load_config',
    'UpdateError',
    'CommandFailedError',
    'NextcloudUpdater',
    'log_message'
]
