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
Utilities for the Nextcloud updater.

Logging, external command execution, ownership and backups shared by the
update phases.
"""

from .index import log_message, setup_update_logging, make_run_timestamp
from .commands import CommandRunner, CommandResult
from .permissions import PermissionManager, PermissionTarget
from .backup import BackupManager, BackupInfo

__all__ = [
    'log_message',
    'setup_update_logging',
    'make_run_timestamp',
    'CommandRunner',
    'CommandResult',
    'PermissionManager',
    'PermissionTarget',
    'BackupManager',
    'BackupInfo'
]
