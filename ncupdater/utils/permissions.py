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

"""
Ownership Management

Restores service-account ownership on the install tree after new files have
been synchronized into it as root. Runs `chown` through the command runner so
a failure is fatal and triggers the maintenance-mode safety net.
"""

import os
from dataclasses import dataclass
from typing import List

from .commands import CommandRunner
from .index import log_message


@dataclass
class PermissionTarget:
    """Represents a file or directory with its desired ownership."""
    path: str
    owner: str
    group: str
    recursive: bool = False  # Apply ownership recursively for directories


class PermissionManager:
    """Applies ownership to install paths."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def set_ownership(self, targets: List[PermissionTarget]) -> bool:
        """
        Set ownership for multiple targets.

        Args:
            targets: List of PermissionTarget objects

        Returns:
            bool: True once every existing target has been processed

        Raises:
            CommandFailedError: if chown fails for any target
        """
        if not targets:
            log_message("No permission targets specified", "WARNING")
            return True

        log_message(f"Setting ownership for {len(targets)} targets...")

        for target in targets:
            if not os.path.exists(target.path):
                log_message(f"Skipping {target.path} - does not exist", "DEBUG")
                continue

            cmd = ["chown"]
            if target.recursive and os.path.isdir(target.path):
                cmd.append("-R")
            cmd.extend([f"{target.owner}:{target.group}", str(target.path)])
            self.runner.run_and_check(cmd)
            log_message(f"✓ Set ownership for {target.path} ({target.owner}:{target.group})")

        return True

    def restore_service_ownership(self, install_dir: str, service_user: str) -> bool:
        """Give the whole install tree to the service account (user and group)."""
        return self.set_ownership([
            PermissionTarget(
                path=str(install_dir),
                owner=service_user,
                group=service_user,
                recursive=True,
            )
        ])
