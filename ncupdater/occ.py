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
Nextcloud occ client.

Every call runs `sudo -u <service_user> php <install_dir>/occ <args>` through
the command runner. Calls that can leave the instance stuck in maintenance
mode go through run_and_check(); status queries and the best-effort
maintenance-off do not.
"""

import re
from typing import List, Optional

from .utils.commands import CommandResult, CommandRunner
from .utils.index import log_message

MAINTENANCE_ACTIVE_MARKER = "maintenance: true"


class OccClient:
    """Thin wrapper around the Nextcloud administrative CLI."""

    def __init__(self, config, runner: CommandRunner):
        self.config = config
        self.runner = runner

    def command(self, *args: str) -> List[str]:
        return self.runner.as_user(
            self.config.service_user,
            [self.config.php_binary, str(self.config.occ_path)] + list(args),
        )

    def _check(self, *args: str) -> CommandResult:
        return self.runner.run_and_check(self.command(*args))

    # --- Status ---
    def status(self, quiet: bool = False) -> CommandResult:
        return self.runner.run(self.command("status"), quiet=quiet)

    def is_maintenance_enabled(self) -> bool:
        """True when `occ status` reports maintenance: true."""
        result = self.status(quiet=True)
        return MAINTENANCE_ACTIVE_MARKER in result.output

    def installed_version(self) -> Optional[str]:
        """
        Read the installed version from `occ status`.
        Returns:
            str: Version string like "31.0.9", or None if it cannot be read
        """
        try:
            result = self.status(quiet=True)
        except Exception as e:
            log_message(f"Failed to query occ status: {e}", "WARNING")
            return None
        if not result.ok:
            return None
        match = re.search(r'versionstring:\s*(\S+)', result.output)
        if match:
            return match.group(1)
        match = re.search(r'version:\s*(\d+(?:\.\d+)+)', result.output)
        return match.group(1) if match else None

    # --- Maintenance mode ---
    def maintenance_on(self) -> CommandResult:
        return self._check("maintenance:mode", "--on")

    def maintenance_off(self) -> CommandResult:
        return self._check("maintenance:mode", "--off")

    def try_maintenance_off(self) -> bool:
        """Best-effort maintenance-mode disable; never raises."""
        try:
            return self.runner.run(self.command("maintenance:mode", "--off")).ok
        except Exception as e:
            log_message(f"Could not disable maintenance mode: {e}", "WARNING")
            return False

    # --- Upgrade and repair ---
    def upgrade(self) -> CommandResult:
        return self._check("upgrade")

    def add_missing_indices(self) -> CommandResult:
        return self._check("db:add-missing-indices")

    def add_missing_columns(self) -> CommandResult:
        return self._check("db:add-missing-columns")

    def add_missing_primary_keys(self) -> CommandResult:
        """Failure is tolerated; the result is returned instead of raising."""
        result = self.runner.run(self.command("db:add-missing-primary-keys"))
        if not result.ok:
            log_message(
                f"db:add-missing-primary-keys failed with exit code {result.returncode} (continuing)",
                "WARNING",
            )
        return result

    def repair(self) -> CommandResult:
        return self._check("maintenance:repair")
