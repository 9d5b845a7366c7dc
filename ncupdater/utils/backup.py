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
Backup Manager

One timestamped backup directory per run under the backup root:
- a verbose, attribute-preserving copy of the whole install tree
- a second, separate copy of the config/ subtree
- backup_info.json describing what was copied

The data directory is not backed up here. Backups are never removed
automatically; restoring one is a manual operation.
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .commands import CommandRunner
from .index import iso_now, log_message

BACKUP_INFO_FILE = "backup_info.json"


@dataclass
class BackupInfo:
    """Information about one update backup."""
    timestamp: str
    created_at: str
    backup_dir: str
    install_dir: str
    target_version: str
    installed_version: Optional[str] = None
    copied_paths: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BackupInfo':
        return cls(**data)


class BackupManager:
    """Creates the pre-update backup of the install tree and its config."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def create_backup(self, config, installed_version: Optional[str] = None) -> BackupInfo:
        """
        Copy the install tree and, separately, its config/ into the run's backup dir.

        Raises:
            CommandFailedError: if either copy fails
        """
        install_dir = config.install_dir
        backup_dir = config.backup_dir

        backup_dir.mkdir(parents=True, exist_ok=True)
        log_message(f"Backing up {install_dir} -> {backup_dir}")
        self.runner.run_and_check(["cp", "-a", "-v", str(install_dir), f"{backup_dir}/"])

        copied = [str(backup_dir / install_dir.name)]

        config_dir = config.config_dir
        config_backup = backup_dir / "config"
        log_message("Backing up config separately (verbose).")
        self.runner.run_and_check(["cp", "-a", "-v", str(config_dir), str(config_backup)])
        copied.append(str(config_backup))

        info = BackupInfo(
            timestamp=config.run_timestamp,
            created_at=iso_now(),
            backup_dir=str(backup_dir),
            install_dir=str(install_dir),
            target_version=config.target_version,
            installed_version=installed_version,
            copied_paths=copied,
        )
        self._write_info(backup_dir, info)
        log_message(f"✓ Backup created at {backup_dir}")
        return info

    def _write_info(self, backup_dir: Path, info: BackupInfo) -> None:
        try:
            with open(backup_dir / BACKUP_INFO_FILE, 'w') as f:
                json.dump(info.to_dict(), f, indent=2)
        except OSError as e:
            log_message(f"Failed to write backup info: {e}", "WARNING")

    @staticmethod
    def load_info(backup_dir: Path) -> Optional[BackupInfo]:
        """Read backup_info.json from a backup directory, None if absent or unreadable."""
        try:
            with open(Path(backup_dir) / BACKUP_INFO_FILE, 'r') as f:
                return BackupInfo.from_dict(json.load(f))
        except Exception as e:
            log_message(f"Failed to load backup info from {backup_dir}: {e}", "WARNING")
            return None
