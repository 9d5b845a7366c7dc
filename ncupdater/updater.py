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
Nextcloud Update Orchestrator

Runs the manual update procedure as a fixed sequence of phases, each one
behind an operator confirmation:

    preflight -> version -> plan -> download -> maintenance on -> backup
    -> extract -> rsync -> chown -> occ upgrade -> repair (optional)
    -> maintenance off -> final status

config/, data/, .user.ini and .htaccess in the install directory are never
touched by the rsync step. Whatever way the run ends, on_exit() checks
`occ status` and switches maintenance mode off if it is still on.
"""

import os
from typing import Callable, Optional

from packaging.version import InvalidVersion, Version

from .errors import (
    EXIT_ERROR,
    EXIT_INTERRUPTED,
    EXIT_MISSING_DIRECTORY,
    EXIT_MISSING_TMP_DIR,
    EXIT_NOT_ROOT,
    EXIT_OK,
    CommandFailedError,
    DowngradeDeclined,
    ExtractionError,
    PreflightError,
    UpdateError,
)
from .download import ArchiveDownloader
from .occ import OccClient
from .prompts import Prompter
from .utils.backup import BackupManager
from .utils.commands import CommandRunner
from .utils.index import iso_now, log_message, log_session_header, setup_update_logging
from .utils.permissions import PermissionManager

REPAIR_COMMANDS = (
    "db:add-missing-indices",
    "db:add-missing-columns",
    "db:add-missing-primary-keys",
    "maintenance:repair",
)


class NextcloudUpdater:
    """Sequences and supervises one interactive Nextcloud update."""

    def __init__(self, config, runner: Optional[CommandRunner] = None,
                 prompter: Optional[Prompter] = None,
                 occ: Optional[OccClient] = None,
                 downloader: Optional[ArchiveDownloader] = None,
                 backup_manager: Optional[BackupManager] = None,
                 permission_manager: Optional[PermissionManager] = None,
                 geteuid: Callable[[], int] = os.geteuid,
                 configure_logging: bool = True):
        self.config = config
        self.runner = runner or CommandRunner(log_file=str(config.log_file))
        self.prompter = prompter or Prompter()
        self.occ = occ or OccClient(config, self.runner)
        self.downloader = downloader or ArchiveDownloader(self.prompter)
        self.backup_manager = backup_manager or BackupManager(self.runner)
        self.permission_manager = permission_manager or PermissionManager(self.runner)
        self.geteuid = geteuid
        self.configure_logging = configure_logging

        # Any checked command failure tries to leave maintenance mode first
        self.runner.set_failure_hook(self.occ.try_maintenance_off)

    # --- Entry point ---
    def run(self) -> int:
        """
        Execute the whole update.

        Returns:
            int: process exit status (0 on success)
        """
        try:
            self.ensure_root()
        except PreflightError as e:
            log_message(f"ERROR: {e}", "ERROR")
            return e.exit_code

        exit_code = EXIT_ERROR
        try:
            self.run_phases()
            exit_code = EXIT_OK
        except CommandFailedError as e:
            # run_and_check() already logged the failure
            exit_code = e.exit_code
        except UpdateError as e:
            log_message(f"ERROR: {e}", "ERROR")
            exit_code = e.exit_code
        except KeyboardInterrupt:
            log_message("Update aborted by operator.", "WARNING")
            exit_code = EXIT_INTERRUPTED
        finally:
            self.on_exit(exit_code)
        return exit_code

    def run_phases(self) -> None:
        self.start_log()
        self.validate_directories()

        config = self.resolve_version()
        installed_version = self.occ.installed_version()
        self.check_downgrade(config, installed_version)
        self.announce_plan(config)

        self.download_phase(config)
        self.maintenance_on_phase()
        self.backup_phase(config, installed_version)
        self.extract_phase(config)
        self.sync_phase(config)
        self.ownership_phase(config)
        self.upgrade_phase()
        self.repair_phase()
        self.maintenance_off_phase()
        self.final_report(config)

    # --- Preflight ---
    def ensure_root(self) -> None:
        if self.geteuid() != 0:
            raise PreflightError("this script must be run as root (use sudo).", EXIT_NOT_ROOT)

    def start_log(self) -> None:
        if self.configure_logging:
            setup_update_logging(self.config.log_file)
        log_session_header(self.config)

    def validate_directories(self) -> None:
        for label, path in (("install dir", self.config.install_dir),
                            ("data dir", self.config.data_dir)):
            if not path.is_dir():
                raise PreflightError(f"{label} {path} does not exist.", EXIT_MISSING_DIRECTORY)
        if not self.config.tmp_dir.is_dir():
            raise PreflightError(f"temp dir {self.config.tmp_dir} does not exist.", EXIT_MISSING_TMP_DIR)

    # --- Version and plan ---
    def resolve_version(self):
        version = self.prompter.ask_version(self.config.default_version)
        config = self.config.with_version(version)
        log_message(f"Target version: {config.target_version}")
        log_message(f"Download URL: {config.download_url}")
        return config

    def check_downgrade(self, config, installed_version: Optional[str]) -> None:
        """Nextcloud cannot be downgraded; make the operator confirm an older target."""
        if not installed_version:
            log_message("Installed version unknown (occ status gave no versionstring)", "WARNING")
            return
        log_message(f"Installed version: {installed_version}")
        try:
            installed = Version(installed_version)
            target = Version(config.target_version)
        except InvalidVersion:
            log_message(f"Cannot compare versions {installed_version} and {config.target_version}", "DEBUG")
            return

        if target == installed:
            log_message(f"Nextcloud is already at {installed_version}; occ upgrade will have nothing to do.")
        elif target < installed:
            log_message(
                f"Target version {config.target_version} is older than installed {installed_version}. "
                "Nextcloud does not support downgrades.",
                "WARNING",
            )
            if not self.prompter.ask_yes_no("Continue anyway?", default_yes=False):
                raise DowngradeDeclined(
                    f"downgrade from {installed_version} to {config.target_version} declined"
                )
            log_message("Operator chose to continue with an older target version.", "WARNING")

    def announce_plan(self, config) -> None:
        show = self.prompter.show
        show()
        show("Planned actions (summary):")
        show(f" - Download nextcloud-{config.target_version}.zip to {config.tmp_dir}")
        show(" - Enable maintenance mode")
        show(f" - Backup {config.install_dir} (verbose) => {config.backup_dir}/")
        show(f" - Rsync new files from extracted ZIP, excluding {', '.join(config.sync_excludes)}")
        show(f" - chown -R {config.service_user}:{config.service_user} {config.install_dir}")
        show(" - Run occ upgrade")
        show(" - Optional post-upgrade repair commands")
        show(" - Disable maintenance mode")
        show()
        self.prompter.pause("Review the summary above.")

    # --- Phases ---
    def download_phase(self, config) -> None:
        self.prompter.pause(
            f"About to download {config.download_url} into {config.tmp_dir} "
            "(will overwrite same filename if present)."
        )
        self.downloader.fetch(config)

    def maintenance_on_phase(self) -> None:
        self.prompter.pause(
            "About to enable maintenance mode (occ maintenance:mode --on). "
            "This prevents logins and sync during the update."
        )
        self.occ.maintenance_on()

    def backup_phase(self, config, installed_version: Optional[str]) -> None:
        self.prompter.pause(
            "A backup of current Nextcloud code and config will be made using cp -av. "
            "This may take time depending on size."
        )
        config.backup_root.mkdir(parents=True, exist_ok=True)
        self.backup_manager.create_backup(config, installed_version)

    def extract_phase(self, config) -> None:
        extract_dir = config.extract_dir
        self.prompter.pause(
            f"Will extract the ZIP to {extract_dir} (previous extraction will be removed)."
        )
        self.runner.run_and_check(["rm", "-rf", str(extract_dir)])
        self.runner.run_and_check(["unzip", "-q", str(config.archive_path), "-d", str(config.tmp_dir)])
        if not extract_dir.is_dir():
            log_message(f"ERROR: extracted folder {extract_dir} not found.", "ERROR")
            raise ExtractionError(f"extracted folder {extract_dir} not found")

        log_message("Extraction complete.")
        for entry in sorted(os.listdir(extract_dir)):
            log_message(f"  {entry}")

    def sync_phase(self, config) -> None:
        self.prompter.pause(
            f"Will rsync new files into {config.install_dir} preserving "
            f"{', '.join(config.sync_excludes)} (rsync -av --delete)."
        )
        self.runner.run_and_check(build_rsync_command(config))

    def ownership_phase(self, config) -> None:
        user = config.service_user
        self.prompter.pause(
            f"Set ownership to {user}:{user} recursively on {config.install_dir} "
            "(this may take a moment)."
        )
        self.permission_manager.restore_service_ownership(config.install_dir, user)

    def upgrade_phase(self) -> None:
        self.prompter.pause("About to run 'occ upgrade' to update DB and apps. This can take some time.")
        self.occ.upgrade()

    def repair_phase(self) -> bool:
        """Run the four repair commands as a unit, or none of them."""
        self.prompter.show()
        question = f"Run recommended post-upgrade repair commands? ({', '.join(REPAIR_COMMANDS)})"
        if not self.prompter.ask_yes_no(question, default_yes=True):
            log_message("Skipping post-upgrade repair commands.")
            return False

        self.occ.add_missing_indices()
        self.occ.add_missing_columns()
        self.occ.add_missing_primary_keys()
        self.occ.repair()
        return True

    def maintenance_off_phase(self) -> None:
        self.prompter.pause("About to disable maintenance mode (occ maintenance:mode --off).")
        self.occ.maintenance_off()

    def final_report(self, config) -> None:
        log_message("Final status (occ status):")
        self.occ.status()

        log_message(f"Update finished at {iso_now()}.")
        log_message(f"Log saved to: {config.log_file}")
        log_message(f"Backups saved to: {config.backup_dir}")
        info = BackupManager.load_info(config.backup_dir)
        if info:
            log_message(
                f"Backup record: installed {info.installed_version or 'unknown'}, "
                f"target {info.target_version}, {len(info.copied_paths)} path(s) copied"
            )
        show = self.prompter.show
        show()
        show(f"Reminder: if you downloaded ZIP into {config.tmp_dir} and want to remove it now, you can:")
        show(f"  rm -f {config.archive_path} ; rm -rf {config.extract_dir}")
        show()

    # --- Exit path ---
    def on_exit(self, exit_code: int) -> None:
        """Leave maintenance mode if it is still on. Never raises."""
        try:
            log_message(f"Script exited with code {exit_code} at {iso_now()}")
            if not self.config.occ_path.exists():
                return
            if self.occ.is_maintenance_enabled():
                log_message("Attempting to disable maintenance mode...")
                self.occ.try_maintenance_off()
        except (Exception, KeyboardInterrupt) as e:
            log_message(f"Exit cleanup failed: {e}", "WARNING")


def build_rsync_command(config):
    """rsync mirroring the extracted release onto the install dir, anchored excludes."""
    cmd = ["rsync", "-av", "--delete", f"{config.extract_dir}/", f"{config.install_dir}/"]
    cmd.extend(f"--exclude=/{name}" for name in config.sync_excludes)
    return cmd
