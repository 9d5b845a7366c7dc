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
External Command Execution

Every external command the updater runs goes through CommandRunner so that
the command line and its combined stdout/stderr land in the run log as they
happen. run_and_check() is the failing variant: on a non-zero exit status it
fires the failure hook (leave maintenance mode) and raises CommandFailedError.

Usage:
    runner = CommandRunner(log_file="/var/log/nextcloud-update-<ts>.log")
    runner.set_failure_hook(occ.try_maintenance_off)
    runner.run_and_check(["rsync", "-av", src, dst])
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from ..errors import CommandFailedError
from .index import log_message


@dataclass
class CommandResult:
    """Exit status and captured combined output of one command."""
    command: List[str]
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def format_command(command: List[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandRunner:
    """Runs external commands, streaming their output into the update log."""

    def __init__(self, log_file: Optional[str] = None):
        self.log_file = log_file
        self._failure_hook: Optional[Callable[[], None]] = None

    def set_failure_hook(self, hook: Optional[Callable[[], None]]) -> None:
        """Register the best-effort cleanup run before run_and_check() raises."""
        self._failure_hook = hook

    @staticmethod
    def as_user(user: str, command: List[str]) -> List[str]:
        return ["sudo", "-u", user] + list(command)

    def run(self, command: List[str], cwd: Optional[str] = None,
            env: Optional[Dict[str, str]] = None, quiet: bool = False) -> CommandResult:
        """
        Execute a command and log every output line as it arrives.

        Args:
            command: Argument vector, no shell involved
            cwd: Working directory for the command
            env: Extra environment variables layered over os.environ
            quiet: Log the output at DEBUG instead of INFO

        Returns:
            CommandResult: exit status and the combined output
        """
        command = [str(part) for part in command]
        log_message(f"+ {format_command(command)}")

        run_env = None
        if env:
            run_env = os.environ.copy()
            run_env.update(env)

        level = "DEBUG" if quiet else "INFO"
        lines = []
        try:
            process = subprocess.Popen(
                command,
                cwd=cwd,
                env=run_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            log_message(f"Command not found: {command[0]} ({e})", "ERROR")
            return CommandResult(command, 127, str(e))
        except PermissionError as e:
            log_message(f"Command not executable: {command[0]} ({e})", "ERROR")
            return CommandResult(command, 126, str(e))

        with process:
            for line in process.stdout:
                line = line.rstrip("\n")
                lines.append(line)
                log_message(line, level)
            returncode = process.wait()

        return CommandResult(command, returncode, "\n".join(lines))

    def run_and_check(self, command: List[str], cwd: Optional[str] = None,
                      env: Optional[Dict[str, str]] = None, quiet: bool = False) -> CommandResult:
        """Run a command; on failure leave maintenance mode and raise CommandFailedError."""
        result = self.run(command, cwd=cwd, env=env, quiet=quiet)
        if result.ok:
            return result

        where = f" See {self.log_file} for details." if self.log_file else ""
        log_message(f"ERROR: command failed with exit code {result.returncode}.{where}", "ERROR")
        if self._failure_hook is not None:
            log_message("Leaving maintenance mode (if active) and exiting.", "ERROR")
            try:
                self._failure_hook()
            except Exception as e:
                log_message(f"Failed to leave maintenance mode: {e}", "WARNING")
        raise CommandFailedError(command, result.returncode)
