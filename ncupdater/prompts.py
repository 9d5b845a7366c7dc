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

from typing import Callable


class Prompter:
    """Operator-facing prompts. Ctrl+C at any prompt propagates KeyboardInterrupt."""

    def __init__(self, input_func: Callable[[str], str] = input,
                 output: Callable[..., None] = print):
        self._input = input_func
        self._output = output

    def _read(self, prompt: str) -> str:
        try:
            return self._input(prompt)
        except EOFError:
            # stdin closed; nobody is there to confirm
            self._output()
            raise KeyboardInterrupt

    def ask_version(self, default: str) -> str:
        """Ask for the target version; an empty answer means the default."""
        self._output("Nextcloud manual updater (interactive)")
        self._output(f"Default target version: {default}")
        answer = self._read(f"Enter target version (or press ENTER to use {default}): ").strip()
        return answer or default

    def ask_yes_no(self, question: str, default_yes: bool = True) -> bool:
        suffix = "[Y/n]" if default_yes else "[y/N]"
        answer = self._read(f"{question} {suffix}: ").strip().lower()
        if not answer:
            return default_yes
        return answer.startswith("y")

    def pause(self, message: str) -> None:
        """Block until the operator presses ENTER."""
        self._output()
        self._output(f">>> {message}")
        self._read("Press ENTER to continue, or Ctrl+C to abort...")

    def show(self, message: str = "") -> None:
        self._output(message)
