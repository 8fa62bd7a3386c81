"""
HOMESERVER Deploy Helper
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
Narrow systemctl command surface used by the orchestrator.
"""

import subprocess
from typing import List

from .errors import CommandError, SpawnError
from .index import log_message


class Systemctl:
    """Invokes the host service manager for reload, enable+start and restart,
    and answers whether a unit is enabled or waiting for a reload."""

    def __init__(self, binary: str = "systemctl"):
        self.binary = binary

    def _run(self, args: List[str]) -> None:
        argv = [self.binary] + args
        command = " ".join(argv)
        log_message(f"systemctl: {command}")
        try:
            result = subprocess.run(argv)
        except OSError as e:
            raise SpawnError(command, str(e)) from e
        if result.returncode != 0:
            raise CommandError(command, result.returncode)

    def daemon_reload(self) -> None:
        self._run(["daemon-reload"])

    def enable_now(self, unit: str) -> None:
        """Enable a unit and start it; a no-op for an already active unit."""
        self._run(["enable", "--now", unit])

    def restart(self, unit: str) -> None:
        self._run(["restart", unit])

    def _query(self, args: List[str]) -> subprocess.CompletedProcess:
        argv = [self.binary] + args
        try:
            return subprocess.run(argv, capture_output=True, text=True)
        except OSError as e:
            raise SpawnError(" ".join(argv), str(e)) from e

    def is_enabled(self, unit: str) -> bool:
        """True if the unit is enabled; any non-zero exit counts as not enabled."""
        return self._query(["is-enabled", "--quiet", unit]).returncode == 0

    def needs_reload(self, unit: str) -> bool:
        """True if the unit file on disk differs from the definition systemd has loaded."""
        result = self._query(["show", "--property=NeedDaemonReload", "--value", unit])
        if result.returncode != 0:
            log_message(f"systemctl show {unit} failed: {result.stderr.strip()}", "DEBUG")
            return False
        return result.stdout.strip() == "yes"
