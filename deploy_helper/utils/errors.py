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
Error taxonomy for deploy helper operations.

Every failure of an update or run cycle surfaces as a DeployHelperError
subclass carrying enough context (command and exit status, or path) to
diagnose it from the log line alone.
"""

from pathlib import Path
from typing import Optional


class DeployHelperError(Exception):
    """Base exception for all deploy helper failures."""
    pass


class ConfigError(DeployHelperError):
    """Configuration file is unusable."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{self.describe()} {path}: {reason}")

    def describe(self) -> str:
        return "Invalid config file"


class ConfigReadError(ConfigError):
    """Config file could not be opened or read."""

    def describe(self) -> str:
        return "Failed to read config file"


class ConfigParseError(ConfigError):
    """Config file content does not map onto the schema."""

    def describe(self) -> str:
        return "Failed to parse config file"


class ConcurrentUpdateError(DeployHelperError):
    """Another update for the same program already holds the lock."""

    def __init__(self, program_name: str, lock_path: Path):
        self.program_name = program_name
        self.lock_path = lock_path
        super().__init__(
            f"Another update of '{program_name}' is already running (lock held on {lock_path})"
        )


class CommandError(DeployHelperError):
    """A shell or service-manager command exited with a non-zero status."""

    def __init__(self, command: str, exit_status: Optional[int], message: str = None):
        self.command = command
        self.exit_status = exit_status
        super().__init__(message or f"Command `{command}` exited with status {exit_status}")


class SpawnError(CommandError):
    """The executable for a command could not be started at all."""

    def __init__(self, command: str, reason: str):
        self.reason = reason
        super().__init__(command, None, f"Failed to spawn `{command}`: {reason}")


class FingerprintError(DeployHelperError):
    """A watched path could not be read for fingerprinting."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Failed to fingerprint {path}: {reason}")


class UnitInstallError(DeployHelperError):
    """A unit file could not be read or written."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Failed to install unit file {path}: {reason}")


class LockFileError(DeployHelperError):
    """The lock file itself could not be created or opened."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        super().__init__(f"Failed to open lock file {path}: {reason}")
