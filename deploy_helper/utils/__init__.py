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
Utilities shared by the orchestrator and the CLI.
"""

from .index import log_message, setup_logging
from .errors import (
    DeployHelperError,
    ConfigError,
    ConfigReadError,
    ConfigParseError,
    ConcurrentUpdateError,
    CommandError,
    SpawnError,
    FingerprintError,
    UnitInstallError,
    LockFileError
)
from .runner import run_command, run_commands
from .checksummer import compute_sha256, fingerprint, changed_paths
from .installer import InstallStatus, install_if_changed
from .lock import UpdateLock
from .systemd import Systemctl

__all__ = [
    'log_message',
    'setup_logging',
    'DeployHelperError',
    'ConfigError',
    'ConfigReadError',
    'ConfigParseError',
    'ConcurrentUpdateError',
    'CommandError',
    'SpawnError',
    'FingerprintError',
    'UnitInstallError',
    'LockFileError',
    'run_command',
    'run_commands',
    'compute_sha256',
    'fingerprint',
    'changed_paths',
    'InstallStatus',
    'install_if_changed',
    'UpdateLock',
    'Systemctl'
]
