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
Sequential shell command execution.

Commands run one at a time through bash with inherited stdout/stderr so
their output lands in the same journal as ours. The first failing command
stops the batch; commands already run are not undone.
"""

import os
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import CommandError, SpawnError
from .index import log_message

DEFAULT_SHELL = "bash"


def run_command(command: str, cwd: Optional[Union[str, Path]] = None, shell: str = DEFAULT_SHELL) -> None:
    """
    Run a single shell command and wait for it to exit.

    Raises:
        SpawnError: If the working directory is missing or the shell cannot be started
        CommandError: If the command exits with a non-zero status
    """
    log_message(f"Running: {command}", "DEBUG")
    if cwd is not None and not os.path.isdir(cwd):
        raise SpawnError(command, f"working directory {cwd} does not exist")
    try:
        result = subprocess.run([shell, "-c", command], cwd=cwd)
    except OSError as e:
        raise SpawnError(command, f"shell {shell}: {e.strerror or e}") from e

    if result.returncode != 0:
        raise CommandError(command, result.returncode)


def run_commands(commands: Iterable[str], cwd: Optional[Union[str, Path]] = None,
                 shell: str = DEFAULT_SHELL) -> None:
    """
    Run commands in order, stopping at the first failure.

    Args:
        commands: Shell command strings, executed in the given order
        cwd: Working directory for every command (caller's cwd if omitted)
        shell: Shell interpreter used as `<shell> -c <command>`

    Raises:
        SpawnError: If the shell cannot be started
        CommandError: On the first command exiting non-zero
    """
    for command in commands:
        run_command(command, cwd=cwd, shell=shell)
