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
systemd unit generation.

generate_units() is a pure function of the Config and the EnvironmentFacts:
the same inputs always give byte-identical text, which is what lets the
installer skip unchanged files. All unit formatting lives in this module.
"""

import os
import re
import sys
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Sequence, Tuple

from .config import Config

PACKAGE_NAME = "deploy_helper"
DEFAULT_UNIT_DIR = "/etc/systemd/system"
BOOT_DELAY = "1min"
RESTART_DELAY_SECONDS = 5

_NEEDS_QUOTING = re.compile(r'[\s"\'\\]')


def update_service_name(program_name: str) -> str:
    return f"update-{program_name}.service"


def update_timer_name(program_name: str) -> str:
    return f"update-{program_name}.timer"


def run_service_name(program_name: str) -> str:
    return f"run-{program_name}.service"


def current_command() -> Tuple[str, ...]:
    """Argument vector that re-invokes this program from a unit's ExecStart."""
    argv0 = sys.argv[0] if sys.argv else ""
    if not argv0 or argv0 in ("-c", "-m") or os.path.basename(argv0) == "__main__.py":
        return (sys.executable, "-m", PACKAGE_NAME)
    if os.sep not in argv0:
        argv0 = shutil.which(argv0) or argv0
    return (os.path.abspath(argv0),)


@dataclass(frozen=True)
class EnvironmentFacts:
    """Host facts the generated units depend on besides the Config."""
    command: Tuple[str, ...]
    working_directory: Path
    config_path: Path

    @classmethod
    def detect(cls, config: Config) -> "EnvironmentFacts":
        return cls(
            command=current_command(),
            working_directory=config.config_dir,
            config_path=config.config_path,
        )


@dataclass(frozen=True)
class UnitSet:
    """Generated unit file names and contents for one program."""
    update_service_name: str
    update_service: str
    update_timer_name: str
    update_timer: str
    run_service_name: str
    run_service: str

    def items(self) -> Iterator[Tuple[str, str]]:
        """(file name, content) pairs in install order."""
        yield self.update_service_name, self.update_service
        yield self.update_timer_name, self.update_timer
        yield self.run_service_name, self.run_service

    def as_dict(self) -> Dict[str, str]:
        return dict(self.items())


def _escape_specifiers(value: str) -> str:
    return value.replace("%", "%%")


def quote_arg(arg: str) -> str:
    """Quote one ExecStart argument following systemd's command-line rules."""
    arg = _escape_specifiers(str(arg)).replace("$", "$$")
    if arg and not _NEEDS_QUOTING.search(arg):
        return arg
    return '"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"'


def exec_line(argv: Sequence[str]) -> str:
    return " ".join(quote_arg(a) for a in argv)


def generate_units(config: Config, env: EnvironmentFacts) -> UnitSet:
    """
    Render the update service, update timer and run service for a program.

    No I/O happens here; callers decide where and whether to write.
    """
    program_name = config.program_name
    update_svc = update_service_name(program_name)
    update_timer = update_timer_name(program_name)
    run_svc = run_service_name(program_name)
    working_directory = _escape_specifiers(str(env.working_directory))
    config_path = str(env.config_path)

    update_unit = f"""[Unit]
Description=deploy-helper update for {program_name}
Wants={run_svc}
After=network-online.target

[Service]
Type=oneshot
WorkingDirectory={working_directory}
ExecStart={exec_line(list(env.command) + ["update", config_path])}
"""

    timer_unit = f"""[Unit]
Description=deploy-helper update timer for {program_name}

[Timer]
OnBootSec={BOOT_DELAY}
OnUnitActiveSec={config.update.interval}
Unit={update_svc}

[Install]
WantedBy=timers.target
"""

    run_unit = f"""[Unit]
Description=deploy-helper run for {program_name}

[Service]
Type=simple
WorkingDirectory={working_directory}
ExecStart={exec_line(list(env.command) + ["run", config_path])}
Restart=on-failure
RestartSec={RESTART_DELAY_SECONDS}

[Install]
WantedBy=multi-user.target
"""

    return UnitSet(
        update_service_name=update_svc,
        update_service=update_unit,
        update_timer_name=update_timer,
        update_timer=timer_unit,
        run_service_name=run_svc,
        run_service=run_unit,
    )
