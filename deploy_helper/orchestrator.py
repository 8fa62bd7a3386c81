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
Update orchestration for a single program.

One update cycle walks a fixed sequence of states:

    IDLE -> LOCK_ACQUIRING -> UPDATING -> DETECTING -> GENERATING
         -> INSTALLING -> ACTIVATING -> DONE

Any failing step moves to FAILED and re-raises; the update lock is
released on every exit path. Nothing is retried here, the update timer is
the only retry mechanism and every run is independent.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from .config import Config
from .units import DEFAULT_UNIT_DIR, EnvironmentFacts, UnitSet, generate_units
from .utils.checksummer import changed_paths, fingerprint
from .utils.errors import UnitInstallError
from .utils.index import log_message
from .utils.installer import InstallStatus, install_if_changed
from .utils.lock import DEFAULT_LOCK_DIR, UpdateLock
from .utils.runner import DEFAULT_SHELL, run_commands
from .utils.systemd import Systemctl


class UpdateState(str, Enum):
    IDLE = "idle"
    LOCK_ACQUIRING = "lock_acquiring"
    UPDATING = "updating"
    DETECTING = "detecting"
    GENERATING = "generating"
    INSTALLING = "installing"
    ACTIVATING = "activating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UpdateReport:
    """What one successful update cycle did."""
    program_name: str
    changed_paths: List[Path] = field(default_factory=list)
    units: Dict[str, InstallStatus] = field(default_factory=dict)
    reloaded: bool = False
    started: List[str] = field(default_factory=list)
    restarted: List[str] = field(default_factory=list)

    @property
    def binary_changed(self) -> bool:
        return bool(self.changed_paths)

    @property
    def units_changed(self) -> bool:
        return any(status.changed for status in self.units.values())

    def summary(self) -> str:
        units = ", ".join(f"{name}={status.value}" for name, status in self.units.items())
        return (f"changed_paths={len(self.changed_paths)} units=[{units}] "
                f"reloaded={self.reloaded} started={self.started} restarted={self.restarted}")


class UpdateOrchestrator:
    """
    Runs update commands and converges the program's systemd units.

    The run service is enabled and started whenever systemd reports it not
    enabled, and otherwise restarted only when a watched path changed (or
    its own unit file was rewritten). systemd is reloaded when a unit file
    was written or when it still reports a stale unit definition.
    """

    def __init__(self, config: Config,
                 unit_dir: Union[str, Path] = DEFAULT_UNIT_DIR,
                 lock_dir: Union[str, Path] = DEFAULT_LOCK_DIR,
                 systemctl: Optional[Systemctl] = None,
                 environment: Optional[EnvironmentFacts] = None,
                 shell: str = DEFAULT_SHELL):
        self.config = config
        self.unit_dir = Path(unit_dir)
        self.lock_dir = Path(lock_dir)
        self.systemctl = systemctl or Systemctl()
        self.environment = environment or EnvironmentFacts.detect(config)
        self.shell = shell
        self.state = UpdateState.IDLE

    def _transition(self, state: UpdateState) -> None:
        log_message(f"[{self.config.program_name}] {self.state.value} -> {state.value}", "DEBUG")
        self.state = state

    def run(self) -> UpdateReport:
        """
        Execute one full update cycle.

        Returns:
            UpdateReport: Summary of the completed cycle

        Raises:
            DeployHelperError: From whichever step failed; state is FAILED
        """
        self._transition(UpdateState.LOCK_ACQUIRING)
        lock = UpdateLock.for_program(self.config.program_name, self.lock_dir)
        try:
            lock.acquire()
        except Exception:
            self._transition(UpdateState.FAILED)
            raise

        try:
            report = self._run_locked()
        except BaseException:
            self._transition(UpdateState.FAILED)
            raise
        finally:
            lock.release()

        self._transition(UpdateState.DONE)
        log_message(f"Update of '{self.config.program_name}' complete: {report.summary()}")
        return report

    def _run_locked(self) -> UpdateReport:
        config = self.config
        report = UpdateReport(program_name=config.program_name)
        watched = config.watched_paths

        self._transition(UpdateState.UPDATING)
        before = fingerprint(watched)
        run_commands(config.update.commands, cwd=config.config_dir, shell=self.shell)
        log_message(f"All {len(config.update.commands)} update commands executed", "DEBUG")

        self._transition(UpdateState.DETECTING)
        after = fingerprint(watched)
        report.changed_paths = changed_paths(before, after)
        for path in report.changed_paths:
            log_message(f"Changed: {path}")

        self._transition(UpdateState.GENERATING)
        units = generate_units(config, self.environment)

        self._transition(UpdateState.INSTALLING)
        report.units = self._install(units)

        self._transition(UpdateState.ACTIVATING)
        self._activate(units, report)
        return report

    def _install(self, units: UnitSet) -> Dict[str, InstallStatus]:
        try:
            self.unit_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UnitInstallError(self.unit_dir, e.strerror or str(e)) from e

        return {name: install_if_changed(self.unit_dir / name, content)
                for name, content in units.items()}

    def _activate(self, units: UnitSet, report: UpdateReport) -> None:
        # Ask systemd too: an earlier cycle may have written the files and failed before reloading
        if report.units_changed or any(self.systemctl.needs_reload(name) for name, _ in units.items()):
            self.systemctl.daemon_reload()
            report.reloaded = True
        else:
            log_message("Unit files unchanged - skipping daemon-reload", "DEBUG")

        self.systemctl.enable_now(units.update_timer_name)
        report.started.append(units.update_timer_name)

        run_svc = units.run_service_name
        run_status = report.units[run_svc]
        if not self.systemctl.is_enabled(run_svc):
            # First install: starting it already runs the new artifact
            self.systemctl.enable_now(run_svc)
            report.started.append(run_svc)
        elif report.binary_changed or run_status is InstallStatus.UPDATED:
            self.systemctl.restart(run_svc)
            report.restarted.append(run_svc)
        else:
            log_message(f"No watched files changed - leaving {run_svc} running")
