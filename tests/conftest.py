"""Shared fixtures for deploy_helper tests."""

from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
import yaml


class FakeSystemctl:
    """
    Records service-manager calls instead of running systemctl.

    Tracks which units are enabled and which unit file contents were last
    loaded by daemon-reload, so state queries answer like systemd would.
    """

    def __init__(self, unit_dir: Optional[Path] = None):
        self.calls: List[Tuple[str, ...]] = []
        self.unit_dir = unit_dir
        self.enabled: Set[str] = set()
        self.loaded: Dict[str, str] = {}

    def daemon_reload(self) -> None:
        self.calls.append(("daemon-reload",))
        if self.unit_dir is not None and self.unit_dir.is_dir():
            self.loaded = {p.name: p.read_text() for p in self.unit_dir.iterdir()}

    def enable_now(self, unit: str) -> None:
        self.calls.append(("enable", "--now", unit))
        self.enabled.add(unit)

    def is_enabled(self, unit: str) -> bool:
        return unit in self.enabled

    def needs_reload(self, unit: str) -> bool:
        if self.unit_dir is None:
            return False
        path = self.unit_dir / unit
        return path.exists() and self.loaded.get(unit) != path.read_text()

    def restart(self, unit: str) -> None:
        self.calls.append(("restart", unit))

    def count(self, *call: str) -> int:
        return self.calls.count(tuple(call))


def write_config(directory: Path, *, program_name: str = "demo",
                 program_path: str = "demo.bin", interval: int = 60,
                 update_commands: Optional[List[str]] = None,
                 run_commands: Optional[List[str]] = None,
                 watch: Optional[List[str]] = None) -> Path:
    """Write a YAML config file into directory and return its path."""
    data = {
        "program_name": program_name,
        "program_path": program_path,
        "update": {
            "interval": interval,
            "commands": ["true"] if update_commands is None else update_commands,
        },
        "run": {"commands": ["true"] if run_commands is None else run_commands},
    }
    if watch is not None:
        data["update"]["watch"] = watch
    path = directory / "deploy.yml"
    path.write_text(yaml.safe_dump(data))
    return path


@pytest.fixture
def fake_systemctl(unit_dir: Path) -> FakeSystemctl:
    return FakeSystemctl(unit_dir)


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "project"
    directory.mkdir()
    return directory


@pytest.fixture
def unit_dir(tmp_path: Path) -> Path:
    return tmp_path / "systemd"


@pytest.fixture
def lock_dir(tmp_path: Path) -> Path:
    return tmp_path / "lock"
