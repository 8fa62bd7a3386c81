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
Configuration model for a deployed program.

The YAML file describes one program: how to update it and how to run it.

    program_name: demo
    program_path: ./target/release/demo
    update:
      interval: 300
      commands:
        - git pull --ff-only
        - cargo build --release
      watch:                # optional, extra paths to fingerprint
        - ./static
    run:
      commands:
        - ./target/release/demo serve
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Tuple

import yaml

from .utils.errors import ConfigParseError, ConfigReadError

PROGRAM_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_@][A-Za-z0-9_.@-]*$")


@dataclass(frozen=True)
class UpdateSection:
    """Update cycle settings."""
    interval: int  # seconds
    commands: Tuple[str, ...]
    watch: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RunSection:
    """Long-running process settings."""
    commands: Tuple[str, ...]


@dataclass(frozen=True)
class Config:
    """Immutable program configuration, read fresh on every invocation."""
    program_name: str
    program_path: Path
    update: UpdateSection
    run: RunSection
    config_path: Path

    @property
    def config_dir(self) -> Path:
        """Directory all update and run commands execute in."""
        return self.config_path.parent

    def resolve(self, path) -> Path:
        """Resolve a configured path against the config file's directory."""
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return self.config_dir / path

    @property
    def watched_paths(self) -> List[Path]:
        """Paths fingerprinted around the update commands, program first."""
        paths = [self.resolve(self.program_path)]
        for extra in self.update.watch:
            resolved = self.resolve(extra)
            if resolved not in paths:
                paths.append(resolved)
        return paths


def _require(mapping: Dict[str, Any], key: str, expected: type, where: str, path: Path):
    if not isinstance(mapping, dict):
        raise ConfigParseError(path, f"'{where}' must be a mapping")
    if key not in mapping:
        raise ConfigParseError(path, f"missing required field '{where}{key}'")
    value = mapping[key]
    # bool is an int subclass; YAML 'yes' must not pass as an interval
    if not isinstance(value, expected) or (expected is int and isinstance(value, bool)):
        raise ConfigParseError(
            path, f"field '{where}{key}' must be of type {expected.__name__}, got {type(value).__name__}"
        )
    return value


def _string_list(mapping: Dict[str, Any], key: str, where: str, path: Path, required: bool = True) -> Tuple[str, ...]:
    if not required and (not isinstance(mapping, dict) or mapping.get(key) is None):
        return ()
    items = _require(mapping, key, list, where, path)
    for index, item in enumerate(items):
        if not isinstance(item, str):
            raise ConfigParseError(
                path, f"field '{where}{key}[{index}]' must be a string, got {type(item).__name__}"
            )
    return tuple(items)


def parse_config(data: Any, config_path: Path) -> Config:
    """
    Map already-parsed YAML data onto a Config.

    Args:
        data: Result of yaml.safe_load on the config file
        config_path: Absolute path of the file the data came from

    Returns:
        Config: The typed configuration

    Raises:
        ConfigParseError: If a required field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise ConfigParseError(config_path, "top level must be a mapping")

    program_name = _require(data, "program_name", str, "", config_path)
    if not PROGRAM_NAME_PATTERN.match(program_name):
        raise ConfigParseError(
            config_path,
            f"program_name '{program_name}' must be non-empty and only contain letters, digits, '_', '.', '@' or '-'",
        )

    program_path = _require(data, "program_path", str, "", config_path)
    if not program_path:
        raise ConfigParseError(config_path, "program_path must not be empty")

    update = _require(data, "update", dict, "", config_path)
    interval = _require(update, "interval", int, "update.", config_path)
    if interval <= 0:
        raise ConfigParseError(config_path, f"update.interval must be a positive number of seconds, got {interval}")

    run = _require(data, "run", dict, "", config_path)

    return Config(
        program_name=program_name,
        program_path=Path(program_path),
        update=UpdateSection(
            interval=interval,
            commands=_string_list(update, "commands", "update.", config_path),
            watch=_string_list(update, "watch", "update.", config_path, required=False),
        ),
        run=RunSection(commands=_string_list(run, "commands", "run.", config_path)),
        config_path=config_path,
    )


def load_config(path) -> Config:
    """
    Read and parse a YAML configuration file.

    Raises:
        ConfigReadError: If the file cannot be opened or read
        ConfigParseError: If the content is not valid YAML or does not fit the schema
    """
    config_path = Path(path).expanduser().absolute()
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            contents = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigReadError(config_path, str(e)) from e

    try:
        data = yaml.safe_load(contents)
    except yaml.YAMLError as e:
        raise ConfigParseError(config_path, f"invalid YAML: {e}") from e

    return parse_config(data, config_path)
