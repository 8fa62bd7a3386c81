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
Write-on-change installation of generated files.

Unit files are only rewritten when their content actually differs, so an
unchanged update cycle never triggers a service-manager reload. Writes go
to a temporary file in the destination directory and are renamed into
place, so readers never see a half-written unit.
"""

import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from .errors import UnitInstallError
from .index import log_message

UNIT_FILE_MODE = 0o644


class InstallStatus(str, Enum):
    """Outcome of an install_if_changed() call."""
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"

    @property
    def changed(self) -> bool:
        return self is not InstallStatus.UNCHANGED


def _read_existing(path: Path) -> Optional[bytes]:
    try:
        with open(path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise UnitInstallError(path, e.strerror or str(e)) from e


def _fsync_dir(directory: Path) -> None:
    fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


def atomic_write(path: Path, data: bytes, mode: int = UNIT_FILE_MODE) -> None:
    """Replace path with data via a same-directory temporary file and rename."""
    directory = path.parent
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except FileNotFoundError:
            pass
        raise
    _fsync_dir(directory)


def install_if_changed(path: Union[str, Path], content: str) -> InstallStatus:
    """
    Install content at path unless it is already there byte for byte.

    Args:
        path: Destination file
        content: Full text the file should contain

    Returns:
        InstallStatus: CREATED, UPDATED or UNCHANGED

    Raises:
        UnitInstallError: If the existing file cannot be read or the new one written
    """
    path = Path(path)
    data = content.encode("utf-8")
    existing = _read_existing(path)

    if existing == data:
        log_message(f"Unchanged: {path}", "DEBUG")
        return InstallStatus.UNCHANGED

    try:
        atomic_write(path, data)
    except OSError as e:
        raise UnitInstallError(path, e.strerror or str(e)) from e

    status = InstallStatus.CREATED if existing is None else InstallStatus.UPDATED
    log_message(f"{status.value.capitalize()}: {path}")
    return status
