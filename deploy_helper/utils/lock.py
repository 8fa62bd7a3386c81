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
Host-wide advisory lock serializing update runs per program.

The lock is an exclusive, non-blocking flock(2) on
<lock_dir>/update-<program_name>.lock. The kernel drops it when the
process exits, so a crashed run never leaves a stale lock behind. The
file itself is left in place; removing it would let two processes lock
different inodes under the same name.

Usage:
    with UpdateLock.for_program("demo", "/var/lock"):
        ...
"""

import os
import fcntl
from pathlib import Path
from typing import Optional, Union

from .errors import ConcurrentUpdateError, LockFileError
from .index import log_message

DEFAULT_LOCK_DIR = "/var/lock"


def lock_path_for(program_name: str, lock_dir: Union[str, Path] = DEFAULT_LOCK_DIR) -> Path:
    return Path(lock_dir) / f"update-{program_name}.lock"


class UpdateLock:
    """Exclusive per-program update lock."""

    def __init__(self, path: Union[str, Path], program_name: str = ""):
        self.path = Path(path)
        self.program_name = program_name or self.path.stem
        self._fd: Optional[int] = None

    @classmethod
    def for_program(cls, program_name: str, lock_dir: Union[str, Path] = DEFAULT_LOCK_DIR) -> "UpdateLock":
        return cls(lock_path_for(program_name, lock_dir), program_name)

    @property
    def held(self) -> bool:
        return self._fd is not None

    def acquire(self) -> "UpdateLock":
        """
        Take the lock without blocking.

        Raises:
            ConcurrentUpdateError: If another holder already has it
            LockFileError: If the lock file cannot be opened
        """
        if self._fd is not None:
            return self

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            raise LockFileError(self.path, e.strerror or str(e)) from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            raise ConcurrentUpdateError(self.program_name, self.path) from e
        except OSError as e:
            os.close(fd)
            raise LockFileError(self.path, e.strerror or str(e)) from e

        # Record the holder for whoever inspects the file by hand
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())

        self._fd = fd
        log_message(f"Acquired update lock {self.path}", "DEBUG")
        return self

    def release(self) -> None:
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        log_message(f"Released update lock {self.path}", "DEBUG")

    def __enter__(self) -> "UpdateLock":
        return self.acquire()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False
