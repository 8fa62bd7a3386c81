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
Content fingerprints for change detection.

Fingerprints are SHA-256 hex digests taken before and after the update
commands and only ever compared with each other; nothing is persisted.
"""

import os
import hashlib
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .errors import FingerprintError

CHUNK_SIZE = 65536


def _hash_file(file_path: str, sha256_hash) -> None:
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            sha256_hash.update(chunk)


def compute_sha256(path) -> Optional[str]:
    """
    Calculate the SHA-256 checksum of a file or directory.

    Directories are hashed recursively in sorted order, mixing in each
    file's relative path so renames are detected too.

    Returns:
        str: Hex digest, or None if the path does not exist

    Raises:
        FingerprintError: If the path exists but cannot be read
    """
    path = str(path)
    if not os.path.exists(path):
        return None

    sha256_hash = hashlib.sha256()
    try:
        if os.path.isdir(path):
            for root, dirs, files in os.walk(path):
                dirs.sort()
                files.sort()
                for file in files:
                    file_path_full = os.path.join(root, file)
                    rel_path = os.path.relpath(file_path_full, path)
                    sha256_hash.update(rel_path.encode())
                    sha256_hash.update(b"\0")
                    _hash_file(file_path_full, sha256_hash)
        else:
            _hash_file(path, sha256_hash)
    except OSError as e:
        raise FingerprintError(Path(path), e.strerror or str(e)) from e

    return sha256_hash.hexdigest()


def fingerprint(paths: Iterable[Path]) -> Dict[Path, Optional[str]]:
    """Map each watched path to its current digest (None when absent)."""
    return {Path(p): compute_sha256(p) for p in paths}


def changed_paths(before: Dict[Path, Optional[str]], after: Dict[Path, Optional[str]]) -> List[Path]:
    """Paths whose digest differs between two fingerprint captures."""
    return [p for p in sorted(set(before) | set(after), key=str) if before.get(p) != after.get(p)]
