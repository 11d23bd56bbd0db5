"""Filesystem utilities for the patch-replay engine.

Every helper maps ``OSError`` to ``StorageError`` so storage failures surface
as one fatal condition. Text is handled as UTF-8 bytes to keep line endings
exactly as written.
"""

from __future__ import annotations

import shutil
from typing import TYPE_CHECKING

from .errors import BinaryContentError, StorageError

if TYPE_CHECKING:
    from pathlib import Path


def read_bytes(path: Path) -> bytes | None:
    """Read a file's raw content, or None if it does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as err:
        raise StorageError(f"Cannot read {path}: {err}") from err


def read_text(path: Path) -> str | None:
    """Read a UTF-8 file's content, or None if it does not exist."""
    data = read_bytes(path)
    if data is None:
        return None
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise BinaryContentError(f"{path} is not valid UTF-8 text") from err


def write_bytes(path: Path, data: bytes) -> None:
    """Write raw content to path, creating parent directories."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as err:
        raise StorageError(f"Cannot write {path}: {err}") from err


def write_text(path: Path, content: str) -> None:
    write_bytes(path, content.encode("utf-8"))


def make_dir(path: Path) -> None:
    """Create a directory and its parents if missing."""
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as err:
        raise StorageError(f"Cannot create {path}: {err}") from err


def copy_file(src: Path, dest: Path) -> None:
    """Copy a single file, preserving metadata."""
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
    except OSError as err:
        raise StorageError(f"Cannot copy {src} to {dest}: {err}") from err


def remove_file(path: Path) -> bool:
    """Delete a file. Returns False if it was already absent."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as err:
        raise StorageError(f"Cannot delete {path}: {err}") from err
    return True


def remove_tree(path: Path) -> None:
    """Recursively delete a directory if it exists."""
    if not path.exists():
        return
    try:
        shutil.rmtree(path)
    except OSError as err:
        raise StorageError(f"Cannot delete {path}: {err}") from err


def walk_files(directory: Path) -> list[str]:
    """Return sorted POSIX paths of every file under directory, relative to it."""
    if not directory.is_dir():
        return []
    try:
        return sorted(entry.relative_to(directory).as_posix() for entry in directory.rglob("*") if entry.is_file())
    except OSError as err:
        raise StorageError(f"Cannot list {directory}: {err}") from err


def copy_dir(src: Path, dest: Path) -> None:
    """Recursively copy a directory tree from src to dest.

    Creates destination directories as needed.
    """
    for rel_path in walk_files(src):
        copy_file(src / rel_path, dest / rel_path)
