"""Backup and restore of an ad hoc file list."""

from __future__ import annotations

from pathlib import Path

from .constants import BACKUP_DIR
from .fs_utils import copy_dir, copy_file, make_dir, remove_file, remove_tree
from .logger import logger


def _get_backup_dir(project_root: Path) -> Path:
    return project_root / BACKUP_DIR


def create_backup(file_paths: list[str], project_root: Path | None = None) -> None:
    """Back up a list of files. Files that don't exist are skipped."""
    project_root = (project_root or Path.cwd()).resolve()
    backup_dir = _get_backup_dir(project_root)
    make_dir(backup_dir)

    for file_path in file_paths:
        abs_path = (project_root / file_path).resolve()
        relative_path = abs_path.relative_to(project_root)
        backup_path = backup_dir / relative_path

        if abs_path.is_file():
            copy_file(abs_path, backup_path)
        elif remove_file(backup_path):
            # Drop a copy left by an earlier backup of the same path
            logger.debug("Dropped stale backup", path=str(relative_path))


def restore_backup(project_root: Path | None = None) -> None:
    """Restore all files from the backup directory."""
    project_root = project_root or Path.cwd()
    backup_dir = _get_backup_dir(project_root)
    if not backup_dir.exists():
        return

    copy_dir(backup_dir, project_root)


def clear_backup(project_root: Path | None = None) -> None:
    """Remove the entire backup directory."""
    remove_tree(_get_backup_dir(project_root or Path.cwd()))
