"""Base snapshot: the pristine copy of every file a skill may modify.

A path is captured the first time it becomes tracked and is never rewritten
afterwards. Every replay derives skill patches against this copy.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import BASE_DIR
from .fs_utils import copy_file, read_text, remove_file, walk_files
from .logger import logger

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path


def get_base_dir(project_root: Path) -> Path:
    return project_root / BASE_DIR


def tracked_paths(project_root: Path) -> list[str]:
    """Return every path held in the base snapshot."""
    return walk_files(get_base_dir(project_root))


def is_tracked(rel_path: str, project_root: Path) -> bool:
    return (get_base_dir(project_root) / rel_path).is_file()


def read_base(rel_path: str, project_root: Path) -> str | None:
    """Return the base content of a path, or None if it is not tracked."""
    return read_text(get_base_dir(project_root) / rel_path)


def track_paths(rel_paths: Iterable[str], project_root: Path) -> list[str]:
    """Capture the current content of untracked paths into the base.

    Paths already in the base are left alone, as are paths that exist neither
    in the base nor in the working tree. Returns the newly tracked paths.
    """
    base_dir = get_base_dir(project_root)
    newly_tracked: list[str] = []

    for rel_path in sorted(set(rel_paths)):
        base_path = base_dir / rel_path
        current_path = project_root / rel_path
        if base_path.exists() or not current_path.is_file():
            continue
        copy_file(current_path, base_path)
        newly_tracked.append(rel_path)

    if newly_tracked:
        logger.debug("Tracked paths in base snapshot", paths=newly_tracked)
    return newly_tracked


def reset_to_base(
    project_root: Path,
    stale_candidates: Iterable[str] = (),
    keep: Iterable[str] = (),
) -> list[str]:
    """Restore every tracked path and delete stale untracked additions.

    A candidate is deleted when it is neither tracked nor listed in ``keep``.
    Returns the deleted paths.
    """
    base_dir = get_base_dir(project_root)
    tracked = tracked_paths(project_root)

    for rel_path in tracked:
        copy_file(base_dir / rel_path, project_root / rel_path)

    tracked_set = set(tracked)
    keep_set = set(keep)
    deleted: list[str] = []
    for rel_path in sorted(set(stale_candidates)):
        if rel_path in tracked_set or rel_path in keep_set:
            continue
        if remove_file(project_root / rel_path):
            deleted.append(rel_path)

    if deleted:
        logger.debug("Removed stale additions", paths=deleted)
    return deleted
