"""Configuration overrides read from the environment or a project .env file."""

from __future__ import annotations

import os
from pathlib import Path

from .constants import DEFAULT_CONTEXT_LINES, SHIPPED_RESOLUTIONS_DIR

SHIPPED_RESOLUTIONS_ENV = "SKILLPATCH_SHIPPED_RESOLUTIONS"
CONTEXT_LINES_ENV = "SKILLPATCH_CONTEXT_LINES"


def read_env_file(keys: list[str], project_root: Path | None = None) -> dict[str, str]:
    """Parse the project's .env file and return values for requested keys.

    Does NOT load into os.environ -- callers decide what to do with values.
    """
    env_file = (project_root or Path.cwd()) / ".env"
    try:
        content = env_file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        eq_idx = trimmed.find("=")
        if eq_idx == -1:
            continue
        key = trimmed[:eq_idx].strip()
        if key not in wanted:
            continue
        value = trimmed[eq_idx + 1 :].strip()
        if (value.startswith('"') and value.endswith('"')) or (value.startswith("'") and value.endswith("'")):
            value = value[1:-1]
        if value:
            result[key] = value

    return result


def _setting(key: str, project_root: Path | None) -> str | None:
    return os.environ.get(key) or read_env_file([key], project_root).get(key)


def shipped_resolutions_root(project_root: Path) -> Path:
    """Return the shipped (read-only) resolutions root for a project.

    Relative overrides are resolved against the project root.
    """
    override = _setting(SHIPPED_RESOLUTIONS_ENV, project_root)
    if not override:
        return project_root / SHIPPED_RESOLUTIONS_DIR
    path = Path(override).expanduser()
    return path if path.is_absolute() else project_root / path


def patch_context_lines(project_root: Path | None = None) -> int:
    """Number of unchanged lines kept around each derived hunk."""
    raw = _setting(CONTEXT_LINES_ENV, project_root)
    if not raw:
        return DEFAULT_CONTEXT_LINES
    try:
        return max(1, int(raw))
    except ValueError:
        return DEFAULT_CONTEXT_LINES
