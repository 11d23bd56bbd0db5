"""Replay state persistence and file hashing."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError

from .constants import SKILLPATCH_DIR, SKILLS_SCHEMA_VERSION, STATE_FILE
from .errors import BinaryContentError, StateError, StorageError
from .fs_utils import read_text, write_text
from .manifest import compare_semver
from .types import AppliedSkill, SkillState

if TYPE_CHECKING:
    from pathlib import Path


def _get_state_path(project_root: Path) -> Path:
    return project_root / SKILLPATCH_DIR / STATE_FILE


def read_state(project_root: Path) -> SkillState:
    """Read and validate the state file."""
    state_path = _get_state_path(project_root)
    try:
        content = read_text(state_path)
    except BinaryContentError as err:
        raise StateError(f"Corrupt state file {state_path}: {err}") from err
    if content is None:
        raise FileNotFoundError(f"{state_path} not found. No replay has run yet.")

    try:
        raw = yaml.safe_load(content) or {}
        state = SkillState.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as err:
        raise StateError(f"Corrupt state file {state_path}: {err}") from err

    try:
        newer = compare_semver(state.skills_system_version, SKILLS_SCHEMA_VERSION) > 0
    except ValueError as err:
        raise StateError(f"Corrupt state file {state_path}: {err}") from err
    if newer:
        raise StateError(
            f"state.yaml version {state.skills_system_version} is newer than "
            f"tooling version {SKILLS_SCHEMA_VERSION}. Update skillpatch."
        )

    return state


def read_state_or_default(project_root: Path) -> SkillState:
    """Read the state file, or an empty state if no replay has run yet."""
    try:
        return read_state(project_root)
    except FileNotFoundError:
        return SkillState(skills_system_version=SKILLS_SCHEMA_VERSION)


def write_state(state: SkillState, project_root: Path) -> None:
    """Atomically write the state file."""
    state_path = _get_state_path(project_root)
    content = yaml.safe_dump(state.model_dump(exclude_none=True), sort_keys=True)

    # Write to temp file then atomic rename to prevent corruption on crash
    tmp_path = state_path.with_suffix(".yaml.tmp")
    write_text(tmp_path, content)
    try:
        tmp_path.replace(state_path)
    except OSError as err:
        raise StorageError(f"Cannot write {state_path}: {err}") from err


def build_applied_skill(name: str, version: str, file_hashes: dict[str, str]) -> AppliedSkill:
    return AppliedSkill(
        name=name,
        version=version,
        applied_at=datetime.now(UTC).isoformat(),
        file_hashes=file_hashes,
    )


def get_applied_skills(project_root: Path) -> list[AppliedSkill]:
    """Return the skills applied by the last replay."""
    return read_state_or_default(project_root).applied_skills


def compute_hash(content: str | bytes) -> str:
    """Compute the SHA-256 hash of file content. Text is hashed as UTF-8."""
    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()

