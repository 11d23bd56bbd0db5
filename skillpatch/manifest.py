"""Skill manifest reading, validation, and compatibility checks."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import yaml
from pydantic import ValidationError

from .constants import ADD_DIR, MANIFEST_FILE, MODIFY_DIR
from .errors import BinaryContentError, ManifestInvalidError, ManifestNotFoundError
from .fs_utils import read_bytes, read_text
from .types import SkillManifest

REQUIRED_FIELDS = ["skill", "version", "core_version", "adds", "modifies"]


def read_manifest(skill_dir: Path) -> SkillManifest:
    """Read and validate a skill manifest from a package directory.

    Besides the manifest fields themselves, checks that every added and
    modified path ships with the package.
    """
    skill_dir = Path(skill_dir)
    manifest_path = skill_dir / MANIFEST_FILE
    try:
        content = read_text(manifest_path)
    except BinaryContentError as err:
        raise ManifestInvalidError(f"Manifest is not UTF-8 text: {manifest_path}") from err
    if content is None:
        raise ManifestNotFoundError(f"Manifest not found: {manifest_path}")

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as err:
        raise ManifestInvalidError(f"Manifest is not valid YAML: {manifest_path}: {err}") from err
    if not isinstance(raw, dict):
        raise ManifestInvalidError(f"Manifest must be a mapping: {manifest_path}")

    # Validate required fields
    for field in REQUIRED_FIELDS:
        if raw.get(field) is None:
            raise ManifestInvalidError(f"Manifest missing required field: {field}")

    # Validate paths don't escape project root
    for key in ("adds", "modifies"):
        if not isinstance(raw[key], list):
            raise ManifestInvalidError(f"Manifest field {key} must be a list")
        for p in raw[key]:
            if not isinstance(p, str) or not p:
                raise ManifestInvalidError(f"Invalid path in manifest {key}: {p!r}")
            if ".." in PurePosixPath(p).parts or PurePosixPath(p).is_absolute():
                raise ManifestInvalidError(f'Invalid path in manifest: {p} (must be relative without "..")')

    # Scalar fields in YAML may come through as numbers (e.g. version: 1.0)
    for key in ("skill", "version", "core_version"):
        if isinstance(raw[key], int | float):
            raw[key] = str(raw[key])

    try:
        manifest = SkillManifest.model_validate(raw)
    except ValidationError as err:
        raise ManifestInvalidError(f"Invalid manifest {manifest_path}: {err}") from err

    overlap = sorted(set(manifest.adds) & set(manifest.modifies))
    if overlap:
        raise ManifestInvalidError(f"Paths both added and modified: {', '.join(overlap)}")

    for sub_dir, paths in ((ADD_DIR, manifest.adds), (MODIFY_DIR, manifest.modifies)):
        for rel_path in paths:
            if not (skill_dir / sub_dir / rel_path).is_file():
                raise ManifestInvalidError(
                    f"Skill {manifest.skill} lists {rel_path} but ships no {sub_dir}/{rel_path}"
                )

    return manifest


def read_added_file(skill_dir: Path, rel_path: str) -> bytes:
    """Return the literal content a skill adds at rel_path, byte for byte."""
    content = read_bytes(Path(skill_dir) / ADD_DIR / rel_path)
    if content is None:
        raise ManifestInvalidError(f"Missing added file: {ADD_DIR}/{rel_path}")
    return content


def read_modified_file(skill_dir: Path, rel_path: str) -> str:
    """Return the skill's full post-image for a modified path."""
    try:
        content = read_text(Path(skill_dir) / MODIFY_DIR / rel_path)
    except BinaryContentError as err:
        raise ManifestInvalidError(f"Modified file is not UTF-8 text: {MODIFY_DIR}/{rel_path}") from err
    if content is None:
        raise ManifestInvalidError(f"Missing modified file: {MODIFY_DIR}/{rel_path}")
    return content


def check_core_version(manifest: SkillManifest, core_version: str | None) -> str | None:
    """Return a warning if the skill targets a newer core than the project's."""
    if not core_version:
        return None
    try:
        cmp = compare_semver(manifest.core_version, core_version)
    except ValueError:
        return f"Cannot compare core versions {manifest.core_version!r} and {core_version!r}"
    if cmp > 0:
        return (
            f"Skill targets core {manifest.core_version} but current core "
            f"is {core_version}. The merge might still work but "
            f"there's a compatibility risk."
        )
    return None


def check_request_constraints(
    manifest: SkillManifest,
    preceding: list[str],
    requested: list[str],
) -> str | None:
    """Check a skill's declared dependencies and conflicts against a replay request.

    Dependencies must be applied earlier in the request; conflicting skills
    must not be requested at all.
    """
    missing = [dep for dep in manifest.depends if dep not in preceding]
    if missing:
        return f"Missing dependencies (must be applied earlier): {', '.join(missing)}"
    conflicting = [c for c in manifest.conflicts if c in requested and c != manifest.skill]
    if conflicting:
        return f"Conflicts with requested skills: {', '.join(conflicting)}"
    return None


def compare_semver(a: str, b: str) -> int:
    """Compare two semver strings.

    Returns negative if a < b, 0 if equal, positive if a > b.
    Raises ValueError for non-numeric components.
    """
    parts_a = [int(x) for x in a.split(".")]
    parts_b = [int(x) for x in b.split(".")]

    for i in range(max(len(parts_a), len(parts_b))):
        val_a = parts_a[i] if i < len(parts_a) else 0
        val_b = parts_b[i] if i < len(parts_b) else 0
        diff = val_a - val_b
        if diff != 0:
            return diff

    return 0
