"""Replay skills from clean base state."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from .config import patch_context_lines
from .errors import (
    BinaryContentError,
    ManifestInvalidError,
    ManifestNotFoundError,
    MergeConflictError,
    MissingSkillPackageError,
)
from .fs_utils import read_bytes, remove_file, write_bytes, write_text
from .logger import logger
from .manifest import (
    check_core_version,
    check_request_constraints,
    read_added_file,
    read_manifest,
    read_modified_file,
)
from .patch import merge_file
from .resolution_cache import lookup_resolution
from .snapshot import is_tracked, read_base, reset_to_base, track_paths
from .state import build_applied_skill, compute_hash, read_state_or_default, write_state
from .types import ReplayResult, SkillManifest, SkillReplayResult, SkillState


def _decode_if_text(data: bytes) -> str | bytes:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data


class _WorkingTree:
    """In-memory view of the working tree for the duration of one replay.

    Text files are held as ``str``; content that is not UTF-8 stays ``bytes``.
    Paths in ``absent`` start out empty and are deleted on commit unless a
    skill writes them.
    """

    def __init__(self, project_root: Path, absent: Iterable[str] = ()) -> None:
        self.project_root = project_root
        self._absent = set(absent)
        self._contents: dict[str, str | bytes | None] = dict.fromkeys(self._absent)
        self._dirty: set[str] = set()

    def read(self, rel_path: str) -> str | bytes | None:
        if rel_path not in self._contents:
            data = read_bytes(self.project_root / rel_path)
            self._contents[rel_path] = None if data is None else _decode_if_text(data)
        return self._contents[rel_path]

    def written(self, rel_path: str) -> bool:
        """Whether a skill has written rel_path during this replay."""
        return rel_path in self._dirty

    def update(self, changes: dict[str, str | bytes]) -> None:
        self._contents.update(changes)
        self._dirty.update(changes)

    def commit(self) -> list[str]:
        """Write every changed path to disk. Returns the written paths."""
        written = sorted(self._dirty)
        for rel_path in written:
            content = self._contents[rel_path]
            if isinstance(content, bytes):
                write_bytes(self.project_root / rel_path, content)
            elif content is not None:
                write_text(self.project_root / rel_path, content)
        for rel_path in sorted(self._absent - self._dirty):
            remove_file(self.project_root / rel_path)
        self._dirty.clear()
        return written


def _dedupe(skills: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for name in skills:
        if name in seen:
            logger.warning("Skill requested more than once, keeping first position", skill=name)
            continue
        seen.add(name)
        ordered.append(name)
    return ordered


def _as_text(content: str | bytes | None, rel_path: str) -> str:
    if isinstance(content, bytes):
        raise BinaryContentError(f"Cannot merge into {rel_path}: content is not UTF-8 text")
    return content or ""


def _resolve_conflict(
    conflict: MergeConflictError,
    key_sets: list[list[str]],
    apply_order: list[str],
    project_root: Path,
) -> str | None:
    for key_skills in key_sets:
        resolution = lookup_resolution(key_skills, conflict.rel_path, conflict.preimage, project_root, apply_order)
        if resolution is not None:
            return resolution
    return None


def _apply_skill(
    skill_name: str,
    skill_dir: Path,
    manifest: SkillManifest,
    tree: _WorkingTree,
    key_sets: list[list[str]],
    apply_order: list[str],
    context: int,
) -> tuple[dict[str, str | bytes], dict[str, str]]:
    """Compute one skill's changes against the working tree.

    Returns (changed path -> new content, conflicted path -> preimage).
    Conflicted paths keep their current content. Raises BinaryContentError
    when a modified path is not UTF-8 text.
    """
    changes: dict[str, str | bytes] = {}
    preimages: dict[str, str] = {}

    # Added files: last writer wins
    for rel_path in manifest.adds:
        changes[rel_path] = _decode_if_text(read_added_file(skill_dir, rel_path))

    for rel_path in manifest.modifies:
        post_image = read_modified_file(skill_dir, rel_path)
        current = _as_text(tree.read(rel_path), rel_path)
        base = read_base(rel_path, tree.project_root)
        if base is None:
            # Untracked paths written earlier in this replay diff against that content
            base = current if tree.written(rel_path) else ""

        result = merge_file(base, post_image, current, label=skill_name, context=context)
        if result.clean:
            changes[rel_path] = result.content
            continue

        conflict = MergeConflictError(rel_path, result.preimage or "")
        resolution = _resolve_conflict(conflict, key_sets, apply_order, tree.project_root)
        if resolution is not None:
            logger.info("Merge conflict resolved from cache", skill=skill_name, path=rel_path)
            changes[rel_path] = resolution
            continue

        logger.warning("Merge conflict", skill=skill_name, path=rel_path, hunks=result.conflicts)
        preimages[rel_path] = conflict.preimage

    return changes, preimages


def replay_skills(
    skills: list[str],
    skill_dirs: dict[str, Path],
    project_root: Path | None = None,
    core_version: str | None = None,
) -> ReplayResult:
    """Reset the project to its base snapshot and replay skills in order.

    Conflicts and invalid manifests fail only the affected skill; the rest
    still apply. Only storage failures (StorageError) and an unreadable
    state file (StateError) raise.
    """
    project_root = Path(project_root or Path.cwd())
    per_skill: dict[str, SkillReplayResult] = {}
    ordered = _dedupe(skills)

    # 1. Every skill needs a package directory before anything is touched
    missing = [name for name in ordered if not skill_dirs.get(name)]
    if missing:
        for name in missing:
            per_skill[name] = SkillReplayResult(success=False, error=str(MissingSkillPackageError(name)))
        logger.error("Replay aborted, missing skill packages", skills=missing)
        return ReplayResult(
            success=False,
            per_skill=per_skill,
            error=f"Missing skill directory for: {', '.join(missing)}",
        )

    previous = read_state_or_default(project_root)
    core_version = core_version or previous.core_version
    logger.info("Replaying skills", skills=ordered, project_root=str(project_root))

    manifests: dict[str, SkillManifest] = {}
    warnings: dict[str, list[str]] = {}
    applicable: list[str] = []
    for name in ordered:
        try:
            manifest = read_manifest(Path(skill_dirs[name]))
        except (ManifestNotFoundError, ManifestInvalidError) as err:
            logger.error("Skill manifest rejected", skill=name, error=str(err))
            per_skill[name] = SkillReplayResult(success=False, error=str(err))
            continue

        constraint_error = check_request_constraints(manifest, applicable, ordered)
        if constraint_error:
            logger.error("Skill constraints not met", skill=name, error=constraint_error)
            per_skill[name] = SkillReplayResult(success=False, error=constraint_error)
            continue

        skill_warnings = []
        if manifest.skill != name:
            skill_warnings.append(f"Manifest names skill {manifest.skill!r}, requested as {name!r}")
        core_warning = check_core_version(manifest, core_version)
        if core_warning:
            skill_warnings.append(core_warning)
        for warning in skill_warnings:
            logger.warning("Skill compatibility warning", skill=name, warning=warning)

        manifests[name] = manifest
        warnings[name] = skill_warnings
        applicable.append(name)

    # 2. Track newly modified paths, then 3. reset to base and drop stale additions
    added_union = {p for name in applicable for p in manifests[name].adds}
    stale_candidates = set(previous.added_files) | added_union
    modified_union = {p for name in applicable for p in manifests[name].modifies}
    track_paths([p for p in modified_union if p not in stale_candidates], project_root)
    # Modified paths with no base are generated from scratch on every replay
    generated = {p for p in modified_union if not is_tracked(p, project_root)}
    reset_to_base(project_root, stale_candidates | generated, keep=added_union)

    # 4. Apply each skill in request order
    # Added paths with no base hold stale content until a skill rewrites them
    tree = _WorkingTree(project_root, absent={p for p in added_union if not is_tracked(p, project_root)})
    context = patch_context_lines(project_root)
    all_conflicts: list[str] = []
    applied_so_far: list[str] = []

    for name in applicable:
        manifest = manifests[name]
        applied_so_far.append(name)
        key_sets = [ordered]
        if set(applied_so_far) != set(ordered):
            key_sets.append(list(applied_so_far))

        try:
            changes, preimages = _apply_skill(
                name, Path(skill_dirs[name]), manifest, tree, key_sets, ordered, context
            )
        except (ManifestInvalidError, BinaryContentError) as err:
            logger.error("Skill could not be applied", skill=name, error=str(err))
            per_skill[name] = SkillReplayResult(success=False, error=str(err), warnings=warnings[name] or None)
            continue

        tree.update(changes)

        if preimages:
            conflicts = list(preimages)
            all_conflicts.extend(p for p in conflicts if p not in all_conflicts)
            per_skill[name] = SkillReplayResult(
                success=False,
                error=f"Merge conflicts: {', '.join(conflicts)}",
                conflicts=conflicts,
                preimages=preimages,
                warnings=warnings[name] or None,
            )
        else:
            per_skill[name] = SkillReplayResult(success=True, warnings=warnings[name] or None)

    # 5. Commit computed content and record what was applied
    written = tree.commit()
    logger.debug("Committed replayed files", paths=written)

    applied = []
    for name in applicable:
        if not per_skill[name].success:
            continue
        manifest = manifests[name]
        file_hashes = {}
        for rel_path in [*manifest.adds, *manifest.modifies]:
            content = tree.read(rel_path)
            if content is not None:
                file_hashes[rel_path] = compute_hash(content)
        applied.append(build_applied_skill(name, manifest.version, file_hashes))

    write_state(
        SkillState(
            skills_system_version=previous.skills_system_version,
            core_version=core_version,
            applied_skills=applied,
            added_files=sorted(added_union | generated),
            replayed_at=datetime.now(UTC).isoformat(),
        ),
        project_root,
    )

    success = all(result.success for result in per_skill.values())
    logger.info("Replay complete", skills=ordered, success=success, conflicts=all_conflicts)

    if all_conflicts:
        return ReplayResult(
            success=False,
            per_skill=per_skill,
            merge_conflicts=all_conflicts,
            error=f"Unresolved merge conflicts: {', '.join(all_conflicts)}",
        )
    if not success:
        failed = [name for name, result in per_skill.items() if not result.success]
        return ReplayResult(success=False, per_skill=per_skill, error=f"Skills failed: {', '.join(failed)}")
    return ReplayResult(success=True, per_skill=per_skill)
