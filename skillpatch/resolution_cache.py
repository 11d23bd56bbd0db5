"""Resolution cache for hand-approved merge conflict resolutions.

Entries are keyed by the sorted, deduplicated set of skills whose
combination produced the conflict. Shipped resolutions (bundled, read-only)
always win over project-level ones for the same key.
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path, PurePosixPath

import yaml
from pydantic import BaseModel, ValidationError

from .config import shipped_resolutions_root
from .constants import META_FILE, PREIMAGE_SUFFIX, RESOLUTION_SUFFIX, RESOLUTIONS_DIR
from .errors import BinaryContentError
from .fs_utils import make_dir, read_text, remove_tree, walk_files, write_text
from .logger import logger
from .types import FileInputHashes, ResolutionEntry, ResolutionMeta


class PreimagePair(BaseModel):
    """A preimage/resolution pair found in the resolution cache."""

    rel_path: str
    preimage: Path
    resolution: Path


def resolution_key(skills: list[str]) -> str:
    """Build the resolution directory key from skill identifiers.

    Skills are deduplicated, sorted alphabetically and joined with "+".
    """
    return "+".join(sorted(set(skills)))


def find_resolution_dir(
    skills: list[str],
    project_root: Path,
) -> Path | None:
    """Find the resolution directory for a given skill combination.

    Returns the path if it exists, None otherwise.
    """
    key = resolution_key(skills)
    if not key:
        return None

    # Check shipped resolutions first, then project-level
    for root in [shipped_resolutions_root(project_root), project_root / RESOLUTIONS_DIR]:
        dir_path = root / key
        if dir_path.is_dir():
            return dir_path

    return None


def list_resolutions(res_dir: Path) -> list[PreimagePair]:
    """Find every complete preimage/resolution pair in a resolution directory."""
    pairs: list[PreimagePair] = []

    for rel in walk_files(res_dir):
        if not rel.endswith(PREIMAGE_SUFFIX):
            continue
        rel_path = rel.removesuffix(PREIMAGE_SUFFIX)
        resolution_path = res_dir / (rel_path + RESOLUTION_SUFFIX)
        if resolution_path.is_file():
            pairs.append(
                PreimagePair(
                    rel_path=rel_path,
                    preimage=res_dir / rel,
                    resolution=resolution_path,
                )
            )

    return pairs


def load_resolution_meta(res_dir: Path) -> ResolutionMeta | None:
    """Read meta.yaml from a resolution directory. Returns None if absent or invalid."""
    try:
        content = read_text(res_dir / META_FILE)
        if content is None:
            return None
        raw = yaml.safe_load(content) or {}
        return ResolutionMeta.model_validate(raw)
    except (BinaryContentError, yaml.YAMLError, ValidationError) as err:
        logger.warning("Ignoring invalid resolution meta", path=str(res_dir / META_FILE), error=str(err))
        return None


def lookup_resolution(
    skills: list[str],
    rel_path: str,
    preimage: str,
    project_root: Path,
    apply_order: list[str] | None = None,
) -> str | None:
    """Return the cached resolution for a conflicted file, if one matches.

    The stored preimage must equal the given conflicted content exactly.
    """
    res_dir = find_resolution_dir(skills, project_root)
    if res_dir is None:
        return None

    stored_preimage = read_text(res_dir / (rel_path + PREIMAGE_SUFFIX))
    resolution = read_text(res_dir / (rel_path + RESOLUTION_SUFFIX))
    if stored_preimage is None or resolution is None:
        return None

    if stored_preimage != preimage:
        logger.info("Cached preimage does not match", key=res_dir.name, path=rel_path)
        return None

    meta = load_resolution_meta(res_dir)
    if apply_order and meta is not None and meta.apply_order:
        key_skills = set(meta.skills)
        order = [s for s in apply_order if s in key_skills]
        recorded = [s for s in meta.apply_order if s in key_skills]
        if order != recorded:
            # Key is order-independent; the preimage match is what guards reuse
            logger.warning(
                "Resolution was recorded for a different apply order",
                key=res_dir.name,
                path=rel_path,
                recorded=recorded,
                current=order,
            )

    logger.debug("Resolution cache hit", key=res_dir.name, path=rel_path)
    return resolution


def _validate_rel_path(rel_path: str) -> None:
    posix = PurePosixPath(rel_path)
    if not rel_path or posix.is_absolute() or ".." in posix.parts:
        raise ValueError(f'Invalid resolution path: {rel_path} (must be relative without "..")')


def save_resolution(
    skills: list[str],
    files: list[ResolutionEntry | dict],
    meta: dict[str, object],
    project_root: Path,
) -> Path:
    """Save conflict resolutions to the project-level resolution cache.

    Returns the resolution directory.
    """
    key = resolution_key(skills)
    if not key:
        raise ValueError("save_resolution requires at least one skill")
    res_dir = project_root / RESOLUTIONS_DIR / key

    # Normalize dicts to ResolutionEntry objects
    entries = [ResolutionEntry.model_validate(f) if isinstance(f, dict) else f for f in files]

    # Write preimage/resolution pairs
    for entry in entries:
        _validate_rel_path(entry.rel_path)
        write_text(res_dir / (entry.rel_path + PREIMAGE_SUFFIX), entry.preimage)
        write_text(res_dir / (entry.rel_path + RESOLUTION_SUFFIX), entry.resolution)

    # Keep hashes recorded for other paths by earlier saves under the same key
    previous = load_resolution_meta(res_dir)
    merged_file_hashes: dict[str, FileInputHashes] = dict(previous.file_hashes) if previous else {}
    meta_file_hashes = meta.get("file_hashes")
    if isinstance(meta_file_hashes, dict):
        for k, v in meta_file_hashes.items():
            merged_file_hashes[k] = v if isinstance(v, FileInputHashes) else FileInputHashes.model_validate(v)
    for entry in entries:
        if entry.input_hashes is not None:
            merged_file_hashes[entry.rel_path] = entry.input_hashes

    # Extract meta fields with proper defaults
    apply_order = meta.get("apply_order")
    apply_order_list: list[str] = list(apply_order) if isinstance(apply_order, list) else list(skills)
    core_version_raw = meta.get("core_version", "")
    resolved_at_raw = meta.get("resolved_at", "")
    resolution_source_raw = meta.get("resolution_source", "user")

    full_meta = ResolutionMeta(
        skills=sorted(set(skills)),
        apply_order=apply_order_list,
        core_version=str(core_version_raw) if core_version_raw else "",
        resolved_at=str(resolved_at_raw) if resolved_at_raw else datetime.now(UTC).isoformat(),
        resolution_source=str(resolution_source_raw) if resolution_source_raw else "user",
        file_hashes=merged_file_hashes,
    )

    write_text(res_dir / META_FILE, yaml.safe_dump(full_meta.model_dump(), sort_keys=True))
    logger.info("Saved resolution", key=key, files=[e.rel_path for e in entries])
    return res_dir


def clear_all_resolutions(project_root: Path) -> None:
    """Remove all project-level resolution cache entries.

    Called after the base changes, since old resolutions no longer apply.
    Shipped resolutions are never touched.
    """
    res_dir = project_root / RESOLUTIONS_DIR
    remove_tree(res_dir)
    make_dir(res_dir)
