"""Patch-replay engine for composing a codebase from layered skill packages."""

from __future__ import annotations

from .backup import clear_backup, create_backup, restore_backup
from .constants import (
    BACKUP_DIR,
    BASE_DIR,
    RESOLUTIONS_DIR,
    SHIPPED_RESOLUTIONS_DIR,
    SKILLPATCH_DIR,
    SKILLS_SCHEMA_VERSION,
    STATE_FILE,
)
from .errors import (
    BinaryContentError,
    ManifestInvalidError,
    ManifestNotFoundError,
    MergeConflictError,
    MissingSkillPackageError,
    SkillPatchError,
    StateError,
    StorageError,
)
from .manifest import (
    check_core_version,
    check_request_constraints,
    compare_semver,
    read_added_file,
    read_manifest,
    read_modified_file,
)
from .patch import Hunk, Patch, PatchOutcome, apply_patch, derive_patch, merge_file
from .replay import replay_skills
from .resolution_cache import (
    clear_all_resolutions,
    find_resolution_dir,
    list_resolutions,
    load_resolution_meta,
    lookup_resolution,
    resolution_key,
    save_resolution,
)
from .snapshot import read_base, reset_to_base, track_paths, tracked_paths
from .state import get_applied_skills, read_state, write_state
from .types import (
    AppliedSkill,
    FileInputHashes,
    MergeResult,
    ReplayResult,
    ResolutionEntry,
    ResolutionMeta,
    SkillManifest,
    SkillReplayResult,
    SkillState,
)

__all__ = [
    # backup
    "clear_backup",
    "create_backup",
    "restore_backup",
    # constants
    "BACKUP_DIR",
    "BASE_DIR",
    "RESOLUTIONS_DIR",
    "SHIPPED_RESOLUTIONS_DIR",
    "SKILLPATCH_DIR",
    "SKILLS_SCHEMA_VERSION",
    "STATE_FILE",
    # errors
    "BinaryContentError",
    "ManifestInvalidError",
    "ManifestNotFoundError",
    "MergeConflictError",
    "MissingSkillPackageError",
    "SkillPatchError",
    "StateError",
    "StorageError",
    # manifest
    "check_core_version",
    "check_request_constraints",
    "compare_semver",
    "read_added_file",
    "read_manifest",
    "read_modified_file",
    # patch
    "Hunk",
    "Patch",
    "PatchOutcome",
    "apply_patch",
    "derive_patch",
    "merge_file",
    # replay
    "replay_skills",
    # resolution_cache
    "clear_all_resolutions",
    "find_resolution_dir",
    "list_resolutions",
    "load_resolution_meta",
    "lookup_resolution",
    "resolution_key",
    "save_resolution",
    # snapshot
    "read_base",
    "reset_to_base",
    "track_paths",
    "tracked_paths",
    # state
    "get_applied_skills",
    "read_state",
    "write_state",
    # types
    "AppliedSkill",
    "FileInputHashes",
    "MergeResult",
    "ReplayResult",
    "ResolutionEntry",
    "ResolutionMeta",
    "SkillManifest",
    "SkillReplayResult",
    "SkillState",
]
