"""Exception taxonomy for the patch-replay engine."""

from __future__ import annotations


class SkillPatchError(Exception):
    """Base class for all skillpatch errors."""


class MissingSkillPackageError(SkillPatchError, LookupError):
    """No package directory was supplied for a requested skill."""

    def __init__(self, skill: str) -> None:
        super().__init__(f"Skill directory not found for: {skill}")
        self.skill = skill


class ManifestNotFoundError(SkillPatchError, FileNotFoundError):
    """The skill package directory has no manifest."""


class ManifestInvalidError(SkillPatchError, ValueError):
    """The manifest is malformed or references files the package lacks."""


class MergeConflictError(SkillPatchError):
    """A skill's edit could not be placed on the current file content."""

    def __init__(self, rel_path: str, preimage: str) -> None:
        super().__init__(f"Merge conflict in {rel_path}")
        self.rel_path = rel_path
        self.preimage = preimage


class StorageError(SkillPatchError, OSError):
    """The project's storage could not be read or written."""


class BinaryContentError(SkillPatchError, ValueError):
    """A file that has to be handled as text is not valid UTF-8."""


class StateError(SkillPatchError, RuntimeError):
    """The replay state file is corrupt or written by a newer version."""
