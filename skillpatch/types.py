"""Skillpatch domain types."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SkillManifest(BaseModel):
    skill: str
    version: str
    description: str = ""
    core_version: str
    adds: list[str]
    modifies: list[str]
    conflicts: list[str] = Field(default_factory=list)
    depends: list[str] = Field(default_factory=list)
    author: str | None = None
    license: str | None = None


class AppliedSkill(BaseModel):
    name: str
    version: str
    applied_at: str
    file_hashes: dict[str, str]


class SkillState(BaseModel):
    skills_system_version: str
    core_version: str | None = None
    applied_skills: list[AppliedSkill] = Field(default_factory=list)
    added_files: list[str] = Field(default_factory=list)
    replayed_at: str | None = None


class SkillReplayResult(BaseModel):
    """Outcome of applying one skill during a replay."""

    success: bool
    error: str | None = None
    conflicts: list[str] | None = None
    preimages: dict[str, str] | None = None
    warnings: list[str] | None = None


class ReplayResult(BaseModel):
    """Result of replaying skills."""

    success: bool
    per_skill: dict[str, SkillReplayResult]
    merge_conflicts: list[str] | None = None
    error: str | None = None


class FileInputHashes(BaseModel):
    base: str
    current: str
    skill: str


class ResolutionEntry(BaseModel):
    """A conflicted file and its hand-approved replacement."""

    rel_path: str
    preimage: str
    resolution: str
    input_hashes: FileInputHashes | None = None


class ResolutionMeta(BaseModel):
    skills: list[str]
    apply_order: list[str] = Field(default_factory=list)
    core_version: str = ""
    resolved_at: str = ""
    resolution_source: Literal["maintainer", "user", "tool"] = "user"
    file_hashes: dict[str, FileInputHashes] = Field(default_factory=dict)


class MergeResult(BaseModel):
    clean: bool
    content: str
    preimage: str | None = None
    conflicts: int = 0
