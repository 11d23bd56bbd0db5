"""Shared fixtures for skillpatch tests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
import yaml

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def project_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an empty project directory and chdir into it."""
    root = tmp_path / "project"
    root.mkdir()
    monkeypatch.chdir(root)
    monkeypatch.delenv("SKILLPATCH_SHIPPED_RESOLUTIONS", raising=False)
    monkeypatch.delenv("SKILLPATCH_CONTEXT_LINES", raising=False)
    return root


@pytest.fixture()
def packages_dir(tmp_path: Path) -> Path:
    """Directory holding skill packages, outside the project tree."""
    root = tmp_path / "packages"
    root.mkdir()
    return root


def write_files(root: Path, files: dict[str, str]) -> None:
    """Write relative path -> content pairs under root."""
    for rel_path, content in files.items():
        full_path = root / rel_path
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content.encode("utf-8"))


def write_base(project_root: Path, files: dict[str, str]) -> None:
    """Write files both into the base snapshot and the working tree."""
    write_files(project_root / ".skillpatch" / "base", files)
    write_files(project_root, files)


def read_tree(project_root: Path) -> dict[str, str]:
    """Return every working-tree file outside .skillpatch."""
    return {
        path.relative_to(project_root).as_posix(): path.read_bytes().decode("utf-8")
        for path in sorted(project_root.rglob("*"))
        if path.is_file() and ".skillpatch" not in path.relative_to(project_root).parts
    }


def create_skill_package(
    packages_dir: Path,
    *,
    skill: str = "test-skill",
    version: str = "1.0.0",
    core_version: str = "1.0.0",
    adds: list[str] | None = None,
    modifies: list[str] | None = None,
    add_files: dict[str, str] | None = None,
    modify_files: dict[str, str] | None = None,
    conflicts: list[str] | None = None,
    depends: list[str] | None = None,
    dir_name: str | None = None,
) -> Path:
    """Create a skill package directory with manifest and files.

    ``adds``/``modifies`` default to the keys of ``add_files``/``modify_files``.
    """
    skill_dir = packages_dir / (dir_name or skill)
    skill_dir.mkdir(parents=True, exist_ok=True)

    manifest: dict[str, Any] = {
        "skill": skill,
        "version": version,
        "description": "Test skill",
        "core_version": core_version,
        "adds": adds if adds is not None else sorted(add_files or {}),
        "modifies": modifies if modifies is not None else sorted(modify_files or {}),
        "conflicts": conflicts or [],
        "depends": depends or [],
    }
    (skill_dir / "manifest.yaml").write_text(yaml.safe_dump(manifest), encoding="utf-8")

    if add_files:
        write_files(skill_dir / "add", add_files)
    if modify_files:
        write_files(skill_dir / "modify", modify_files)

    return skill_dir
