"""Tests for manifest reading and compatibility checks."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import yaml

from skillpatch.errors import ManifestInvalidError, ManifestNotFoundError
from skillpatch.manifest import (
    check_core_version,
    check_request_constraints,
    compare_semver,
    read_added_file,
    read_manifest,
    read_modified_file,
)

from .conftest import create_skill_package

if TYPE_CHECKING:
    from pathlib import Path


def _write_manifest(skill_dir: Path, manifest: object) -> None:
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "manifest.yaml").write_text(yaml.safe_dump(manifest))


VALID = {
    "skill": "telegram",
    "version": "1.0.0",
    "core_version": "1.0.0",
    "adds": [],
    "modifies": [],
}


class TestReadManifest:
    @pytest.fixture(autouse=True)
    def _setup(self, packages_dir: Path) -> None:
        self.packages = packages_dir

    def test_reads_valid_manifest(self) -> None:
        skill_dir = create_skill_package(
            self.packages,
            skill="telegram",
            add_files={"src/telegram.ts": "tg\n"},
            modify_files={"src/config.ts": "config\n"},
            depends=["core-utils"],
        )

        manifest = read_manifest(skill_dir)
        assert manifest.skill == "telegram"
        assert manifest.adds == ["src/telegram.ts"]
        assert manifest.modifies == ["src/config.ts"]
        assert manifest.depends == ["core-utils"]
        assert read_added_file(skill_dir, "src/telegram.ts") == b"tg\n"
        assert read_modified_file(skill_dir, "src/config.ts") == "config\n"

    def test_optional_fields_default(self) -> None:
        skill_dir = self.packages / "minimal"
        _write_manifest(skill_dir, VALID)

        manifest = read_manifest(skill_dir)
        assert manifest.conflicts == []
        assert manifest.depends == []
        assert manifest.description == ""

    def test_numeric_versions_are_coerced(self) -> None:
        skill_dir = self.packages / "numeric"
        _write_manifest(skill_dir, {**VALID, "version": 1.2, "core_version": 1})

        manifest = read_manifest(skill_dir)
        assert manifest.version == "1.2"
        assert manifest.core_version == "1"

    def test_missing_manifest_raises_not_found(self) -> None:
        (self.packages / "empty").mkdir()
        with pytest.raises(ManifestNotFoundError):
            read_manifest(self.packages / "empty")

    def test_not_found_is_a_file_not_found_error(self) -> None:
        with pytest.raises(FileNotFoundError):
            read_manifest(self.packages / "nowhere")

    @pytest.mark.parametrize("field", ["skill", "version", "core_version", "adds", "modifies"])
    def test_missing_required_field(self, field: str) -> None:
        skill_dir = self.packages / "incomplete"
        _write_manifest(skill_dir, {k: v for k, v in VALID.items() if k != field})

        with pytest.raises(ManifestInvalidError, match=field):
            read_manifest(skill_dir)

    def test_malformed_yaml(self) -> None:
        skill_dir = self.packages / "broken"
        skill_dir.mkdir()
        (skill_dir / "manifest.yaml").write_text("skill: [unclosed\n")

        with pytest.raises(ManifestInvalidError):
            read_manifest(skill_dir)

    def test_non_mapping_manifest(self) -> None:
        skill_dir = self.packages / "list"
        _write_manifest(skill_dir, ["not", "a", "mapping"])

        with pytest.raises(ManifestInvalidError):
            read_manifest(skill_dir)

    def test_adds_must_be_a_list(self) -> None:
        skill_dir = self.packages / "scalar"
        _write_manifest(skill_dir, {**VALID, "adds": "src/a.ts"})

        with pytest.raises(ManifestInvalidError, match="adds"):
            read_manifest(skill_dir)

    @pytest.mark.parametrize("bad_path", ["../outside.ts", "/etc/passwd", "src/../../x.ts"])
    def test_rejects_paths_escaping_project(self, bad_path: str) -> None:
        skill_dir = self.packages / "escape"
        _write_manifest(skill_dir, {**VALID, "modifies": [bad_path]})

        with pytest.raises(ManifestInvalidError, match="Invalid path"):
            read_manifest(skill_dir)

    def test_rejects_overlapping_adds_and_modifies(self) -> None:
        skill_dir = create_skill_package(
            self.packages,
            adds=["src/a.ts"],
            modifies=["src/a.ts"],
            add_files={"src/a.ts": "a"},
            modify_files={"src/a.ts": "a"},
        )

        with pytest.raises(ManifestInvalidError, match="both added and modified"):
            read_manifest(skill_dir)

    def test_rejects_listed_file_missing_from_package(self) -> None:
        skill_dir = create_skill_package(self.packages, modifies=["src/config.ts"])

        with pytest.raises(ManifestInvalidError, match="modify/src/config.ts"):
            read_manifest(skill_dir)

    def test_added_file_is_read_byte_for_byte(self) -> None:
        skill_dir = create_skill_package(self.packages, adds=["logo.png"])
        (skill_dir / "add").mkdir()
        (skill_dir / "add" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\xff\xfe\x00")

        assert read_added_file(skill_dir, "logo.png") == b"\x89PNG\r\n\x1a\n\xff\xfe\x00"

    def test_non_utf8_modified_file_is_invalid(self) -> None:
        skill_dir = create_skill_package(self.packages, modifies=["src/config.ts"])
        (skill_dir / "modify" / "src").mkdir(parents=True)
        (skill_dir / "modify" / "src" / "config.ts").write_bytes(b"\xff\xfe\x00")

        with pytest.raises(ManifestInvalidError, match="not UTF-8"):
            read_modified_file(skill_dir, "src/config.ts")


class TestCompatibilityChecks:
    @pytest.fixture(autouse=True)
    def _setup(self, packages_dir: Path) -> None:
        self.packages = packages_dir

    def _manifest(self, **overrides: object):  # type: ignore[no-untyped-def]
        skill_dir = self.packages / "pkg"
        _write_manifest(skill_dir, {**VALID, **overrides})
        return read_manifest(skill_dir)

    def test_core_version_newer_than_project_warns(self) -> None:
        manifest = self._manifest(core_version="2.0.0")
        warning = check_core_version(manifest, "1.4.0")
        assert warning is not None
        assert "2.0.0" in warning

    def test_core_version_older_or_equal_is_fine(self) -> None:
        manifest = self._manifest(core_version="1.0.0")
        assert check_core_version(manifest, "1.0.0") is None
        assert check_core_version(manifest, "1.2") is None
        assert check_core_version(manifest, None) is None

    def test_unparseable_core_version_warns(self) -> None:
        manifest = self._manifest(core_version="next")
        assert check_core_version(manifest, "1.0.0") is not None

    def test_dependency_must_be_applied_earlier(self) -> None:
        manifest = self._manifest(depends=["base-skill"])
        assert check_request_constraints(manifest, ["base-skill"], ["base-skill", "telegram"]) is None

        error = check_request_constraints(manifest, [], ["telegram", "base-skill"])
        assert error is not None
        assert "base-skill" in error

    def test_declared_conflict_in_request(self) -> None:
        manifest = self._manifest(conflicts=["whatsapp"])
        assert check_request_constraints(manifest, [], ["telegram"]) is None

        error = check_request_constraints(manifest, [], ["telegram", "whatsapp"])
        assert error is not None
        assert "whatsapp" in error


class TestCompareSemver:
    def test_orders_versions(self) -> None:
        assert compare_semver("1.0.0", "1.0.0") == 0
        assert compare_semver("1.2.0", "1.10.0") < 0
        assert compare_semver("2.0", "1.9.9") > 0
        assert compare_semver("1.0", "1.0.0") == 0

    def test_rejects_non_numeric(self) -> None:
        with pytest.raises(ValueError):
            compare_semver("1.x", "1.0")
