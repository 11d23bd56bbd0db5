"""Skillpatch constants."""

from __future__ import annotations

from pathlib import Path

SKILLPATCH_DIR = Path(".skillpatch")
STATE_FILE = "state.yaml"
BASE_DIR = Path(".skillpatch/base")
BACKUP_DIR = Path(".skillpatch/backup")
RESOLUTIONS_DIR = Path(".skillpatch/resolutions")
SHIPPED_RESOLUTIONS_DIR = Path(".skills/resolutions")
MANIFEST_FILE = "manifest.yaml"
ADD_DIR = "add"
MODIFY_DIR = "modify"
PREIMAGE_SUFFIX = ".preimage"
RESOLUTION_SUFFIX = ".resolution"
META_FILE = "meta.yaml"
SKILLS_SCHEMA_VERSION = "0.1.0"
DEFAULT_CONTEXT_LINES = 3
