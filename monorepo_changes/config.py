"""Defaults and well-known paths for monorepo change detection."""

from __future__ import annotations

import os

CONFIG_FILE_NAME = os.environ.get("MONOREPO_CHANGES_CONFIG", ".monorepo-changes.toml")
STATE_DIR_NAME = ".monorepo-changes"
RESULT_FILE_NAME = "changed-projects.json"
RESULT_FORMAT_VERSION = 1

DEFAULT_BASE_BRANCH = os.environ.get("MONOREPO_CHANGES_BASE_BRANCH", "main")
GIT_TIMEOUT_SECONDS = float(os.environ.get("MONOREPO_CHANGES_GIT_TIMEOUT", "60"))

ROOT_PROJECT_ID = ":"
PROJECT_MANIFEST = "pyproject.toml"

# Directories never searched for project manifests
EXCLUDED_DIRS = {
    ".git", ".hg", ".venv", "venv", "env", "node_modules", "build", "dist",
    "__pycache__", ".tox", ".nox", ".mypy_cache", ".pytest_cache", STATE_DIR_NAME,
}
