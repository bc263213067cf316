"""Repository-level configuration stored in ``.monorepo-changes.toml``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import toml

from .config import CONFIG_FILE_NAME
from .models import DetectionSettings

logger = logging.getLogger(__name__)

SETTING_TYPES = {
    "base_branch": str,
    "include_untracked": bool,
    "include_root": bool,
    "build_command": str,
    "dependency_workers": int,
    "git_timeout": float,
}


def config_path(repo_root: Path) -> Path:
    return Path(repo_root) / CONFIG_FILE_NAME


def load_full_config(repo_root: Path) -> Dict[str, Any]:
    """Load the entire TOML config (all sections).

    A missing file yields an empty dict. A malformed file is logged and
    treated as empty so detection still runs with defaults.
    """
    path = config_path(repo_root)
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            return toml.load(f)
    except (toml.TomlDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def _save_full_config(repo_root: Path, config: Dict[str, Any]) -> Path:
    path = config_path(repo_root)
    with open(path, "w", encoding="utf-8") as f:
        toml.dump(config, f)
    return path


def _coerce(key: str, value: Any) -> Any:
    expected = SETTING_TYPES[key]
    if expected is bool and isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
        raise ValueError(f"Setting '{key}' expects a boolean, got '{value}'")
    try:
        return expected(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Setting '{key}' expects {expected.__name__}, got '{value}'") from exc


def load_settings(repo_root: Path, **overrides: Any) -> DetectionSettings:
    """Build settings from the ``[detection]`` section plus explicit overrides.

    Overrides whose value is ``None`` are skipped, which lets CLI options
    default to "use the config file".
    """
    section = load_full_config(repo_root).get("detection", {})
    values: Dict[str, Any] = {}
    for key, raw in section.items():
        if key not in SETTING_TYPES:
            logger.warning("Unknown setting '%s' in %s", key, CONFIG_FILE_NAME)
            continue
        try:
            values[key] = _coerce(key, raw)
        except ValueError as exc:
            logger.warning("%s; using default", exc)
    for key, raw in overrides.items():
        if raw is None:
            continue
        values[key] = _coerce(key, raw)
    return DetectionSettings(**values)


def save_setting(repo_root: Path, key: str, value: Any) -> Path:
    """Persist one ``[detection]`` setting, preserving other sections."""
    if key not in SETTING_TYPES:
        raise ValueError(f"Unknown setting '{key}'. Choose from: {', '.join(sorted(SETTING_TYPES))}")
    config = load_full_config(repo_root)
    config.setdefault("detection", {})[key] = _coerce(key, value)
    return _save_full_config(repo_root, config)


def load_project_manifest(repo_root: Path) -> Optional[Dict[str, Dict[str, Any]]]:
    """Return the explicit ``[projects]`` table, or None when not declared."""
    projects = load_full_config(repo_root).get("projects")
    if not projects:
        return None
    return projects
