"""Core data models shared by the registry, factory and impact layers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import config


@dataclass(frozen=True)
class ProjectInfo:
    """A project as reported by a registry."""
    qualified_id: str
    name: str
    root_path: str = ""


@dataclass(frozen=True)
class ProjectNode:
    name: str
    qualified_id: str
    dependency_ids: Tuple[str, ...] = ()
    changed_files: Tuple[str, ...] = ()
    dependencies_incomplete: bool = False

    def has_dependency(self, project: str) -> bool:
        """Return True if *project* is one of the declared direct dependencies."""
        return project in self.dependency_ids

    def has_changes(self) -> bool:
        return len(self.changed_files) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "qualified_id": self.qualified_id,
            "dependency_ids": list(self.dependency_ids),
            "changed_files": list(self.changed_files),
            "dependencies_incomplete": self.dependencies_incomplete,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProjectNode":
        """Rebuild a node from :meth:`to_dict` output; unknown keys are ignored."""
        return cls(
            name=payload["name"],
            qualified_id=payload["qualified_id"],
            dependency_ids=tuple(payload.get("dependency_ids", ())),
            changed_files=tuple(payload.get("changed_files", ())),
            dependencies_incomplete=bool(payload.get("dependencies_incomplete", False)),
        )

    def __str__(self) -> str:
        return (
            f"ProjectNode(name='{self.name}', qualified_id='{self.qualified_id}', "
            f"dependencies={len(self.dependency_ids)}, "
            f"changed_files={len(self.changed_files)} files)"
        )


@dataclass
class ChangeSummary:
    """Aggregate counts for one analysis run."""
    total_projects: int
    changed_projects: int
    affected_projects: int
    total_changed_files: int
    project_names: List[str] = field(default_factory=list)
    affected_project_names: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_projects": self.total_projects,
            "changed_projects": self.changed_projects,
            "affected_projects": self.affected_projects,
            "total_changed_files": self.total_changed_files,
            "project_names": list(self.project_names),
            "affected_project_names": list(self.affected_project_names),
        }

    def __str__(self) -> str:
        lines = [
            "Change Summary:",
            f"  Total Projects: {self.total_projects}",
            f"  Changed Projects (direct): {self.changed_projects}",
            f"  Affected Projects (including dependents): {self.affected_projects}",
            f"  Total Changed Files: {self.total_changed_files}",
            f"  Direct Changes: {', '.join(self.project_names)}",
            f"  All Affected: {', '.join(self.affected_project_names)}",
        ]
        return "\n".join(lines)


@dataclass
class DetectionSettings:
    """Knobs for one detection run, merged from env, config file and CLI flags."""
    base_branch: str = config.DEFAULT_BASE_BRANCH
    include_untracked: bool = True
    include_root: bool = True
    build_command: Optional[str] = None
    dependency_workers: int = 1
    git_timeout: float = config.GIT_TIMEOUT_SECONDS

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "base_branch": self.base_branch,
            "include_untracked": self.include_untracked,
            "include_root": self.include_root,
            "dependency_workers": self.dependency_workers,
            "git_timeout": self.git_timeout,
        }
        if self.build_command:
            payload["build_command"] = self.build_command
        return payload


def normalize_path(path: str) -> str:
    """Normalize a path to posix form without leading ``./`` or trailing slash."""
    if not path:
        return ""
    text = path.replace(os.sep, "/") if os.sep != "/" else path
    while text.startswith("./"):
        text = text[2:]
    text = text.rstrip("/")
    if text == ".":
        return ""
    return text
