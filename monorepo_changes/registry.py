"""Project registries: where the set of projects and their edges come from.

A registry answers two questions: which projects exist, and which projects
each one declares as direct dependencies. Qualified ids are expected to be
unique; a registry that reports duplicates is outside the supported contract.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import toml

from .config import EXCLUDED_DIRS, PROJECT_MANIFEST, ROOT_PROJECT_ID
from .models import ProjectInfo, normalize_path

logger = logging.getLogger(__name__)

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


class ProjectRegistry(ABC):
    """Supplies the projects of a monorepo and their declared dependencies."""

    @abstractmethod
    def all_projects(self) -> List[ProjectInfo]:
        """Return every project, in a stable order."""

    @abstractmethod
    def direct_dependencies_of(self, qualified_id: str) -> List[str]:
        """Return the qualified ids *qualified_id* depends on directly.

        May raise when the declarations cannot be read; callers treat that
        as "no dependencies".
        """

    def project_roots(self) -> Dict[str, str]:
        return {project.qualified_id: project.root_path for project in self.all_projects()}


def qualified_id_for(root_path: str) -> str:
    """``libs/shared`` -> ``:libs:shared``; the repository root is ``:``."""
    path = normalize_path(root_path)
    if not path:
        return ROOT_PROJECT_ID
    return ":" + ":".join(part for part in path.split("/") if part)


def normalize_dist_name(name: str) -> str:
    """PEP 503 normalization so ``Common_Lib`` and ``common-lib`` compare equal."""
    return re.sub(r"[-_.]+", "-", name).lower()


def requirement_name(requirement: str) -> Optional[str]:
    match = _REQUIREMENT_NAME.match(requirement)
    if not match:
        return None
    return normalize_dist_name(match.group(1))


class StaticProjectRegistry(ProjectRegistry):
    """Registry backed by explicit declarations held in memory."""

    def __init__(
        self,
        projects: Iterable[ProjectInfo],
        dependencies: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._projects = list(projects)
        self._dependencies = {key: list(value) for key, value in (dependencies or {}).items()}

    def all_projects(self) -> List[ProjectInfo]:
        return list(self._projects)

    def direct_dependencies_of(self, qualified_id: str) -> List[str]:
        return list(self._dependencies.get(qualified_id, []))

    @classmethod
    def from_manifest(cls, manifest: Mapping[str, Mapping[str, Any]]) -> "StaticProjectRegistry":
        """Build from a ``[projects]`` table keyed by qualified id.

        Example::

            [projects.":service"]
            path = "service"
            dependencies = [":common-lib"]
        """
        projects: List[ProjectInfo] = []
        dependencies: Dict[str, List[str]] = {}
        for qualified_id, entry in manifest.items():
            entry = entry or {}
            root_path = normalize_path(str(entry.get("path", qualified_id.strip(":").replace(":", "/"))))
            default_name = qualified_id.rstrip(":").rsplit(":", 1)[-1] or qualified_id
            projects.append(
                ProjectInfo(
                    qualified_id=qualified_id,
                    name=str(entry.get("name", default_name)),
                    root_path=root_path,
                )
            )
            dependencies[qualified_id] = [str(dep) for dep in entry.get("dependencies", [])]
        return cls(projects, dependencies)


class PyprojectWorkspaceRegistry(ProjectRegistry):
    """Discovers projects from ``pyproject.toml`` files under a workspace root.

    Each directory holding a manifest is a project. Dependencies are the
    ``[project].dependencies`` and ``[project.optional-dependencies]``
    requirements whose distribution name matches another workspace member.
    """

    def __init__(self, workspace_root: Path, include_root: bool = True):
        self.workspace_root = Path(workspace_root)
        self.include_root = include_root
        self._projects: Optional[List[ProjectInfo]] = None
        self._manifests: Dict[str, Path] = {}
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._errors: Dict[str, Exception] = {}

    def all_projects(self) -> List[ProjectInfo]:
        if self._projects is None:
            self._projects = self._discover()
        return list(self._projects)

    def direct_dependencies_of(self, qualified_id: str) -> List[str]:
        self.all_projects()
        if qualified_id in self._errors:
            raise self._errors[qualified_id]
        document = self._documents.get(qualified_id)
        if document is None:
            return []

        members = {
            normalize_dist_name(project.name): project.qualified_id
            for project in self._projects or []
        }
        dependencies: List[str] = []
        for requirement in self._requirements(document):
            name = requirement_name(requirement)
            target = members.get(name) if name else None
            if target and target != qualified_id and target not in dependencies:
                dependencies.append(target)
        return dependencies

    def _discover(self) -> List[ProjectInfo]:
        projects: List[ProjectInfo] = []
        manifests = sorted(self._iter_manifests(), key=lambda p: p.parent.relative_to(self.workspace_root).parts)
        for manifest in manifests:
            root_path = normalize_path(manifest.parent.relative_to(self.workspace_root).as_posix())
            qualified_id = qualified_id_for(root_path)
            name = self._load(qualified_id, manifest)
            projects.append(ProjectInfo(qualified_id=qualified_id, name=name, root_path=root_path))

        if self.include_root and not any(p.qualified_id == ROOT_PROJECT_ID for p in projects):
            projects.insert(0, ProjectInfo(ROOT_PROJECT_ID, self.workspace_root.resolve().name, ""))
        elif not self.include_root:
            projects = [p for p in projects if p.qualified_id != ROOT_PROJECT_ID]

        logger.debug("Discovered %d projects under %s", len(projects), self.workspace_root)
        return projects

    def _iter_manifests(self) -> Iterable[Path]:
        for manifest in self.workspace_root.rglob(PROJECT_MANIFEST):
            relative = manifest.parent.relative_to(self.workspace_root)
            if any(part in EXCLUDED_DIRS or part.startswith(".") for part in relative.parts):
                continue
            yield manifest

    def _load(self, qualified_id: str, manifest: Path) -> str:
        """Parse *manifest* and return the project name (directory name fallback)."""
        self._manifests[qualified_id] = manifest
        fallback = manifest.parent.resolve().name
        try:
            document = toml.load(str(manifest))
        except (toml.TomlDecodeError, OSError) as exc:
            logger.debug("Could not parse %s: %s", manifest, exc)
            self._errors[qualified_id] = exc
            return fallback
        self._documents[qualified_id] = document
        return str(document.get("project", {}).get("name") or fallback)

    @staticmethod
    def _requirements(document: Dict[str, Any]) -> List[str]:
        project = document.get("project", {})
        requirements = list(project.get("dependencies", []))
        for extra in project.get("optional-dependencies", {}).values():
            requirements.extend(extra)
        return [str(req) for req in requirements]
