"""Builds the per-run map of :class:`ProjectNode` objects from a registry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import ProjectInfo, ProjectNode
from .registry import ProjectRegistry

logger = logging.getLogger(__name__)

# (dependency ids, complete?)
DependencyLookup = Dict[str, Tuple[Tuple[str, ...], bool]]


class ProjectMetadataFactory:
    """Builds :class:`ProjectNode` maps for every project of a registry.

    Construction is memoized in a cache local to each call: a project's
    node is cached before its dependencies are queued, and known
    dependencies are built eagerly, so each project is built exactly once.
    The cache is not a cycle detector; cycles are tolerated at query time
    by :class:`~monorepo_changes.impact.ChangeSet`.
    """

    def __init__(self, max_workers: int = 1):
        self.max_workers = max(1, max_workers)

    def build_project_metadata_map(
        self,
        registry: ProjectRegistry,
        changed_files_map: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> Dict[str, ProjectNode]:
        """Return a node for every registry project, keyed by qualified id.

        Args:
            registry: Source of projects and dependency declarations.
            changed_files_map: Changed files per qualified id.

        Returns:
            Map ordered as ``registry.all_projects()``.
        """
        changed_files_map = changed_files_map or {}
        project_map: Dict[str, ProjectInfo] = {}
        for project in registry.all_projects():
            project_map[project.qualified_id] = project

        lookup = self._prefetch_dependencies(registry, project_map)

        metadata_map: Dict[str, ProjectNode] = {}
        for project in project_map.values():
            self._build_with_dependencies(project, project_map, metadata_map, changed_files_map, lookup)

        return {qualified_id: metadata_map[qualified_id] for qualified_id in project_map}

    def build_project_metadata(
        self,
        registry: ProjectRegistry,
        qualified_id: str,
        changed_files_map: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> ProjectNode:
        """Return the node for one project.

        An id the registry does not know yields a bare node with no
        dependencies, named after the last segment of the id.
        """
        changed_files_map = changed_files_map or {}
        metadata_map = self.build_project_metadata_map(registry, changed_files_map)
        node = metadata_map.get(qualified_id)
        if node is None:
            node = ProjectNode(
                name=qualified_id.rsplit(":", 1)[-1] or qualified_id,
                qualified_id=qualified_id,
                changed_files=tuple(changed_files_map.get(qualified_id, ())),
            )
        return node

    def _build_with_dependencies(
        self,
        project: ProjectInfo,
        project_map: Mapping[str, ProjectInfo],
        metadata_map: Dict[str, ProjectNode],
        changed_files_map: Mapping[str, Sequence[str]],
        lookup: DependencyLookup,
    ) -> ProjectNode:
        pending = [project]
        while pending:
            current = pending.pop()
            if current.qualified_id in metadata_map:
                continue

            dependency_ids, complete = lookup[current.qualified_id]
            metadata_map[current.qualified_id] = ProjectNode(
                name=current.name,
                qualified_id=current.qualified_id,
                dependency_ids=dependency_ids,
                changed_files=tuple(changed_files_map.get(current.qualified_id, ())),
                dependencies_incomplete=not complete,
            )

            for dependency_id in reversed(dependency_ids):
                dependency = project_map.get(dependency_id)
                if dependency is not None and dependency_id not in metadata_map:
                    pending.append(dependency)

        return metadata_map[project.qualified_id]

    def _prefetch_dependencies(
        self,
        registry: ProjectRegistry,
        project_map: Mapping[str, ProjectInfo],
    ) -> DependencyLookup:
        ids = list(project_map)
        if self.max_workers > 1 and len(ids) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(lambda qid: self._find_project_dependencies(registry, qid), ids))
        else:
            results = [self._find_project_dependencies(registry, qid) for qid in ids]
        return dict(zip(ids, results))

    @staticmethod
    def _find_project_dependencies(registry: ProjectRegistry, qualified_id: str) -> Tuple[Tuple[str, ...], bool]:
        try:
            declared = registry.direct_dependencies_of(qualified_id)
        except Exception as exc:
            # Declarations may be unreadable; keep the project with no edges
            logger.debug("Could not resolve dependencies for %s: %s", qualified_id, exc)
            return (), False

        unique: List[str] = []
        for dependency_id in declared:
            if dependency_id not in unique:
                unique.append(dependency_id)
        return tuple(unique), True
