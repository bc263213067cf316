"""Change-impact queries over the project nodes of one analysis run."""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from .models import ChangeSummary, ProjectNode

# (declared dependency id, resolved node or None) -> is this the node we want?
EdgeMatcher = Callable[[str, Optional[ProjectNode]], bool]


class ChangeSet:
    """Read-only view answering which projects a change affects.

    Every query recomputes from the node collection; nothing is cached and
    nothing is mutated, so one instance can be shared freely between readers.
    Results are ordered as the nodes were supplied. Unknown project names
    never raise; they produce empty results.
    """

    def __init__(self, projects: Union[Mapping[str, ProjectNode], Iterable[ProjectNode]]):
        nodes = projects.values() if isinstance(projects, Mapping) else projects
        self._projects = tuple(nodes)
        by_id: Dict[str, ProjectNode] = {}
        by_name: Dict[str, ProjectNode] = {}
        for node in self._projects:
            by_id[node.qualified_id] = node
            by_name.setdefault(node.name, node)
        self._by_id = MappingProxyType(by_id)
        self._by_name = MappingProxyType(by_name)

    @property
    def projects(self) -> Tuple[ProjectNode, ...]:
        return self._projects

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def resolve(self, project: str) -> Optional[ProjectNode]:
        """Find a node by qualified id, falling back to its short name."""
        node = self._by_id.get(project)
        if node is None:
            node = self._by_name.get(project)
        return node

    def find_project(self, project: str) -> Optional[ProjectNode]:
        return self.resolve(project)

    def all_project_names(self) -> List[str]:
        return [node.name for node in self._projects]

    def all_project_paths(self) -> List[str]:
        return [node.qualified_id for node in self._projects]

    # ------------------------------------------------------------------
    # Impact
    # ------------------------------------------------------------------

    def directly_changed_projects(self) -> List[ProjectNode]:
        return [node for node in self._projects if node.has_changes()]

    def affected_projects(self) -> List[ProjectNode]:
        """Directly changed projects plus everything depending on them, transitively."""
        changed_ids = {node.qualified_id for node in self._projects if node.has_changes()}
        if not changed_ids:
            return []

        def reaches_change(_: str, resolved: Optional[ProjectNode]) -> bool:
            return resolved is not None and resolved.qualified_id in changed_ids

        return [
            node
            for node in self._projects
            if node.qualified_id in changed_ids or self._depends_on(node, reaches_change)
        ]

    def projects_depending_on(self, project: str) -> List[ProjectNode]:
        """Projects whose dependency walk reaches *project* (id or short name)."""
        target = self.resolve(project)

        def is_target(dependency_id: str, resolved: Optional[ProjectNode]) -> bool:
            if dependency_id == project:
                return True
            return target is not None and resolved is not None and resolved.qualified_id == target.qualified_id

        return [node for node in self._projects if self._depends_on(node, is_target)]

    def _depends_on(self, start: ProjectNode, matches: EdgeMatcher) -> bool:
        # Iterative DFS with a visited set local to this walk; ids that do not
        # resolve are dead ends.
        visited: Set[str] = {start.qualified_id}
        stack = [start]
        while stack:
            current = stack.pop()
            for dependency_id in current.dependency_ids:
                resolved = self.resolve(dependency_id)
                if matches(dependency_id, resolved):
                    return True
                if resolved is not None and resolved.qualified_id not in visited:
                    visited.add(resolved.qualified_id)
                    stack.append(resolved)
        return False

    def incomplete_projects(self) -> List[ProjectNode]:
        """Projects whose dependency declarations could not be read."""
        return [node for node in self._projects if node.dependencies_incomplete]

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def changed_project_names(self) -> List[str]:
        return [node.name for node in self.affected_projects()]

    def changed_project_paths(self) -> List[str]:
        return [node.qualified_id for node in self.affected_projects()]

    def changed_project_count(self) -> int:
        return len(self.affected_projects())

    def filter_by_prefix(self, prefix: str, segment_aware: bool = False) -> List[ProjectNode]:
        """Affected projects whose qualified id starts with *prefix*.

        By default this is a raw string match, so ``:app`` also selects
        ``:app-extra``. With ``segment_aware`` the match must be exact or end
        on a ``:`` boundary (``:app`` selects ``:app`` and ``:app:sub`` only).
        """
        affected = self.affected_projects()
        if not segment_aware:
            return [node for node in affected if node.qualified_id.startswith(prefix)]

        boundary = prefix if prefix.endswith(":") else prefix + ":"
        return [
            node
            for node in affected
            if node.qualified_id == prefix or node.qualified_id.startswith(boundary)
        ]

    def changed_project_names_with_prefix(self, prefix: str, segment_aware: bool = False) -> List[str]:
        return [node.name for node in self.filter_by_prefix(prefix, segment_aware)]

    def changed_project_paths_with_prefix(self, prefix: str, segment_aware: bool = False) -> List[str]:
        return [node.qualified_id for node in self.filter_by_prefix(prefix, segment_aware)]

    def changed_file_count_by_project(self) -> Dict[str, int]:
        return {node.qualified_id: len(node.changed_files) for node in self._projects if node.has_changes()}

    def all_changed_files(self) -> Set[str]:
        return {path for node in self._projects for path in node.changed_files}

    def total_changed_files_count(self) -> int:
        return sum(len(node.changed_files) for node in self._projects)

    def has_any_changes(self) -> bool:
        return any(node.has_changes() for node in self._projects)

    def summary(self) -> ChangeSummary:
        direct = self.directly_changed_projects()
        affected = self.affected_projects()
        return ChangeSummary(
            total_projects=len(self._projects),
            changed_projects=len(direct),
            affected_projects=len(affected),
            total_changed_files=self.total_changed_files_count(),
            project_names=[node.qualified_id for node in direct],
            affected_project_names=[node.qualified_id for node in affected],
        )

    def __len__(self) -> int:
        return len(self._projects)

    def __str__(self) -> str:
        return (
            f"ChangeSet(total={len(self._projects)}, changed={self.changed_project_count()}, "
            f"files={self.total_changed_files_count()})"
        )
