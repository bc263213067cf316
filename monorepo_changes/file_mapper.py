"""Ownership of changed files by projects, resolved by longest root prefix."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import normalize_path
from .registry import ProjectRegistry

logger = logging.getLogger(__name__)


def _owns(root: str, path: str) -> bool:
    if not root:
        return True
    return path == root or path.startswith(root + "/")


def owning_project(roots: Iterable[Tuple[str, str]], path: str) -> Optional[str]:
    """Return the id whose root is the longest prefix of *path*.

    *roots* holds ``(qualified_id, normalized_root)`` pairs. Matching is done
    on whole path segments, so ``lib`` never owns ``library/x.py``. The empty
    root (the repository root project) only wins when nothing deeper does.
    """
    best_id: Optional[str] = None
    best_length = -1
    for qualified_id, root in roots:
        if _owns(root, path) and len(root) > best_length:
            best_id = qualified_id
            best_length = len(root)
    return best_id


def map_files_to_projects(
    project_roots: Mapping[str, str],
    changed_files: Iterable[str],
) -> Dict[str, List[str]]:
    """Group *changed_files* by owning project.

    Files outside every root are dropped. Per-project order follows
    *changed_files* and duplicates are kept as given.
    """
    roots = [(qualified_id, normalize_path(root)) for qualified_id, root in project_roots.items()]
    mapping: Dict[str, List[str]] = {}
    dropped = 0
    for changed in changed_files:
        path = normalize_path(changed)
        owner = owning_project(roots, path)
        if owner is None:
            dropped += 1
            continue
        mapping.setdefault(owner, []).append(path)
    if dropped:
        logger.debug("%d changed file(s) matched no project root", dropped)
    return mapping


class ProjectFileMapper:
    """Maps changed files onto the projects of a registry."""

    def map_changed_files_to_projects(
        self,
        registry: ProjectRegistry,
        changed_files: Iterable[str],
    ) -> Dict[str, List[str]]:
        return map_files_to_projects(registry.project_roots(), changed_files)
