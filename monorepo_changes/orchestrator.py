"""Coordinates changed-file discovery, ownership mapping and impact analysis."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import STATE_DIR_NAME
from .config_manager import load_project_manifest
from .file_mapper import ProjectFileMapper
from .git_changes import GitChangedFilesDetector
from .impact import ChangeSet
from .metadata_factory import ProjectMetadataFactory
from .models import DetectionSettings, ProjectNode
from .registry import ProjectRegistry, PyprojectWorkspaceRegistry, StaticProjectRegistry

logger = logging.getLogger(__name__)


@dataclass
class DetectionReport:
    """Everything one detection run produced."""
    settings: DetectionSettings
    changed_files: List[str]
    changed_files_map: Dict[str, List[str]]
    metadata: Dict[str, ProjectNode]
    change_set: ChangeSet

    def summary_lines(self) -> List[str]:
        direct = [node.qualified_id for node in self.change_set.directly_changed_projects()]
        affected = [node.qualified_id for node in self.change_set.affected_projects()]
        lines = [
            f"Changed files count: {len(self.changed_files)}",
            f"Directly changed projects: {', '.join(direct)}",
            f"All affected projects (including dependents): {', '.join(affected)}",
        ]
        if not affected:
            lines.append("No projects have changed")
        return lines


@dataclass
class BuildOutcome:
    qualified_id: str
    directory: Path
    returncode: int


@dataclass
class BuildResult:
    outcomes: List[BuildOutcome] = field(default_factory=list)

    @property
    def failed(self) -> List[BuildOutcome]:
        return [outcome for outcome in self.outcomes if outcome.returncode != 0]

    @property
    def success(self) -> bool:
        return not self.failed


def default_registry(repo_root: Path, settings: DetectionSettings) -> ProjectRegistry:
    """Explicit ``[projects]`` from the config file win over pyproject discovery."""
    manifest = load_project_manifest(repo_root)
    if manifest:
        return StaticProjectRegistry.from_manifest(manifest)
    return PyprojectWorkspaceRegistry(repo_root, include_root=settings.include_root)


class ChangeDetectionOrchestrator:
    """Runs the detection pipeline for one repository."""

    def __init__(
        self,
        repo_root: Path,
        settings: Optional[DetectionSettings] = None,
        source: Optional[GitChangedFilesDetector] = None,
        registry: Optional[ProjectRegistry] = None,
        factory: Optional[ProjectMetadataFactory] = None,
    ):
        self.repo_root = Path(repo_root)
        self.settings = settings or DetectionSettings()
        self.source = source or GitChangedFilesDetector()
        self.registry = registry or default_registry(self.repo_root, self.settings)
        self.factory = factory or ProjectMetadataFactory(max_workers=self.settings.dependency_workers)
        self.mapper = ProjectFileMapper()

    def detect(self) -> DetectionReport:
        logger.info("Detecting changed projects in %s (base: %s)", self.repo_root, self.settings.base_branch)
        changed_files = [
            path
            for path in self.source.get_changed_files(self.repo_root, self.settings)
            if path != STATE_DIR_NAME and not path.startswith(STATE_DIR_NAME + "/")
        ]
        changed_files_map = self.mapper.map_changed_files_to_projects(self.registry, changed_files)
        metadata = self.factory.build_project_metadata_map(self.registry, changed_files_map)
        change_set = ChangeSet(metadata)

        for node in change_set.incomplete_projects():
            logger.warning("Dependencies of %s could not be read; dependents may be missed", node.qualified_id)

        return DetectionReport(
            settings=self.settings,
            changed_files=changed_files,
            changed_files_map=changed_files_map,
            metadata=metadata,
            change_set=change_set,
        )

    def project_directory(self, qualified_id: str) -> Path:
        roots = self.registry.project_roots()
        return self.repo_root / roots.get(qualified_id, "")

    def build_affected(self, report: DetectionReport, command: str, dry_run: bool = False) -> BuildResult:
        """Run *command* inside each affected project's directory."""
        result = BuildResult()
        args = shlex.split(command)
        for node in report.change_set.affected_projects():
            directory = self.project_directory(node.qualified_id)
            if dry_run:
                result.outcomes.append(BuildOutcome(node.qualified_id, directory, 0))
                continue
            logger.info("Running '%s' in %s", command, directory)
            try:
                completed = subprocess.run(args, cwd=str(directory))
                returncode = completed.returncode
            except FileNotFoundError:
                logger.error("Command not found: %s", args[0] if args else command)
                returncode = 127
            except OSError as exc:
                logger.error("Could not run '%s' in %s: %s", command, directory, exc)
                returncode = 126
            result.outcomes.append(BuildOutcome(node.qualified_id, directory, returncode))
        return result
