"""Persistence of detection results for later commands and other processes.

Results live in ``<repo>/.monorepo-changes/changed-projects.json`` as plain
field-named JSON. Readers ignore keys they do not know, so newer writers
stay readable by older tools.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from .config import RESULT_FILE_NAME, RESULT_FORMAT_VERSION, STATE_DIR_NAME
from .impact import ChangeSet
from .models import ProjectNode
from .orchestrator import DetectionReport

logger = logging.getLogger(__name__)


class ResultStore:
    """Reads and writes the last detection result of a repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)
        self.state_dir = self.repo_root / STATE_DIR_NAME
        self.result_path = self.state_dir / RESULT_FILE_NAME

    def save(self, report: DetectionReport) -> Path:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": RESULT_FORMAT_VERSION,
            "generated_at": datetime.now().isoformat(),
            "base_branch": report.settings.base_branch,
            "changed_files": list(report.changed_files),
            "affected": report.change_set.changed_project_paths(),
            "projects": [node.to_dict() for node in report.change_set.projects],
        }
        self.result_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.debug("Saved detection result to %s", self.result_path)
        return self.result_path

    def load_payload(self) -> Optional[Dict[str, Any]]:
        if not self.result_path.exists():
            return None
        try:
            return json.loads(self.result_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt result file %s: %s", self.result_path, exc)
            return None

    def load(self) -> Optional[ChangeSet]:
        payload = self.load_payload()
        if payload is None:
            return None
        return ChangeSet(ProjectNode.from_dict(entry) for entry in payload.get("projects", []))

    def clear(self) -> bool:
        if not self.result_path.exists():
            return False
        self.result_path.unlink()
        return True
