"""Tests for detection result persistence."""

import json
from pathlib import Path

from monorepo_changes.models import DetectionSettings
from monorepo_changes.orchestrator import ChangeDetectionOrchestrator
from monorepo_changes.storage import ResultStore

from conftest import make_registry


class StaticSource:
    def __init__(self, files):
        self.files = files

    def get_changed_files(self, working_tree_root, settings):
        return list(self.files)


def detect(temp_dir: Path, graph, files):
    orchestrator = ChangeDetectionOrchestrator(
        temp_dir,
        DetectionSettings(base_branch="develop"),
        source=StaticSource(files),
        registry=make_registry(graph),
    )
    return orchestrator.detect()


class TestResultStore:
    def test_save_and_load(self, temp_dir: Path, chain_graph):
        report = detect(temp_dir, chain_graph, ["common-lib/a.py"])
        store = ResultStore(temp_dir)

        path = store.save(report)
        assert path == temp_dir / ".monorepo-changes" / "changed-projects.json"

        payload = store.load_payload()
        assert payload["version"] == 1
        assert payload["base_branch"] == "develop"
        assert payload["affected"] == [":common-lib", ":service", ":app"]

        restored = store.load()
        assert restored.summary() == report.change_set.summary()

    def test_load_missing(self, temp_dir: Path):
        assert ResultStore(temp_dir).load() is None

    def test_load_corrupt(self, temp_dir: Path):
        store = ResultStore(temp_dir)
        store.state_dir.mkdir(parents=True)
        store.result_path.write_text("{not json", encoding="utf-8")
        assert store.load() is None

    def test_newer_fields_are_ignored(self, temp_dir: Path):
        store = ResultStore(temp_dir)
        store.state_dir.mkdir(parents=True)
        store.result_path.write_text(json.dumps({
            "version": 2,
            "projects": [
                {"name": "a", "qualified_id": ":a", "changed_files": ["a/x"], "team": "core"},
                {"name": "b", "qualified_id": ":b", "dependency_ids": [":a"], "labels": []},
            ],
            "extra": True,
        }), encoding="utf-8")

        change_set = store.load()
        assert [n.qualified_id for n in change_set.affected_projects()] == [":a", ":b"]

    def test_clear(self, temp_dir: Path, chain_graph):
        store = ResultStore(temp_dir)
        assert store.clear() is False
        store.save(detect(temp_dir, chain_graph, []))
        assert store.clear() is True
        assert not store.result_path.exists()
