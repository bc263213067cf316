"""Tests for project registries."""

from pathlib import Path

import pytest

from monorepo_changes.models import ProjectInfo
from monorepo_changes.registry import (
    PyprojectWorkspaceRegistry,
    StaticProjectRegistry,
    normalize_dist_name,
    qualified_id_for,
    requirement_name,
)

from conftest import write_pyproject


class TestHelpers:
    def test_qualified_id_for(self):
        assert qualified_id_for("") == ":"
        assert qualified_id_for("libs/shared") == ":libs:shared"
        assert qualified_id_for("./service/") == ":service"

    def test_requirement_name(self):
        assert requirement_name("common-lib>=0.1") == "common-lib"
        assert requirement_name("Common_Lib[extra] ; python_version > '3.8'") == "common-lib"
        assert requirement_name("  ") is None

    def test_normalize_dist_name(self):
        assert normalize_dist_name("My.Package__name") == "my-package-name"


class TestStaticProjectRegistry:
    def test_all_projects_and_dependencies(self):
        registry = StaticProjectRegistry(
            [ProjectInfo(":a", "a", "a"), ProjectInfo(":b", "b", "b")],
            {":b": [":a"]},
        )
        assert [p.qualified_id for p in registry.all_projects()] == [":a", ":b"]
        assert registry.direct_dependencies_of(":b") == [":a"]
        assert registry.direct_dependencies_of(":a") == []
        assert registry.direct_dependencies_of(":unknown") == []
        assert registry.project_roots() == {":a": "a", ":b": "b"}

    def test_from_manifest(self):
        registry = StaticProjectRegistry.from_manifest({
            ":": {"name": "root"},
            ":libs:core": {"dependencies": []},
            ":service": {"path": "services/svc", "name": "svc", "dependencies": [":libs:core"]},
        })
        projects = {p.qualified_id: p for p in registry.all_projects()}

        assert projects[":"].root_path == ""
        assert projects[":libs:core"].root_path == "libs/core"
        assert projects[":libs:core"].name == "core"
        assert projects[":service"].root_path == "services/svc"
        assert projects[":service"].name == "svc"
        assert registry.direct_dependencies_of(":service") == [":libs:core"]


class TestPyprojectWorkspaceRegistry:
    def test_discovers_members_and_root(self, workspace: Path):
        registry = PyprojectWorkspaceRegistry(workspace)
        projects = registry.all_projects()

        assert [p.qualified_id for p in projects] == [":", ":app", ":common-lib", ":service", ":standalone"]
        assert projects[0].root_path == ""
        assert projects[0].name == workspace.resolve().name
        assert registry.direct_dependencies_of(":service") == [":common-lib"]
        assert registry.direct_dependencies_of(":app") == [":service"]
        assert registry.direct_dependencies_of(":standalone") == []
        assert registry.direct_dependencies_of(":") == []

    def test_root_can_be_excluded(self, workspace: Path):
        registry = PyprojectWorkspaceRegistry(workspace, include_root=False)
        assert ":" not in [p.qualified_id for p in registry.all_projects()]

    def test_root_manifest_names_root_project(self, workspace: Path):
        write_pyproject(workspace, "umbrella", ["app"])
        registry = PyprojectWorkspaceRegistry(workspace)
        root = registry.all_projects()[0]

        assert root.qualified_id == ":"
        assert root.name == "umbrella"
        assert registry.direct_dependencies_of(":") == [":app"]

    def test_nested_projects_and_optional_dependencies(self, temp_dir: Path):
        write_pyproject(temp_dir / "libs" / "core", "core")
        (temp_dir / "apps" / "web").mkdir(parents=True)
        (temp_dir / "apps" / "web" / "pyproject.toml").write_text(
            '[project]\nname = "web"\ndependencies = ["requests"]\n'
            '[project.optional-dependencies]\ndev = ["Core>=1"]\n',
            encoding="utf-8",
        )
        registry = PyprojectWorkspaceRegistry(temp_dir, include_root=False)

        assert registry.project_roots() == {":apps:web": "apps/web", ":libs:core": "libs/core"}
        assert registry.direct_dependencies_of(":apps:web") == [":libs:core"]

    def test_skips_hidden_and_virtualenv_dirs(self, workspace: Path):
        write_pyproject(workspace / ".venv" / "lib" / "pkg", "pkg")
        write_pyproject(workspace / "node_modules" / "thing", "thing")
        ids = [p.qualified_id for p in PyprojectWorkspaceRegistry(workspace).all_projects()]
        assert not any("venv" in i or "node_modules" in i for i in ids)

    def test_malformed_manifest_raises_on_dependency_lookup(self, workspace: Path):
        (workspace / "broken").mkdir()
        (workspace / "broken" / "pyproject.toml").write_text("[project\nname = ", encoding="utf-8")
        registry = PyprojectWorkspaceRegistry(workspace)

        assert ":broken" in [p.qualified_id for p in registry.all_projects()]
        with pytest.raises(Exception):
            registry.direct_dependencies_of(":broken")
