"""Pytest configuration and fixtures for monorepo change detection tests."""

import os
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from monorepo_changes.models import ProjectInfo, ProjectNode
from monorepo_changes.registry import StaticProjectRegistry

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_ENV = {
    "GIT_AUTHOR_NAME": "Test",
    "GIT_AUTHOR_EMAIL": "test@example.com",
    "GIT_COMMITTER_NAME": "Test",
    "GIT_COMMITTER_EMAIL": "test@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def make_registry(graph: Dict[str, List[str]], roots: Optional[Dict[str, str]] = None) -> StaticProjectRegistry:
    """Build a registry from ``{name: [dependency names]}`` using ``:name`` ids."""
    roots = roots or {}
    projects = [
        ProjectInfo(qualified_id=f":{name}", name=name, root_path=roots.get(name, name))
        for name in graph
    ]
    dependencies = {f":{name}": [f":{dep}" for dep in deps] for name, deps in graph.items()}
    return StaticProjectRegistry(projects, dependencies)


def node(name: str, deps: Optional[List[str]] = None, files: Optional[List[str]] = None) -> ProjectNode:
    return ProjectNode(
        name=name,
        qualified_id=f":{name}",
        dependency_ids=tuple(f":{dep}" for dep in deps or []),
        changed_files=tuple(files or []),
    )


def write_pyproject(directory: Path, name: str, dependencies: Optional[List[str]] = None) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    deps = ", ".join(f'"{dep}"' for dep in dependencies or [])
    (directory / "pyproject.toml").write_text(
        f'[project]\nname = "{name}"\nversion = "0.1.0"\ndependencies = [{deps}]\n',
        encoding="utf-8",
    )
    source = directory / "src" / name.replace("-", "_")
    source.mkdir(parents=True, exist_ok=True)
    (source / "__init__.py").write_text(f'"""{name}."""\n', encoding="utf-8")


def git(repo: Path, *args: str) -> str:
    env = {**os.environ, **GIT_ENV}
    result = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=str(repo),
        capture_output=True,
        text=True,
        env=env,
        check=True,
    )
    return result.stdout


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def chain_graph() -> Dict[str, List[str]]:
    """common-lib <- service <- app, plus an unrelated standalone project."""
    return {
        "common-lib": [],
        "service": ["common-lib"],
        "app": ["service"],
        "standalone": [],
    }


@pytest.fixture
def chain_registry(chain_graph) -> StaticProjectRegistry:
    return make_registry(chain_graph)


@pytest.fixture
def workspace(temp_dir: Path) -> Path:
    """A pyproject-based workspace mirroring ``chain_graph``."""
    (temp_dir / "README.md").write_text("# workspace\n", encoding="utf-8")
    write_pyproject(temp_dir / "common-lib", "common-lib")
    write_pyproject(temp_dir / "service", "service", ["common-lib>=0.1"])
    write_pyproject(temp_dir / "app", "app", ["service"])
    write_pyproject(temp_dir / "standalone", "standalone")
    return temp_dir


@pytest.fixture
def git_workspace(workspace: Path) -> Path:
    """``workspace`` committed on a ``main`` branch with a clean tree."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    git(workspace, "init", "-q")
    git(workspace, "symbolic-ref", "HEAD", "refs/heads/main")
    git(workspace, "add", "-A")
    git(workspace, "commit", "-q", "-m", "Initial commit")
    return workspace


def append_to(path: Path, text: str) -> None:
    with open(path, "a", encoding="utf-8") as f:
        f.write(text)
