"""Typer-based CLI for monorepo change detection."""

from __future__ import annotations

import json
import logging
import shlex
from pathlib import Path
from typing import Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__
from .config_manager import SETTING_TYPES, config_path, load_settings, save_setting
from .git_changes import GitCommandError
from .graph_export import export_dot, export_html
from .impact import ChangeSet
from .models import DetectionSettings
from .orchestrator import ChangeDetectionOrchestrator, DetectionReport
from .storage import ResultStore

console = Console()

app = typer.Typer(
    help="Detect which monorepo projects are affected by your changes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    help="Show or change the repository's detection settings.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
app.add_typer(config_app, name="config")

RootArgument = typer.Argument(
    Path("."), exists=True, file_okay=False, help="Repository root (defaults to the current directory)."
)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"monorepo-changes v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log pipeline details to stderr."),
):
    """Changed-project detection for selective builds in a monorepo."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _settings(root: Path, **overrides) -> DetectionSettings:
    try:
        return load_settings(root, **overrides)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))


def _run_detection(root: Path, settings: DetectionSettings) -> Tuple[ChangeDetectionOrchestrator, DetectionReport]:
    orchestrator = ChangeDetectionOrchestrator(root.resolve(), settings)
    try:
        report = orchestrator.detect()
    except GitCommandError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(code=1)
    return orchestrator, report


@app.command("detect")
def detect(
    root: Path = RootArgument,
    base_branch: Optional[str] = typer.Option(None, "--base-branch", "-b", help="Reference to diff against."),
    include_untracked: Optional[bool] = typer.Option(
        None, "--include-untracked/--no-untracked", help="Count untracked files as changes."
    ),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p", help="Only list affected projects with this id prefix."),
    segment_aware: bool = typer.Option(False, "--segment-aware", help="Require the prefix to end on a ':' boundary."),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON."),
    save: bool = typer.Option(False, "--save", help="Persist the result for 'mrc show' and other tools."),
):
    """Detect directly changed projects and everything that depends on them."""
    settings = _settings(root, base_branch=base_branch, include_untracked=include_untracked)
    _, report = _run_detection(root, settings)
    change_set = report.change_set

    if save:
        ResultStore(root.resolve()).save(report)

    if as_json:
        payload = {
            "summary": change_set.summary().to_dict(),
            "changed_files": report.changed_files,
            "changed_files_map": report.changed_files_map,
        }
        if prefix is not None:
            payload["matching"] = change_set.changed_project_paths_with_prefix(prefix, segment_aware)
        typer.echo(json.dumps(payload, indent=2))
        return

    typer.echo("Detecting changed projects...")
    typer.echo(f"Base branch: {settings.base_branch}")
    typer.echo(f"Include untracked: {str(settings.include_untracked).lower()}")
    for line in report.summary_lines():
        typer.echo(line)

    if prefix is not None:
        matching = change_set.changed_project_paths_with_prefix(prefix, segment_aware)
        typer.echo(f"Affected projects matching '{prefix}': {', '.join(matching)}")


@app.command("build")
def build(
    root: Path = RootArgument,
    command: Optional[str] = typer.Option(None, "--command", "-c", help="Command to run in each affected project."),
    base_branch: Optional[str] = typer.Option(None, "--base-branch", "-b", help="Reference to diff against."),
    include_untracked: Optional[bool] = typer.Option(
        None, "--include-untracked/--no-untracked", help="Count untracked files as changes."
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="List the projects without running anything."),
):
    """Run the build command only in affected projects."""
    settings = _settings(
        root, base_branch=base_branch, include_untracked=include_untracked, build_command=command
    )
    orchestrator, report = _run_detection(root, settings)
    affected = report.change_set.affected_projects()

    if not affected:
        typer.echo("No projects have changed - nothing to build")
        raise typer.Exit(code=0)

    if not dry_run and not (settings.build_command or "").strip():
        raise typer.BadParameter("No build command. Pass --command or run 'mrc config set build_command ...'.")
    if settings.build_command:
        try:
            shlex.split(settings.build_command)
        except ValueError as exc:
            raise typer.BadParameter(f"Cannot parse build command: {exc}")

    typer.echo(f"Building {len(affected)} changed project(s): {', '.join(n.qualified_id for n in affected)}")
    result = orchestrator.build_affected(report, settings.build_command or "", dry_run=dry_run)

    for outcome in result.outcomes:
        mark = "✓" if outcome.returncode == 0 else "✗"
        typer.echo(f"  {mark} {outcome.qualified_id} ({outcome.directory})")

    if not result.success:
        failed = ", ".join(outcome.qualified_id for outcome in result.failed)
        console.print(f"[red]✗[/red] Build failed for: {failed}")
        raise typer.Exit(code=1)


@app.command("projects")
def projects(root: Path = RootArgument):
    """List the projects of the repository and their dependencies."""
    settings = _settings(root)
    orchestrator = ChangeDetectionOrchestrator(root.resolve(), settings)
    metadata = orchestrator.factory.build_project_metadata_map(orchestrator.registry)
    roots = orchestrator.registry.project_roots()

    if not metadata:
        typer.echo("No projects found.")
        raise typer.Exit(code=0)

    table = Table(title="Projects")
    table.add_column("Project", style="cyan")
    table.add_column("Name")
    table.add_column("Path")
    table.add_column("Depends on")
    for node in metadata.values():
        deps = ", ".join(node.dependency_ids)
        if node.dependencies_incomplete:
            deps = "[yellow]unreadable[/yellow]"
        table.add_row(node.qualified_id, node.name, roots.get(node.qualified_id) or ".", deps)
    console.print(table)


@app.command("dependents")
def dependents(
    target: str = typer.Argument(..., help="Qualified id or short name of a project."),
    root: Path = RootArgument,
):
    """Show every project that depends on TARGET, directly or transitively."""
    settings = _settings(root)
    orchestrator = ChangeDetectionOrchestrator(root.resolve(), settings)
    change_set = ChangeSet(orchestrator.factory.build_project_metadata_map(orchestrator.registry))

    if change_set.resolve(target) is None:
        raise typer.BadParameter(f"Project '{target}' not found.")

    found = change_set.projects_depending_on(target)
    if not found:
        typer.echo(f"No projects depend on '{target}'.")
        return
    typer.echo(f"Projects depending on '{target}':")
    for node in found:
        typer.echo(f"- {node.qualified_id}")


@app.command("export-graph")
def export_graph(
    root: Path = RootArgument,
    fmt: str = typer.Option("dot", "--format", "-f", help="Export format: dot or html."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    base_branch: Optional[str] = typer.Option(None, "--base-branch", "-b", help="Reference to diff against."),
):
    """Export the project graph with changed and affected projects highlighted."""
    fmt = fmt.lower()
    if fmt not in {"html", "dot"}:
        raise typer.BadParameter("Format must be one of: html, dot")

    settings = _settings(root, base_branch=base_branch)
    _, report = _run_detection(root, settings)

    if output is None:
        output = Path.cwd() / f"projects_graph.{fmt}"

    if fmt == "html":
        export_html(report.change_set, output)
    else:
        export_dot(report.change_set, output)

    typer.echo(f"Exported graph to {output}")


@app.command("show")
def show(root: Path = RootArgument):
    """Print the summary of the last result saved with 'mrc detect --save'."""
    store = ResultStore(root.resolve())
    change_set = store.load()
    if change_set is None:
        typer.echo("No saved result. Run 'mrc detect --save' first.")
        raise typer.Exit(code=1)
    typer.echo(str(change_set.summary()))


@config_app.command("show")
def config_show(root: Path = RootArgument):
    """Print the effective detection settings."""
    settings = _settings(root)
    path = config_path(root)
    typer.echo(f"Config file: {path}{'' if path.exists() else ' (not created)'}")
    for key, value in settings.to_dict().items():
        typer.echo(f"{key} = {value}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help=f"Setting name: {', '.join(sorted(SETTING_TYPES))}."),
    value: str = typer.Argument(..., help="New value."),
    root: Path = RootArgument,
):
    """Persist a detection setting in the repository config file."""
    try:
        path = save_setting(root, key, value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Set {key} = {value} in {path}")


if __name__ == "__main__":
    app()
