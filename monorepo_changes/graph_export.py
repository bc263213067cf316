"""Dependency graph export to Graphviz DOT and a standalone HTML page."""

from __future__ import annotations

import html
import json
from pathlib import Path
from typing import Dict, List

from .impact import ChangeSet

# fill colors per node state
STATE_COLORS = {
    "changed": "#f4a6a6",
    "affected": "#f7d794",
    "unchanged": "#ffffff",
}


def _node_states(change_set: ChangeSet) -> Dict[str, str]:
    direct = {node.qualified_id for node in change_set.directly_changed_projects()}
    affected = {node.qualified_id for node in change_set.affected_projects()}
    states = {}
    for node in change_set.projects:
        if node.qualified_id in direct:
            states[node.qualified_id] = "changed"
        elif node.qualified_id in affected:
            states[node.qualified_id] = "affected"
        else:
            states[node.qualified_id] = "unchanged"
    return states


def _edges(change_set: ChangeSet) -> List[Dict[str, str]]:
    edges = []
    for node in change_set.projects:
        for dependency_id in node.dependency_ids:
            target = change_set.resolve(dependency_id)
            if target is not None:
                edges.append({"src": node.qualified_id, "dst": target.qualified_id})
    return edges


def export_dot(change_set: ChangeSet, output_file: Path) -> None:
    """Write the project graph; edges point from dependent to dependency."""
    states = _node_states(change_set)

    lines = ["digraph Projects {"]
    lines.append("  rankdir=LR;")
    lines.append("  node [shape=box, style=filled];")

    for node in change_set.projects:
        color = STATE_COLORS[states[node.qualified_id]]
        label = f"{node.qualified_id}\\n{len(node.changed_files)} changed file(s)"
        lines.append(f'  "{_esc(node.qualified_id)}" [label="{_esc(label)}", fillcolor="{color}"];')

    for edge in _edges(change_set):
        lines.append(f'  "{_esc(edge["src"])}" -> "{_esc(edge["dst"])}";')

    lines.append("}")
    output_file.write_text("\n".join(lines), encoding="utf-8")


def export_html(change_set: ChangeSet, output_file: Path) -> None:
    states = _node_states(change_set)
    graph_payload = {
        "nodes": [
            {
                "id": node.qualified_id,
                "label": node.name,
                "state": states[node.qualified_id],
                "changed_files": list(node.changed_files),
            }
            for node in change_set.projects
        ],
        "edges": _edges(change_set),
    }
    rows = "\n".join(
        f'      <tr style="background:{STATE_COLORS[n["state"]]}">'
        f"<td>{html.escape(n['id'])}</td><td>{html.escape(n['state'])}</td>"
        f"<td>{len(n['changed_files'])}</td></tr>"
        for n in graph_payload["nodes"]
    )
    doc = f"""<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <title>Changed Projects</title>
  <style>
    body {{ font-family: ui-monospace, SFMono-Regular, Menlo, monospace; margin: 20px; }}
    table {{ border-collapse: collapse; }}
    td, th {{ border: 1px solid #ddd; padding: 4px 10px; }}
  </style>
</head>
<body>
  <h1>Changed Projects</h1>
  <table>
    <thead><tr><th>Project</th><th>State</th><th>Changed files</th></tr></thead>
    <tbody>
{rows}
    </tbody>
  </table>
  <h2>Dependencies</h2>
  <ul id="edges"></ul>
  <script>
    const graph = {_script_json(graph_payload)};
    const edgesEl = document.getElementById('edges');
    graph.edges.forEach(e => {{
      const li = document.createElement('li');
      li.textContent = `${{e.src}} -> ${{e.dst}}`;
      edgesEl.appendChild(li);
    }});
  </script>
</body>
</html>
"""
    output_file.write_text(doc, encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace('"', '\\"')


def _script_json(payload: Dict) -> str:
    # "</" would close the surrounding <script> element
    return json.dumps(payload).replace("</", "<\\/")
