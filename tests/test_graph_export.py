"""Tests for graph export helpers."""

from pathlib import Path

from monorepo_changes.graph_export import STATE_COLORS, export_dot, export_html
from monorepo_changes.impact import ChangeSet

from conftest import node


def sample_change_set() -> ChangeSet:
    return ChangeSet([
        node("common-lib", files=["common-lib/a.py"]),
        node("service", ["common-lib", "ghost"]),
        node("standalone"),
    ])


class TestExportDot:
    def test_nodes_edges_and_colors(self, temp_dir: Path):
        output = temp_dir / "graph.dot"
        export_dot(sample_change_set(), output)
        text = output.read_text(encoding="utf-8")

        assert text.startswith("digraph Projects {")
        assert '":service" -> ":common-lib";' in text
        assert "ghost" not in text
        assert f'fillcolor="{STATE_COLORS["changed"]}"' in text
        assert f'fillcolor="{STATE_COLORS["affected"]}"' in text
        assert f'fillcolor="{STATE_COLORS["unchanged"]}"' in text


class TestExportHtml:
    def test_writes_table(self, temp_dir: Path):
        output = temp_dir / "graph.html"
        export_html(sample_change_set(), output)
        text = output.read_text(encoding="utf-8")

        assert "<title>Changed Projects</title>" in text
        assert ":common-lib" in text
        assert "affected" in text

    def test_script_block_is_not_closed_by_file_names(self, temp_dir: Path):
        output = temp_dir / "graph.html"
        change_set = ChangeSet([node("web", files=["web/</script><b>x.html"])])
        export_html(change_set, output)
        text = output.read_text(encoding="utf-8")

        assert text.count("</script>") == 1
        assert "<\\/script>" in text
