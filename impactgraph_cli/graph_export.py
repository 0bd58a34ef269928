"""Graph export helpers for Graphviz DOT and JSON outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .models import Graph


def _focused_subgraph(graph: Graph, focus: str) -> Dict[str, List[str]]:
    """Keep the focus unit and its direct neighbours, or everything when unfocused."""
    if not focus:
        return {name: sorted(targets) for name, targets in graph.items()}

    keep = {focus} | set(graph.get(focus, ()))
    keep |= {name for name, targets in graph.items() if focus in targets}
    return {name: sorted(t for t in graph.get(name, ()) if t in keep) for name in sorted(keep)}


def to_dot(
    graph: Graph,
    focus: str = "",
    is_test: Optional[Callable[[str], bool]] = None,
    title: str = "ImpactGraph",
) -> str:
    selected = _focused_subgraph(graph, focus)

    lines = [f'digraph "{_esc(title)}" {{']
    lines.append("  rankdir=LR;")
    for name in sorted(selected):
        attrs = [f'label="{_esc(name)}"']
        if is_test is not None and is_test(name):
            attrs.append("shape=box")
        if name not in graph:
            attrs.append("style=dashed")
        lines.append(f'  "{_esc(name)}" [{", ".join(attrs)}];')
    for src in sorted(selected):
        for dst in selected[src]:
            lines.append(f'  "{_esc(src)}" -> "{_esc(dst)}";')
    lines.append("}")
    return "\n".join(lines)


def to_json(graph: Graph, focus: str = "") -> str:
    return json.dumps(_focused_subgraph(graph, focus), indent=2, sort_keys=True)


def export_dot(graph: Graph, output_file: Path, focus: str = "", is_test: Optional[Callable[[str], bool]] = None) -> None:
    output_file.write_text(to_dot(graph, focus=focus, is_test=is_test), encoding="utf-8")


def export_json(graph: Graph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(to_json(graph, focus=focus), encoding="utf-8")


def _esc(text: str) -> str:
    return text.replace('"', '\\"')
