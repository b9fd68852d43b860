from __future__ import annotations

from yada_engine.core.graph.graph import sorted_levels
from yada_engine.core.model import Graph

_STYLES = [
    "classDef module fill:#e3f2fd,stroke:#1976d2,stroke-width:2px;",
    "classDef standard fill:#fff3e0,stroke:#f57c00,stroke-width:2px;",
]


def mermaid_definition(graph: Graph) -> str:
    """Render the graph as a Mermaid flowchart.

    Output is stable for a given graph (no timestamps), so it can be diffed.
    Edges point from a dependency to the DP that needs it.
    """
    lines: list[str] = ["flowchart TD"]
    lines.extend(f"    {s}" for s in _STYLES)
    lines.append("")

    for node in graph.nodes.values():
        label = (node.dp.name or node.id).replace('"', "'")
        css = "module" if node.dp.nature == "module" else "standard"
        lines.append(f'    {node.id}["{label}"]:::{css}')

    edges = [f"    {dep_id} --> {node.id}" for node in graph.nodes.values() for dep_id in node.dependencies]
    if edges:
        lines.append("")
        lines.extend(edges)

    levels = sorted_levels(graph)
    if len(levels) > 1:
        lines.append("")
        for level in levels:
            lines.append(f'    subgraph Level_{level} ["Level {level}"]')
            lines.extend(f"        {nid}" for nid in graph.levels[level])
            lines.append("    end")

    return "\n".join(lines) + "\n"
