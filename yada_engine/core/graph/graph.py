from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Iterator, Optional

from yada_engine.core.errors import DPValidationError
from yada_engine.core.model import DesignPrescription, Graph, GraphNode, ValidationResult

logger = logging.getLogger(__name__)


def build_graph(dps: Iterable[DesignPrescription]) -> Graph:
    """Build the dependency graph keyed by DP id.

    Dependencies that do not resolve to a known DP are skipped here; the
    validator reports them. Levels are assigned before returning. Never fails.
    """
    dps = list(dps)
    nodes: dict[str, GraphNode] = {dp.id: GraphNode(id=dp.id, dp=dp) for dp in dps}

    for dp in dps:
        node = nodes[dp.id]
        for dep_id in dp.dependencies:
            if dep_id not in nodes:
                continue
            node.dependencies.append(dep_id)
            nodes[dep_id].dependents.append(dp.id)

    assign_levels(nodes)
    graph = Graph(nodes=nodes, levels=group_levels(nodes))
    logger.debug("graph built with %d nodes across %d levels", len(nodes), len(graph.levels))
    return graph


def assign_levels(nodes: dict[str, GraphNode]) -> None:
    """Kahn's algorithm, tracking the longest path from a source.

    level(node) = 1 without dependencies, else max(level(dep)) + 1. Nodes on a
    cycle never reach in-degree zero and keep level 0.
    """
    in_degree = {nid: len(node.dependencies) for nid, node in nodes.items()}

    q: deque[str] = deque()
    for nid, degree in in_degree.items():
        if degree == 0:
            nodes[nid].level = 1
            q.append(nid)

    while q:
        cur = nodes[q.popleft()]
        for dependent_id in cur.dependents:
            dependent = nodes[dependent_id]
            in_degree[dependent_id] -= 1
            dependent.level = max(dependent.level, cur.level + 1)
            if in_degree[dependent_id] == 0:
                q.append(dependent_id)


def group_levels(nodes: dict[str, GraphNode]) -> dict[int, list[str]]:
    levels: dict[int, list[str]] = {}
    for node in nodes.values():
        levels.setdefault(node.level, []).append(node.id)
    return levels


def detect_cycles(graph: Graph) -> ValidationResult:
    """Depth-first search for a dependency cycle.

    Walks from every unvisited node in insertion order and stops at the first
    cycle, reported as a chain that closes on its first node (A -> B -> A).
    Uses an explicit stack so deep graphs do not hit the recursion limit.
    """
    result = ValidationResult()
    cycle = _first_cycle(graph)
    if cycle is not None:
        result.error(
            DPValidationError(
                code="E_CYCLE_DETECTED",
                message="Circular dependency detected: " + " -> ".join(cycle),
                path=f"{cycle[0]}.dependencies",
            )
        )
    return result


def _first_cycle(graph: Graph) -> Optional[list[str]]:
    visited: set[str] = set()
    on_path: set[str] = set()
    path: list[str] = []

    for start in graph.nodes:
        if start in visited:
            continue

        visited.add(start)
        on_path.add(start)
        path.append(start)
        stack: list[tuple[str, Iterator[str]]] = [(start, iter(graph.nodes[start].dependencies))]

        while stack:
            nid, deps = stack[-1]
            dep = next(deps, None)
            if dep is None:
                stack.pop()
                path.pop()
                on_path.discard(nid)
                continue

            if dep in on_path:
                return path[path.index(dep) :] + [dep]
            if dep in visited:
                continue

            visited.add(dep)
            on_path.add(dep)
            path.append(dep)
            node = graph.nodes.get(dep)
            stack.append((dep, iter(node.dependencies if node else [])))

    return None


def sorted_levels(graph: Graph) -> list[int]:
    return sorted(graph.levels.keys())


def nodes_at_level(graph: Graph, level: int) -> list[GraphNode]:
    return [graph.nodes[nid] for nid in graph.levels.get(level, []) if nid in graph.nodes]


def get_node(graph: Graph, node_id: str) -> Optional[GraphNode]:
    return graph.nodes.get(node_id)


def is_empty(graph: Graph) -> bool:
    return not graph.nodes
