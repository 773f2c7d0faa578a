"""Compile a workflow graph into a flow path.

The flow path is the ordered list of action kinds reachable from the trigger
node, produced by a breadth-first walk. Every reachable node contributes its
kind exactly once no matter how many edges converge on it; nodes that cannot
be reached from the trigger are left out. Order follows BFS layering, so
parallel branches interleave by distance from the trigger.

Only kinds are emitted, not node ids: the coordinator resolves configuration
per kind, so two nodes of the same kind run once per execution.
"""

from __future__ import annotations

import json
from collections import deque

from ..core.logger import get_logger
from .graph import Graph

logger = get_logger("automation.compiler")


def compile_flow_path(graph: Graph) -> list[str]:
    """Derive the flow path for ``graph``.

    The graph is validated first; a graph without a trigger node compiles to
    an empty path.

    Raises:
        GraphInvalidError: If the graph breaks a structural rule.
    """
    graph.validate_graph()

    entry = graph.get_entry_node()
    if entry is None:
        logger.debug("Graph has no trigger node; flow path is empty")
        return []

    flow_path: list[str] = []
    visited = {entry.id}
    queue: deque[str] = deque([entry.id])

    while queue:
        current = queue.popleft()
        for edge in graph.get_edges_from(current):
            if edge.target in visited:
                continue
            target = graph.get_node(edge.target)
            if target is None:
                continue
            visited.add(target.id)
            queue.append(target.id)
            if not target.is_entry:
                flow_path.append(target.kind)

    logger.debug("Compiled flow path: %s", " -> ".join(flow_path) or "(empty)")
    return flow_path


def compile_serialized(nodes: str | None, edges: str | None) -> list[str]:
    """Compile directly from the serialized node and edge lists."""
    return compile_flow_path(Graph.from_json(nodes, edges))


def dump_flow_path(flow_path: list[str]) -> str:
    return json.dumps(list(flow_path))


__all__ = ["compile_flow_path", "compile_serialized", "dump_flow_path"]
