"""Workflow graph data models.

These are the serializable structures the editor produces: nodes placed on
the canvas and the directed edges between them. They carry no behaviour
beyond structural validation; ``compiler.compile_flow_path`` turns a valid
graph into an executable flow path.
"""

from __future__ import annotations

import json
from collections import Counter
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..core.exceptions import GraphInvalidError

TRIGGER_KIND = "Trigger"
# Node kinds that start a workflow; the drive-change trigger is the primary one.
ENTRY_KINDS = frozenset({TRIGGER_KIND, "Google Drive"})


class NodeData(BaseModel):
    """Editor-facing payload of a node."""

    model_config = ConfigDict(extra="allow")

    title: str = ""
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class Node(BaseModel):
    """A single node placed on the workflow canvas."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    id: str
    kind: str = Field(alias="type")
    position: dict[str, float] = Field(default_factory=lambda: {"x": 0.0, "y": 0.0})
    data: NodeData = Field(default_factory=NodeData)

    @property
    def is_entry(self) -> bool:
        return self.kind in ENTRY_KINDS


class Edge(BaseModel):
    """A directed edge between two nodes."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    source: str
    target: str


class Graph(BaseModel):
    """A complete workflow graph: nodes plus edges."""

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @classmethod
    def from_json(cls, nodes: str | None, edges: str | None) -> Graph:
        """Build a graph from the serialized node and edge lists.

        Raises:
            GraphInvalidError: If either list is not valid JSON or not shaped
                like editor nodes/edges.
        """
        try:
            raw_nodes = json.loads(nodes) if nodes else []
            raw_edges = json.loads(edges) if edges else []
        except json.JSONDecodeError as exc:
            raise GraphInvalidError([f"Graph is not valid JSON: {exc.msg}"]) from exc

        if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
            raise GraphInvalidError(["Nodes and edges must be JSON arrays"])

        try:
            return cls(nodes=raw_nodes, edges=raw_edges)
        except ValidationError as exc:
            problems = [
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
            ]
            raise GraphInvalidError(problems) from exc

    def nodes_json(self) -> str:
        return json.dumps([n.model_dump(by_alias=True) for n in self.nodes])

    def edges_json(self) -> str:
        return json.dumps([e.model_dump() for e in self.edges])

    def get_node(self, node_id: str) -> Node | None:
        """Find a node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def get_entry_node(self) -> Node | None:
        """Return the trigger node, if the graph has one."""
        for node in self.nodes:
            if node.is_entry:
                return node
        return None

    def get_edges_from(self, node_id: str) -> list[Edge]:
        """Get all edges originating from a node, in declaration order."""
        return [e for e in self.edges if e.source == node_id]

    def without_node(self, node_id: str) -> Graph:
        """Return a copy with ``node_id`` and every edge touching it removed."""
        return Graph(
            nodes=[n for n in self.nodes if n.id != node_id],
            edges=[e for e in self.edges if node_id not in (e.source, e.target)],
        )

    def find_problems(self) -> list[str]:
        """Check the structural rules of the graph.

        Returns a list of problems (empty = valid).
        """
        problems: list[str] = []

        id_counts = Counter(n.id for n in self.nodes)
        for node_id, count in id_counts.items():
            if count > 1:
                problems.append(f"Duplicate node id: {node_id}")

        entries = [n.id for n in self.nodes if n.is_entry]
        if len(entries) > 1:
            problems.append(f"Workflow has more than one trigger node: {', '.join(entries)}")

        seen_pairs: set[tuple[str, str]] = set()
        for edge in self.edges:
            if edge.source not in id_counts:
                problems.append(f"Edge {edge.id} references unknown source node: {edge.source}")
            if edge.target not in id_counts:
                problems.append(f"Edge {edge.id} references unknown target node: {edge.target}")
            if edge.source == edge.target:
                problems.append(f"Edge {edge.id} is a self-loop on node {edge.source}")
            pair = (edge.source, edge.target)
            if pair in seen_pairs:
                problems.append(f"Duplicate edge from {edge.source} to {edge.target}")
            seen_pairs.add(pair)

        return problems

    def validate_graph(self) -> Graph:
        """Raise ``GraphInvalidError`` unless the graph is structurally valid."""
        problems = self.find_problems()
        if problems:
            raise GraphInvalidError(problems)
        return self


__all__ = [
    "TRIGGER_KIND",
    "ENTRY_KINDS",
    "NodeData",
    "Node",
    "Edge",
    "Graph",
]
