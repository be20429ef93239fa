"""Workflow graph model.

A WorkflowGraph is the immutable snapshot a run consumes: an ordered list of
typed nodes and a list of directed edges. Edges may reference ids that are not
in the graph; such references are reported by validate_graph() and raise
NodeNotFoundError only when traversal actually reaches them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


class NodeType(str, Enum):
    """Closed set of node types the engine can dispatch."""

    PROMPT = "prompt"
    CONDITION = "condition"
    INPUT = "input"
    OUTPUT = "output"
    API_CALL = "api"
    TRANSFORM = "transform"
    SCRAPER = "scraper"


# Lower-cased aliases accepted in stored workflows
_TYPE_ALIASES: Dict[str, NodeType] = {
    "apicall": NodeType.API_CALL,
    "api_call": NodeType.API_CALL,
    "scrapernode": NodeType.SCRAPER,
}


def parse_node_type(raw: Any) -> Optional[NodeType]:
    """Map a stored type string to a NodeType, or None when unknown."""
    if isinstance(raw, NodeType):
        return raw
    if not isinstance(raw, str):
        return None
    key = raw.strip().lower()
    try:
        return NodeType(key)
    except ValueError:
        return _TYPE_ALIASES.get(key)


@dataclass(frozen=True)
class Node:
    """A single typed unit of work.

    Attributes:
        id: Unique node identifier
        type: Type string as authored (see parse_node_type)
        data: Node-specific configuration
    """

    id: str
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.id:
            raise ValueError("node id cannot be empty")

    @property
    def node_type(self) -> Optional[NodeType]:
        return parse_node_type(self.type)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Node":
        data = raw.get("data")
        return cls(
            id=str(raw.get("id") or ""),
            type=str(raw.get("type") or ""),
            data=dict(data) if isinstance(data, Mapping) else {},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "data": self.data}


@dataclass(frozen=True)
class Edge:
    """Directed connection establishing execution order."""

    source: str
    target: str
    id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "Edge":
        edge_id = raw.get("id")
        return cls(
            source=str(raw.get("source") or ""),
            target=str(raw.get("target") or ""),
            id=str(edge_id) if edge_id is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        result = {"source": self.source, "target": self.target}
        if self.id is not None:
            result["id"] = self.id
        return result


@dataclass(frozen=True)
class WorkflowGraph:
    """Ordered nodes plus edges. Multi-edges are allowed."""

    nodes: Tuple[Node, ...]
    edges: Tuple[Edge, ...] = ()
    _index: Dict[str, Node] = field(init=False, repr=False, compare=False)
    _outgoing: Dict[str, List[str]] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "nodes", tuple(self.nodes))
        object.__setattr__(self, "edges", tuple(self.edges))

        index: Dict[str, Node] = {}
        for node in self.nodes:
            if node.id in index:
                raise ValueError(f"duplicate node ID found: {node.id}")
            index[node.id] = node

        outgoing: Dict[str, List[str]] = {}
        for edge in self.edges:
            outgoing.setdefault(edge.source, []).append(edge.target)

        object.__setattr__(self, "_index", index)
        object.__setattr__(self, "_outgoing", outgoing)

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "WorkflowGraph":
        """Build a graph from ``{"nodes": [...], "edges": [...]}``."""
        return cls.from_parts(raw.get("nodes") or [], raw.get("edges") or [])

    @classmethod
    def from_parts(cls, nodes, edges) -> "WorkflowGraph":
        return cls(
            nodes=tuple(n if isinstance(n, Node) else Node.from_dict(n) for n in nodes),
            edges=tuple(e if isinstance(e, Edge) else Edge.from_dict(e) for e in edges),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._index.get(node_id)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._index

    def successors(self, node_id: str) -> List[str]:
        """Targets of edges leaving ``node_id``, in edge order."""
        return list(self._outgoing.get(node_id, ()))

    def start_nodes(self) -> List[str]:
        """Ids of nodes that no edge targets, in graph order."""
        targets = {edge.target for edge in self.edges}
        return [node.id for node in self.nodes if node.id not in targets]
