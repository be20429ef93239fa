"""Static validation of workflow graphs.

validate_graph() never raises: it reports authoring problems so callers can
show them before running. The traversal engine still fails hard
(NodeNotFoundError, UnsupportedNodeTypeError, ...) when a run actually reaches
a broken reference.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .. import nodes  # noqa: F401 - registers node types
from ..integrations.providers import SUPPORTED_PROVIDERS
from ..nodes.registry import create_node, is_node_type_registered
from .conditions import validate_condition
from .graph import NodeType, WorkflowGraph
from .transforms import TRANSFORMS

logger = logging.getLogger(__name__)

_HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


class ValidationIssue:
    """Workflow validation error or warning.

    Attributes:
        code: Issue code (e.g. MISSING_EDGE_TARGET)
        message: Human-readable message
        severity: "error" or "warning"
        node_id: Affected node, when there is one
        context: Additional details
    """

    def __init__(
        self,
        code: str,
        message: str,
        severity: str = "error",
        node_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.severity = severity
        self.node_id = node_id
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "node_id": self.node_id,
            "context": self.context,
        }


class ValidationResult:
    def __init__(self, errors: List[ValidationIssue], warnings: List[ValidationIssue]):
        self.errors = errors
        self.warnings = warnings

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def issues(self) -> List[ValidationIssue]:
        return self.errors + self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": [w.to_dict() for w in self.warnings],
        }


def validate_graph(graph: WorkflowGraph) -> ValidationResult:
    """Validate a workflow graph.

    Checks:
    - Edge endpoints and condition branch targets exist
    - Node types are known and node configuration is complete
    - Condition expressions parse; methods, transforms and providers are known
    - The graph has at least one start node
    - Nodes not connected to anything (warning)
    """
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    # 1. Edge endpoints
    for index, edge in enumerate(graph.edges):
        for role, node_id in (("source", edge.source), ("target", edge.target)):
            if not graph.has_node(node_id):
                errors.append(ValidationIssue(
                    code=f"MISSING_EDGE_{role.upper()}",
                    message=f"Edge {edge.id or index} {role} '{node_id}' does not exist",
                    context={"edge": edge.to_dict()},
                ))

    # 2. Per-node checks
    branch_targets = set()
    branching_nodes = set()
    for node in graph.nodes:
        if not is_node_type_registered(node.type):
            errors.append(ValidationIssue(
                code="INVALID_NODE_TYPE",
                message=f"Node {node.id} has unsupported type '{node.type}'",
                node_id=node.id,
                context={"node_type": node.type},
            ))
            continue

        config_errors = create_node(node.id, node.type, node.data).validate_config()
        if config_errors:
            errors.append(ValidationIssue(
                code="INVALID_NODE_CONFIG",
                message=f"Node {node.id} configuration is incomplete",
                node_id=node.id,
                context={"validation_errors": config_errors},
            ))

        node_type = node.node_type
        if node_type is NodeType.CONDITION:
            targets = _check_condition(graph, node, errors, warnings)
            if targets:
                branch_targets.update(targets)
                branching_nodes.add(node.id)
        elif node_type is NodeType.API_CALL:
            method = str(node.data.get("method") or "GET").upper()
            if method not in _HTTP_METHODS:
                errors.append(ValidationIssue(
                    code="UNSUPPORTED_METHOD",
                    message=f"Node {node.id} uses unsupported HTTP method '{method}'",
                    node_id=node.id,
                ))
        elif node_type is NodeType.TRANSFORM:
            transformation = node.data.get("transformation") or "json_parse"
            if transformation not in TRANSFORMS:
                errors.append(ValidationIssue(
                    code="UNSUPPORTED_TRANSFORM",
                    message=f"Node {node.id} uses unsupported transformation '{transformation}'",
                    node_id=node.id,
                ))
        elif node_type is NodeType.PROMPT:
            provider = node.data.get("provider")
            if provider and provider not in SUPPORTED_PROVIDERS:
                warnings.append(ValidationIssue(
                    code="UNSUPPORTED_PROVIDER",
                    message=f"Node {node.id} uses unknown provider '{provider}'",
                    severity="warning",
                    node_id=node.id,
                ))

    # 3. Entry points
    if graph.nodes and not graph.start_nodes():
        warnings.append(ValidationIssue(
            code="NO_START_NODE",
            message="Every node has an incoming edge; nothing will run",
            severity="warning",
        ))

    # 4. Dangling nodes
    if len(graph.nodes) > 1:
        connected = {e.source for e in graph.edges} | {e.target for e in graph.edges}
        connected |= branch_targets | branching_nodes
        for node in graph.nodes:
            if node.id not in connected:
                warnings.append(ValidationIssue(
                    code="DANGLING_NODE",
                    message=f"Node {node.id} is not connected to the workflow",
                    severity="warning",
                    node_id=node.id,
                ))

    return ValidationResult(errors=errors, warnings=warnings)


def _check_condition(graph, node, errors, warnings) -> set:
    targets = set()
    for err in validate_condition(node.data.get("condition", "")):
        errors.append(ValidationIssue(
            code="INVALID_CONDITION",
            message=f"Condition of node {node.id} is invalid: {err}",
            node_id=node.id,
            context={"condition": node.data.get("condition")},
        ))

    for key in ("true_path", "false_path"):
        target = node.data.get(key)
        if not target:
            continue
        targets.add(str(target))
        if not graph.has_node(str(target)):
            errors.append(ValidationIssue(
                code="MISSING_BRANCH_TARGET",
                message=f"Node {node.id} {key} '{target}' does not exist",
                node_id=node.id,
            ))

    if graph.successors(node.id):
        warnings.append(ValidationIssue(
            code="CONDITION_EDGES_IGNORED",
            message=(
                f"Condition node {node.id} has outgoing edges; only true_path/false_path are followed"
            ),
            severity="warning",
            node_id=node.id,
        ))
    return targets
