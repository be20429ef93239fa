"""Error taxonomy for workflow execution.

WorkflowExecutionError subclasses abort the run; the coordinator records them
as a failed run. TransformError subclasses are recorded on the node result
and the run continues.
"""

from __future__ import annotations

from typing import Optional


class WorkflowExecutionError(Exception):
    """Base class for errors that abort a run."""
    pass


class NodeNotFoundError(WorkflowExecutionError):
    """An edge or branch pointer references a node id absent from the graph."""

    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class UnsupportedNodeTypeError(WorkflowExecutionError):
    def __init__(self, node_type: str, node_id: Optional[str] = None):
        self.node_type = node_type
        self.node_id = node_id
        super().__init__(f"Unsupported node type: {node_type}")


class UnsupportedMethodError(WorkflowExecutionError):
    def __init__(self, method: str):
        self.method = method
        super().__init__(f"Unsupported HTTP method: {method}")


class UnsupportedTransformError(WorkflowExecutionError):
    def __init__(self, transformation: str):
        self.transformation = transformation
        super().__init__(f"Unsupported transformation: {transformation}")


class ConfigIncompleteError(WorkflowExecutionError):
    """A node is missing configuration it cannot run without."""
    pass


class ProviderError(WorkflowExecutionError):
    """The LLM provider returned an error for a Prompt node."""
    pass


class ApiCallError(WorkflowExecutionError):
    """Transport failure while an ApiCall node was issuing its request."""
    pass


class EvaluationError(WorkflowExecutionError):
    """A condition expression could not be parsed or evaluated."""
    pass


class PromptNotFoundError(WorkflowExecutionError):
    def __init__(self, prompt_id):
        self.prompt_id = prompt_id
        super().__init__(f"Prompt not found: {prompt_id}")


class ExecutionCancelled(WorkflowExecutionError):
    def __init__(self, message: str = "Execution cancelled"):
        super().__init__(message)


class GraphDepthExceededError(WorkflowExecutionError):
    """A chain of successors nests deeper than the interpreter can follow."""

    def __init__(self, executed: int):
        self.executed = executed
        super().__init__(
            f"Graph is too deep to traverse: recursion limit reached after {executed} nodes"
        )


class InvalidRunStateError(Exception):
    """Raised when a run is executed outside the pending state."""
    pass


# =====================================================================
# Non-fatal (recorded on the node result)
# =====================================================================

class TransformError(Exception):
    """A transformation failed on its input; recorded, run continues."""
    pass


class TypeMismatchError(TransformError):
    def __init__(self, transformation: str, expected: str, actual):
        self.transformation = transformation
        self.expected = expected
        self.actual_type = _type_name(actual)
        super().__init__(
            f"{transformation} requires {expected} input, got {self.actual_type}"
        )


def _type_name(value) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__
