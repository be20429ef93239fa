"""Node Registry

Maps each NodeType to its executor class and metadata. Executors register
themselves with the ``register_node_type`` decorator when their module is
imported (see promptflow/nodes/__init__.py).

Key Components:
- NodeDefinition: Metadata for a node type
- NodeExecutor: Protocol every executor conforms to
- BaseNodeImpl: Common executor functionality
- create_node: Factory raising UnsupportedNodeTypeError for unknown types
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Type, TypeVar, Union

from ..engine.context import ExecutionContext, NodeResult
from ..engine.errors import UnsupportedNodeTypeError
from ..engine.graph import NodeType, parse_node_type
from ..engine.template import resolve

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseNodeImpl")


@dataclass
class NodeDefinition:
    """Metadata definition for a node type.

    Attributes:
        node_type: The NodeType this definition describes
        display_name: Human-readable name
        description: Brief description of node functionality
        category: Category for grouping (e.g., "ai", "logic", "io", "data")
        input_schema: JSON schema of the node's ``data``; ``required`` lists
            keys that must be present and non-empty
        output_schema: JSON schema of the result output
    """

    node_type: NodeType
    display_name: str
    description: str
    category: str
    input_schema: Dict[str, Any]
    output_schema: Dict[str, Any]

    def __post_init__(self):
        if not self.display_name:
            raise ValueError("display_name cannot be empty")
        if not isinstance(self.input_schema, dict):
            raise ValueError("input_schema must be a dictionary")
        if not isinstance(self.output_schema, dict):
            raise ValueError("output_schema must be a dictionary")


class NodeExecutor(Protocol):
    node_id: str
    node_type: NodeType
    config: Dict[str, Any]

    async def execute(self, context: ExecutionContext) -> NodeResult:
        """Run the node against ``context``.

        May write ``context.variables[<output variable>]``. Raises a
        WorkflowExecutionError when the run cannot continue.
        """
        ...

    def validate_config(self) -> List[Dict[str, str]]:
        ...


class BaseNodeImpl(ABC):
    """Abstract base class providing common node functionality."""

    # Written when ``output_variable`` is not configured; None means the
    # node writes nothing.
    default_output_variable: Optional[str] = None

    def __init__(self, node_id: str, node_type: NodeType, config: Dict[str, Any]):
        self.node_id = node_id
        self.node_type = node_type
        self.config = config or {}

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> NodeResult:
        pass

    @property
    def output_variable(self) -> Optional[str]:
        return self.config.get("output_variable") or self.default_output_variable

    def resolved(self, key: str, context: ExecutionContext, default: str = "") -> str:
        """Config value ``key`` with placeholders resolved."""
        value = self.config.get(key)
        if value is None:
            return default
        return resolve(str(value), context.variables)

    def validate_config(self) -> List[Dict[str, str]]:
        """Check that every ``required`` field is present and non-empty."""
        errors = []
        definition = NODE_REGISTRY.get(self.node_type)
        if not definition:
            return [{"field": "type", "error": f"Unknown node type: {self.node_type}"}]

        for field_name in definition.input_schema.get("required", []):
            if self.config.get(field_name) in (None, "", [], {}):
                errors.append({
                    "field": field_name,
                    "error": f"Required field '{field_name}' is missing",
                })
        return errors


# Global registry for node types
NODE_REGISTRY: Dict[NodeType, NodeDefinition] = {}
NODE_CLASSES: Dict[NodeType, Type[BaseNodeImpl]] = {}


def register_node_type(
    node_type: NodeType,
    display_name: str,
    description: str,
    category: str,
    input_schema: Dict[str, Any],
    output_schema: Dict[str, Any],
) -> Callable[[Type[T]], Type[T]]:
    """Decorator registering a node executor class and its metadata.

    Example:
        @register_node_type(
            node_type=NodeType.INPUT,
            display_name="Input",
            description="Seeds a variable with a default value",
            category="io",
            input_schema={"type": "object", "properties": {...}},
            output_schema={"type": "object"},
        )
        class InputNode(BaseNodeImpl):
            async def execute(self, context):
                ...
    """

    def decorator(cls: Type[T]) -> Type[T]:
        NODE_REGISTRY[node_type] = NodeDefinition(
            node_type=node_type,
            display_name=display_name,
            description=description,
            category=category,
            input_schema=input_schema,
            output_schema=output_schema,
        )
        NODE_CLASSES[node_type] = cls
        logger.debug(f"Registered node type: {node_type.value} ({display_name})")
        return cls

    return decorator


def create_node(
    node_id: str,
    node_type: Union[str, NodeType],
    config: Dict[str, Any],
) -> BaseNodeImpl:
    """Instantiate the executor for ``node_type``.

    Raises:
        UnsupportedNodeTypeError: If the type is unknown or has no executor
    """
    parsed = parse_node_type(node_type)
    if parsed is None or parsed not in NODE_CLASSES:
        raise UnsupportedNodeTypeError(str(getattr(node_type, "value", node_type)), node_id)

    node = NODE_CLASSES[parsed](node_id=node_id, node_type=parsed, config=config)
    logger.debug(f"Created node: {node_id} (type={parsed.value})")
    return node


def get_node_definition(node_type: Union[str, NodeType]) -> Optional[NodeDefinition]:
    parsed = parse_node_type(node_type)
    return NODE_REGISTRY.get(parsed) if parsed is not None else None


def list_node_types() -> List[NodeDefinition]:
    return list(NODE_REGISTRY.values())


def is_node_type_registered(node_type: Union[str, NodeType]) -> bool:
    parsed = parse_node_type(node_type)
    return parsed is not None and parsed in NODE_REGISTRY
