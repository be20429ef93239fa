"""Node System: registry and the executor for every node type."""

# Import node modules to auto-register node types
from . import base  # noqa: F401 - registers input, output, condition, transform
from . import prompt  # noqa: F401 - registers prompt
from . import integration  # noqa: F401 - registers api, scraper

from .registry import (
    NODE_CLASSES,
    NODE_REGISTRY,
    BaseNodeImpl,
    NodeDefinition,
    NodeExecutor,
    create_node,
    get_node_definition,
    is_node_type_registered,
    list_node_types,
    register_node_type,
)

__all__ = [
    "NODE_CLASSES",
    "NODE_REGISTRY",
    "BaseNodeImpl",
    "NodeDefinition",
    "NodeExecutor",
    "create_node",
    "get_node_definition",
    "is_node_type_registered",
    "list_node_types",
    "register_node_type",
]
