"""Core node types: Input, Output, Condition and Transform.

These nodes only touch the variable context; they perform no external I/O.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..engine.conditions import evaluate
from ..engine.context import ExecutionContext, NodeResult
from ..engine.graph import NodeType
from ..engine.template import get_variable
from ..engine.errors import TransformError
from ..engine.transforms import apply_transform, list_transforms
from .registry import BaseNodeImpl, register_node_type

logger = logging.getLogger(__name__)


@register_node_type(
    node_type=NodeType.INPUT,
    display_name="Input",
    description="Declares a workflow input and seeds it with a default value when unset",
    category="io",
    input_schema={
        "type": "object",
        "properties": {
            "variable": {"type": "string", "description": "Variable name"},
            "default_value": {"description": "Value used when the variable is unset"},
        },
        "required": ["variable"],
    },
    output_schema={
        "type": "object",
        "properties": {"variable": {"type": "string"}, "value": {}},
    },
)
class InputNode(BaseNodeImpl):
    """Never fails; passes through when the variable already has a value."""

    async def execute(self, context: ExecutionContext) -> NodeResult:
        variable = self.config.get("variable")
        if not variable:
            return NodeResult(success=True, output=None, extra={"variable": None, "value": None})

        if context.variables.get(variable) is None and self.config.get("default_value") is not None:
            context.variables[variable] = self.config["default_value"]

        value = context.variables.get(variable)
        return NodeResult(
            success=True,
            output=value,
            extra={"variable": variable, "value": value},
        )


def _variable_names(raw: Any) -> List[str]:
    if isinstance(raw, str):
        return [name.strip() for name in raw.split(",") if name.strip()]
    if isinstance(raw, (list, tuple)):
        return [str(name) for name in raw if name]
    return []


@register_node_type(
    node_type=NodeType.OUTPUT,
    display_name="Output",
    description="Reports the current values of selected variables",
    category="io",
    input_schema={
        "type": "object",
        "properties": {
            "variables": {"type": "array", "items": {"type": "string"}},
        },
    },
    output_schema={"type": "object", "additionalProperties": True},
)
class OutputNode(BaseNodeImpl):
    async def execute(self, context: ExecutionContext) -> NodeResult:
        output: Dict[str, Any] = {}
        for name in _variable_names(self.config.get("variables")):
            found, value = get_variable(context.variables, name)
            output[name] = value if found else None
        return NodeResult(success=True, output=output)


@register_node_type(
    node_type=NodeType.CONDITION,
    display_name="Condition",
    description="Evaluates a boolean expression and runs exactly one branch",
    category="logic",
    input_schema={
        "type": "object",
        "properties": {
            "condition": {
                "type": "string",
                "description": "Expression such as {{status}} == 'ok' && {{count}} > 3",
            },
            "true_path": {"type": "string", "description": "Node id run when true"},
            "false_path": {"type": "string", "description": "Node id run when false"},
        },
        "required": ["condition"],
    },
    output_schema={
        "type": "object",
        "properties": {
            "condition_met": {"type": "boolean"},
            "path_taken": {"type": "string", "enum": ["true", "false"]},
        },
    },
)
class ConditionNode(BaseNodeImpl):
    """Owns its forward traversal: the engine does not follow its edges.

    The chosen branch runs to completion before this node's result is
    recorded.
    """

    async def execute(self, context: ExecutionContext) -> NodeResult:
        condition = self.config.get("condition", "")
        condition_met = evaluate(condition, context.variables)
        branch = self.config.get("true_path") if condition_met else self.config.get("false_path")

        logger.info(
            f"Condition {self.node_id} evaluated to {condition_met}"
            + (f", running {branch}" if branch else ", no branch configured")
        )
        if branch:
            await context.execute_branch(str(branch))

        return NodeResult(
            success=True,
            output=condition_met,
            extra={
                "condition": condition,
                "condition_met": condition_met,
                "path_taken": "true" if condition_met else "false",
            },
        )


@register_node_type(
    node_type=NodeType.TRANSFORM,
    display_name="Transform",
    description="Applies a named transformation to a variable",
    category="data",
    input_schema={
        "type": "object",
        "properties": {
            "input_variable": {"type": "string"},
            "output_variable": {"type": "string", "default": "transformed_result"},
            "transformation": {"type": "string", "enum": list_transforms(), "default": "json_parse"},
            "regex": {"type": "string", "description": "Pattern for extract_text"},
            "code": {"type": "string", "description": "Sandboxed expression for custom_code"},
        },
        "required": ["input_variable"],
    },
    output_schema={"description": "Transformed value, or {'error': message} on failure"},
)
class TransformNode(BaseNodeImpl):
    """Transformation failures are recorded on the result; the run continues."""

    default_output_variable = "transformed_result"

    async def execute(self, context: ExecutionContext) -> NodeResult:
        input_name = self.resolved("input_variable", context)
        output_variable = self.output_variable
        transformation = self.config.get("transformation") or "json_parse"

        found, value = get_variable(context.variables, input_name) if input_name else (False, None)
        if not found:
            logger.warning(
                f"Transform {self.node_id}: input variable '{input_name}' is not set"
            )

        try:
            result = apply_transform(transformation, value, self.config, context.variables)
        except TransformError as e:
            logger.warning(f"Transform {self.node_id} ({transformation}) failed: {e}")
            error_output = {"error": str(e)}
            context.variables[output_variable] = error_output
            return NodeResult(
                success=False,
                output=error_output,
                output_variable=output_variable,
                error=str(e),
                error_type=type(e).__name__,
            )

        context.variables[output_variable] = result
        return NodeResult(success=True, output=result, output_variable=output_variable)
