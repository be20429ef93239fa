"""Unit tests for the node registry (promptflow/nodes/registry.py)."""

import pytest

from promptflow.engine.errors import UnsupportedNodeTypeError
from promptflow.engine.graph import NodeType
from promptflow.nodes import (
    NODE_CLASSES,
    NODE_REGISTRY,
    NodeDefinition,
    create_node,
    get_node_definition,
    is_node_type_registered,
    list_node_types,
)
from promptflow.nodes.base import ConditionNode, InputNode, OutputNode, TransformNode
from promptflow.nodes.integration import ApiCallNode, ScraperNode
from promptflow.nodes.prompt import PromptNode


class TestRegistration:
    """Every node type has an executor and metadata."""

    def test_all_types_registered(self):
        assert set(NODE_REGISTRY) == set(NodeType)
        assert set(NODE_CLASSES) == set(NodeType)
        assert len(list_node_types()) == len(NodeType)

    @pytest.mark.parametrize("raw, cls", [
        ("prompt", PromptNode),
        ("condition", ConditionNode),
        ("input", InputNode),
        ("output", OutputNode),
        ("api", ApiCallNode),
        ("apiCall", ApiCallNode),
        ("transform", TransformNode),
        ("scraper", ScraperNode),
        ("scraperNode", ScraperNode),
    ])
    def test_create_node(self, raw, cls):
        node = create_node("n1", raw, {"x": 1})
        assert isinstance(node, cls)
        assert node.node_id == "n1"
        assert node.config == {"x": 1}

    def test_unknown_type(self):
        with pytest.raises(UnsupportedNodeTypeError) as exc_info:
            create_node("n1", "loop", {})
        assert exc_info.value.node_id == "n1"
        assert str(exc_info.value) == "Unsupported node type: loop"

    def test_is_registered(self):
        assert is_node_type_registered("ApiCall") is True
        assert is_node_type_registered("loop") is False

    def test_definition_metadata(self):
        definition = get_node_definition("apicall")
        assert definition.display_name == "API Call"
        assert definition.category == "integration"
        assert "url" in definition.input_schema["required"]
        assert get_node_definition("loop") is None

    def test_definition_requires_display_name(self):
        with pytest.raises(ValueError):
            NodeDefinition(
                node_type=NodeType.INPUT,
                display_name="",
                description="",
                category="io",
                input_schema={},
                output_schema={},
            )


class TestBaseNodeImpl:

    def test_output_variable_defaults(self):
        assert create_node("p", "prompt", {}).output_variable == "result"
        assert create_node("a", "api", {}).output_variable == "api_result"
        assert create_node("t", "transform", {}).output_variable == "transformed_result"
        assert create_node("s", "scraper", {}).output_variable == "scraped_data"
        assert create_node("p", "prompt", {"output_variable": "summary"}).output_variable == "summary"

    def test_validate_config_required_fields(self):
        errors = create_node("s", "scraper", {"url": "https://x.test", "field_selectors": []}).validate_config()
        assert [e["field"] for e in errors] == ["container_selector", "field_selectors"]

    def test_validate_config_ok(self):
        assert create_node("c", "condition", {"condition": "1 == 1"}).validate_config() == []

    def test_none_config(self):
        assert create_node("o", "output", None).config == {}
