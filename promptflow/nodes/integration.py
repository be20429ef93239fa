"""Nodes that call external HTTP services: ApiCall and Scraper.

The two degrade differently. A transport failure in an ApiCall aborts the
run; any scraper failure is written into the output variable and the run
continues.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..engine.context import ExecutionContext, NodeResult
from ..engine.errors import ApiCallError, ConfigIncompleteError, UnsupportedMethodError
from ..engine.graph import NodeType
from ..engine.template import resolve, resolve_structure
from ..integrations.http_client import HttpClientError
from ..integrations.scraper import ScraperServiceError, build_scrape_payload
from .registry import BaseNodeImpl, register_node_type

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")


def _headers(raw: Any, context: ExecutionContext) -> Dict[str, str]:
    """Accepts ``{name: value}`` or ``[{"key": name, "value": value}]``."""
    if isinstance(raw, dict):
        pairs = raw.items()
    elif isinstance(raw, list):
        pairs = [
            (item.get("key") or item.get("name"), item.get("value"))
            for item in raw
            if isinstance(item, dict)
        ]
    else:
        return {}
    return {
        str(name): resolve(str(value if value is not None else ""), context.variables)
        for name, value in pairs
        if name
    }


@register_node_type(
    node_type=NodeType.API_CALL,
    display_name="API Call",
    description="Issues an HTTP request and stores the response",
    category="integration",
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string"},
            "method": {"type": "string", "enum": list(SUPPORTED_METHODS), "default": "GET"},
            "headers": {"type": "object"},
            "body": {"description": "String template or JSON structure"},
            "output_variable": {"type": "string", "default": "api_result"},
        },
        "required": ["url"],
    },
    output_schema={"description": "Parsed JSON response, or the raw body"},
)
class ApiCallNode(BaseNodeImpl):
    """Non-2xx responses are not failures; the status code is recorded."""

    default_output_variable = "api_result"

    async def execute(self, context: ExecutionContext) -> NodeResult:
        method = str(self.config.get("method") or "GET").upper()
        if method not in SUPPORTED_METHODS:
            raise UnsupportedMethodError(method)

        url = resolve(str(self.config.get("url") or ""), context.variables, url_encode=True)
        if not url:
            raise ConfigIncompleteError(f"API node {self.node_id} has no url")

        headers = _headers(self.config.get("headers"), context)
        body = resolve_structure(self.config.get("body"), context.variables)

        try:
            response = await context.services.http.request(method, url, headers=headers, body=body)
        except HttpClientError as e:
            raise ApiCallError(f"API call error: {e}") from e

        output_variable = self.output_variable
        context.variables[output_variable] = response.body
        return NodeResult(
            success=True,
            output=response.body,
            output_variable=output_variable,
            extra={"status_code": response.status_code, "response": response.body},
        )


@register_node_type(
    node_type=NodeType.SCRAPER,
    display_name="Scraper",
    description="Extracts structured fields from a web page via the scraper service",
    category="integration",
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string"},
            "container_selector": {"type": "string"},
            "field_selectors": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"name": {"type": "string"}, "selector": {"type": "string"}},
                },
            },
            "link_field_name": {"type": "string"},
            "link_selector": {"type": "string"},
            "output_variable": {"type": "string", "default": "scraped_data"},
        },
        "required": ["url", "container_selector", "field_selectors"],
    },
    output_schema={"type": "array", "items": {"type": "object"}},
)
class ScraperNode(BaseNodeImpl):
    default_output_variable = "scraped_data"

    def _field_selectors(self, context: ExecutionContext) -> List[Dict[str, str]]:
        fields = []
        for item in self.config.get("field_selectors") or []:
            if not isinstance(item, dict):
                return []
            name = str(item.get("name") or "").strip()
            selector = resolve(str(item.get("selector") or ""), context.variables).strip()
            if not name or not selector:
                return []
            fields.append({"name": name, "selector": selector})
        return fields

    async def execute(self, context: ExecutionContext) -> NodeResult:
        url = self.resolved("url", context).strip()
        container_selector = self.resolved("container_selector", context).strip()
        field_selectors = self._field_selectors(context)
        if not url or not container_selector or not field_selectors:
            raise ConfigIncompleteError(
                f"ScraperNode configuration incomplete for {self.node_id}: "
                "url, container_selector and field_selectors (name and selector) are required"
            )

        payload = build_scrape_payload(
            url,
            container_selector,
            field_selectors,
            link_field_name=self.config.get("link_field_name"),
            link_selector=self.resolved("link_selector", context) or None,
        )

        output_variable = self.output_variable
        try:
            data = await context.services.scraper.scrape(payload)
        except ScraperServiceError as e:
            logger.warning(f"Scraper {self.node_id} failed for {url}: {e}")
            error_payload = e.to_payload()
            context.variables[output_variable] = error_payload
            return NodeResult(
                success=False,
                output=error_payload,
                output_variable=output_variable,
                error=str(e),
                error_type=type(e).__name__,
            )

        context.variables[output_variable] = data
        return NodeResult(success=True, output=data, output_variable=output_variable)
