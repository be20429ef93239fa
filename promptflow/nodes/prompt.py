"""Prompt node: renders a prompt template and calls an LLM provider."""

from __future__ import annotations

import logging

from .. import settings
from ..engine.context import ExecutionContext, NodeResult
from ..engine.errors import ConfigIncompleteError, ProviderError
from ..engine.graph import NodeType
from ..engine.template import resolve
from .registry import BaseNodeImpl, register_node_type

logger = logging.getLogger(__name__)


@register_node_type(
    node_type=NodeType.PROMPT,
    display_name="Prompt",
    description="Sends a templated prompt to an LLM provider and stores the reply",
    category="ai",
    input_schema={
        "type": "object",
        "properties": {
            "content": {"type": "string", "description": "Inline prompt template"},
            "prompt_id": {"description": "Saved prompt whose current version is used"},
            "provider": {"type": "string", "default": "openai"},
            "model": {"type": "string", "default": "gpt-4"},
            "temperature": {"type": "number", "default": 0.7},
            "max_tokens": {"type": "integer", "default": 2000},
            "output_variable": {"type": "string", "default": "result"},
        },
    },
    output_schema={"type": "string", "description": "Completion text"},
)
class PromptNode(BaseNodeImpl):
    default_output_variable = "result"

    async def _template(self, context: ExecutionContext) -> str:
        prompt_id = self.config.get("prompt_id")
        if prompt_id:
            store = context.services.prompt_store
            if store is None:
                raise ConfigIncompleteError(
                    f"Prompt node {self.node_id} references prompt {prompt_id} "
                    "but no prompt store is configured"
                )
            return await store.get_prompt_current_version_content(prompt_id)
        return str(self.config.get("content") or "")

    def _generation_params(self):
        try:
            temperature = float(self.config.get("temperature", settings.PROMPT_DEFAULT_TEMPERATURE))
            max_tokens = int(self.config.get("max_tokens", settings.PROMPT_DEFAULT_MAX_TOKENS))
        except (TypeError, ValueError) as e:
            raise ConfigIncompleteError(
                f"Prompt node {self.node_id} has invalid generation settings: {e}"
            ) from e
        return temperature, max_tokens

    async def execute(self, context: ExecutionContext) -> NodeResult:
        template = await self._template(context)
        if not template.strip():
            raise ConfigIncompleteError(f"Prompt node {self.node_id} has no prompt content")

        prompt = resolve(template, context.variables)
        provider = self.config.get("provider") or settings.PROMPT_DEFAULT_PROVIDER
        model = self.config.get("model") or settings.PROMPT_DEFAULT_MODEL
        temperature, max_tokens = self._generation_params()

        logger.info(f"Prompt {self.node_id}: provider={provider} model={model}")
        completion = await context.services.provider.generate_completion(
            provider, model, prompt, temperature, max_tokens
        )
        if completion.error:
            raise ProviderError(f"AI service error: {completion.message}")

        output_variable = self.output_variable
        context.variables[output_variable] = completion.text
        return NodeResult(success=True, output=completion.text, output_variable=output_variable)
