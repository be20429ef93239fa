"""Tests for the Prompt node (promptflow/nodes/prompt.py)."""

from unittest.mock import AsyncMock

import pytest

from promptflow.engine.context import ExecutionContext, NodeServices
from promptflow.engine.errors import ConfigIncompleteError, PromptNotFoundError, ProviderError
from promptflow.integrations.providers import CompletionResult
from promptflow.nodes import create_node


def _provider(text="Generated", error=None):
    provider = AsyncMock()
    if error:
        provider.generate_completion.return_value = CompletionResult.failure(error)
    else:
        provider.generate_completion.return_value = CompletionResult(
            error=False, text=text, model="gpt-4", provider="openai",
        )
    return provider


def _context(provider, variables=None, prompt_store=None):
    return ExecutionContext(
        variables=dict(variables or {}),
        services=NodeServices(provider=provider, prompt_store=prompt_store),
    )


class TestPromptNode:

    @pytest.mark.asyncio
    async def test_inline_content_with_defaults(self):
        provider = _provider("Llamas are great")
        context = _context(provider, {"topic": "llamas"})

        result = await create_node("p", "prompt", {"content": "Write about {{topic}}"}).execute(context)

        provider.generate_completion.assert_awaited_once_with(
            "openai", "gpt-4", "Write about llamas", 0.7, 2000
        )
        assert result.success is True
        assert result.output == "Llamas are great"
        assert result.output_variable == "result"
        assert context.variables["result"] == "Llamas are great"

    @pytest.mark.asyncio
    async def test_configured_generation_settings(self):
        provider = _provider()
        config = {
            "content": "Hi",
            "provider": "anthropic",
            "model": "claude-3-haiku",
            "temperature": "0.2",
            "max_tokens": "64",
            "output_variable": "greeting",
        }
        context = _context(provider)

        await create_node("p", "prompt", config).execute(context)

        provider.generate_completion.assert_awaited_once_with("anthropic", "claude-3-haiku", "Hi", 0.2, 64)
        assert context.variables["greeting"] == "Generated"

    @pytest.mark.asyncio
    async def test_saved_prompt_from_store(self):
        store = AsyncMock()
        store.get_prompt_current_version_content.return_value = "Hello {{name}}"
        provider = _provider()
        context = _context(provider, {"name": "Ann"}, prompt_store=store)

        await create_node("p", "prompt", {"prompt_id": 12, "content": "ignored"}).execute(context)

        store.get_prompt_current_version_content.assert_awaited_once_with(12)
        assert provider.generate_completion.await_args.args[2] == "Hello Ann"

    @pytest.mark.asyncio
    async def test_saved_prompt_without_store(self):
        with pytest.raises(ConfigIncompleteError):
            await create_node("p", "prompt", {"prompt_id": 12}).execute(_context(_provider()))

    @pytest.mark.asyncio
    async def test_missing_saved_prompt(self):
        store = AsyncMock()
        store.get_prompt_current_version_content.side_effect = PromptNotFoundError(12)
        with pytest.raises(PromptNotFoundError, match="Prompt not found: 12"):
            await create_node("p", "prompt", {"prompt_id": 12}).execute(
                _context(_provider(), prompt_store=store)
            )

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider = _provider()
        with pytest.raises(ConfigIncompleteError):
            await create_node("p", "prompt", {"content": "   "}).execute(_context(provider))
        provider.generate_completion.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_temperature(self):
        with pytest.raises(ConfigIncompleteError):
            await create_node("p", "prompt", {"content": "Hi", "temperature": "hot"}).execute(
                _context(_provider())
            )

    @pytest.mark.asyncio
    async def test_provider_error_is_fatal(self):
        context = _context(_provider(error="OpenAI API error: quota exceeded"))
        with pytest.raises(ProviderError, match="AI service error: OpenAI API error: quota exceeded"):
            await create_node("p", "prompt", {"content": "Hi"}).execute(context)
        assert "result" not in context.variables
