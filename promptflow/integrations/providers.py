"""LLM provider client.

One entry point, ``generate_completion``, for every supported provider:
openai, anthropic, google, deepseek and ollama. Remote failures never raise;
they come back as ``CompletionResult(error=True, message=...)`` so the caller
decides whether the failure is fatal.

Credentials are looked up per provider through a CredentialResolver. For
ollama the stored "key" is the base URL of the Ollama server.

Usage:
    client = ProviderClient(StaticCredentials({"openai": "sk-..."}))
    result = await client.generate_completion("openai", "gpt-4", "Hi", 0.7, 2000)
    if not result.error:
        print(result.text)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import httpx

from .. import config
from ..settings import HTTP_MAX_CONNECTIONS, HTTP_MAX_KEEPALIVE, PROVIDER_HTTP_TIMEOUT

logger = logging.getLogger(__name__)


class CredentialResolver(Protocol):
    async def get_api_key(self, provider: str) -> Optional[str]:
        ...


class StaticCredentials:
    """Credentials from a plain ``{provider: key}`` mapping."""

    def __init__(self, keys: Optional[Mapping[str, str]] = None):
        self._keys = dict(keys or {})

    async def get_api_key(self, provider: str) -> Optional[str]:
        return self._keys.get(provider)


@dataclass
class CompletionResult:
    error: bool
    text: Optional[str] = None
    message: Optional[str] = None
    model: Optional[str] = None
    provider: Optional[str] = None
    raw_response: Any = None

    @classmethod
    def failure(cls, message: str) -> "CompletionResult":
        return cls(error=True, message=message)

    def to_dict(self) -> Dict[str, Any]:
        if self.error:
            return {"error": True, "message": self.message}
        return {
            "error": False,
            "text": self.text,
            "model": self.model,
            "provider": self.provider,
            "raw_response": self.raw_response,
        }


# (url, headers, json body)
RequestSpec = Tuple[str, Dict[str, str], Dict[str, Any]]


def _openai_compatible(base_url: str) -> Callable[..., RequestSpec]:
    def build(api_key: str, model: str, prompt: str, temperature: float, max_tokens: int) -> RequestSpec:
        return (
            f"{base_url.rstrip('/')}/chat/completions",
            {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            {
                "model": model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
    return build


def _anthropic(api_key: str, model: str, prompt: str, temperature: float, max_tokens: int) -> RequestSpec:
    return (
        f"{config.ANTHROPIC_API_BASE.rstrip('/')}/messages",
        {
            "x-api-key": api_key,
            "anthropic-version": config.ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        },
        {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        },
    )


def _google(api_key: str, model: str, prompt: str, temperature: float, max_tokens: int) -> RequestSpec:
    return (
        f"{config.GOOGLE_API_BASE.rstrip('/')}/models/{model}:generateContent?key={api_key}",
        {"Content-Type": "application/json"},
        {
            "contents": [{"parts": [{"text": prompt}]}],
            "generation_config": {"temperature": temperature, "maxOutputTokens": max_tokens},
        },
    )


def _ollama(api_key: str, model: str, prompt: str, temperature: float, max_tokens: int) -> RequestSpec:
    base_url = api_key.strip().rstrip("/")
    if not base_url.startswith(("http://", "https://")):
        base_url = f"http://{base_url}"
    return (
        f"{base_url}/api/generate",
        {"Content-Type": "application/json"},
        {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": temperature, "num_predict": max_tokens},
        },
    )


def _chat_text(data: Dict[str, Any]) -> str:
    return data["choices"][0]["message"]["content"]


def _anthropic_text(data: Dict[str, Any]) -> str:
    return data["content"][0]["text"]


def _google_text(data: Dict[str, Any]) -> str:
    return data["candidates"][0]["content"]["parts"][0]["text"]


def _ollama_text(data: Dict[str, Any]) -> str:
    return data["response"]


@dataclass(frozen=True)
class _ProviderSpec:
    label: str
    build_request: Callable[..., RequestSpec]
    extract_text: Callable[[Dict[str, Any]], str]


def _provider_table() -> Dict[str, _ProviderSpec]:
    # Built per call so base URL overrides in config are honoured.
    return {
        "openai": _ProviderSpec("OpenAI", _openai_compatible(config.OPENAI_API_BASE), _chat_text),
        "anthropic": _ProviderSpec("Anthropic", _anthropic, _anthropic_text),
        "google": _ProviderSpec("Google", _google, _google_text),
        "deepseek": _ProviderSpec("DeepSeek", _openai_compatible(config.DEEPSEEK_API_BASE), _chat_text),
        "ollama": _ProviderSpec("Ollama", _ollama, _ollama_text),
    }


SUPPORTED_PROVIDERS = ("openai", "anthropic", "google", "deepseek", "ollama")


def _error_message(data: Any, fallback: str) -> str:
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return fallback


class ProviderClient:
    """Async client dispatching completions to the configured provider.

    Args:
        credentials: Resolves an API key (or Ollama base URL) per provider.
        timeout: HTTP request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        credentials: Optional[CredentialResolver] = None,
        timeout: float = PROVIDER_HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credentials = credentials or StaticCredentials()
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                limits=httpx.Limits(
                    max_connections=HTTP_MAX_CONNECTIONS,
                    max_keepalive_connections=HTTP_MAX_KEEPALIVE,
                ),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate_completion(
        self,
        provider: str,
        model: str,
        prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> CompletionResult:
        """Generate a completion with the given provider and model."""
        spec = _provider_table().get(provider)
        if spec is None:
            return CompletionResult.failure(f"Unsupported provider: {provider}")

        api_key = await self.credentials.get_api_key(provider)
        if not api_key:
            return CompletionResult.failure(f"No API key found for provider: {provider}")

        url, headers, body = spec.build_request(api_key, model, prompt, temperature, max_tokens)
        client = await self._get_client()
        logger.info(f"Calling {spec.label} model={model} prompt_chars={len(prompt)}")

        try:
            resp = await client.post(url, headers=headers, json=body)
        except httpx.TimeoutException as e:
            logger.warning(f"{spec.label} API timeout: {e}")
            return CompletionResult.failure(f"{spec.label} API timeout")
        except httpx.HTTPError as e:
            logger.warning(f"{spec.label} API exception: {e}")
            return CompletionResult.failure(f"{spec.label} API exception: {e}")

        try:
            data = resp.json()
        except ValueError:
            data = None

        if not resp.is_success:
            message = _error_message(data, resp.text[:200] or f"HTTP {resp.status_code}")
            logger.warning(f"{spec.label} API error {resp.status_code}: {message}")
            return CompletionResult.failure(f"{spec.label} API error: {message}")

        try:
            text = spec.extract_text(data)
        except (KeyError, IndexError, TypeError) as e:
            return CompletionResult.failure(f"{spec.label} API returned an unexpected response: {e!r}")

        return CompletionResult(
            error=False,
            text=text,
            model=model,
            provider=provider,
            raw_response=data,
        )


