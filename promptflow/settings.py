"""Runtime settings for workflow execution.

All values read from environment variables with defaults. Import from here
instead of hardcoding.

Infrastructure config (service URLs, log locations) stays in
promptflow/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Prompt node defaults
# =====================================================================

PROMPT_DEFAULT_PROVIDER = _str("PROMPT_DEFAULT_PROVIDER", "openai")
PROMPT_DEFAULT_MODEL = _str("PROMPT_DEFAULT_MODEL", "gpt-4")
PROMPT_DEFAULT_TEMPERATURE = _float("PROMPT_DEFAULT_TEMPERATURE", 0.7)
PROMPT_DEFAULT_MAX_TOKENS = _int("PROMPT_DEFAULT_MAX_TOKENS", 2000)


# =====================================================================
# HTTP clients (provider APIs, ApiCall node, scraper service)
# =====================================================================

PROVIDER_HTTP_TIMEOUT = _float("PROVIDER_HTTP_TIMEOUT", 120.0)
API_NODE_HTTP_TIMEOUT = _float("API_NODE_HTTP_TIMEOUT", 30.0)
SCRAPER_HTTP_TIMEOUT = _float("SCRAPER_HTTP_TIMEOUT", 120.0)

HTTP_MAX_CONNECTIONS = _int("HTTP_MAX_CONNECTIONS", 20)
HTTP_MAX_KEEPALIVE = _int("HTTP_MAX_KEEPALIVE", 10)


# =====================================================================
# Expression limits (condition evaluator, custom_code sandbox)
# =====================================================================

CONDITION_MAX_LENGTH = _int("CONDITION_MAX_LENGTH", 1000)
CONDITION_MAX_DEPTH = _int("CONDITION_MAX_DEPTH", 50)

SANDBOX_MAX_EXPRESSION_LENGTH = _int("SANDBOX_MAX_EXPRESSION_LENGTH", 2000)
SANDBOX_MAX_SEQUENCE_LENGTH = _int("SANDBOX_MAX_SEQUENCE_LENGTH", 100000)
