"""Infrastructure configuration read from the environment.

Service endpoints and log locations live here. Numeric tunables (timeouts,
prompt defaults, evaluator limits) live in promptflow/settings.py.
"""

from __future__ import annotations

import os

# Scraper microservice base URL; empty means "not configured"
SCRAPER_SERVICE_URL = os.getenv("SCRAPER_SERVICE_URL", "")

# LLM provider endpoints
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
ANTHROPIC_API_BASE = os.getenv("ANTHROPIC_API_BASE", "https://api.anthropic.com/v1")
ANTHROPIC_VERSION = os.getenv("ANTHROPIC_VERSION", "2023-06-01")
GOOGLE_API_BASE = os.getenv(
    "GOOGLE_API_BASE", "https://generativelanguage.googleapis.com/v1beta"
)
DEEPSEEK_API_BASE = os.getenv("DEEPSEEK_API_BASE", "https://api.deepseek.com/v1")

# Logging
LOG_DIR = os.getenv("LOG_DIR", "")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
