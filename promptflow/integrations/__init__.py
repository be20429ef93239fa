"""External collaborators: LLM providers, generic HTTP, scraper service."""
