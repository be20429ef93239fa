"""FastAPI service hosting the promptflow engine."""
