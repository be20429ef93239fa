"""promptflow: execution engine for AI prompt workflows."""

__version__ = "0.1.0"
