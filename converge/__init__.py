"""Command-line helpers for iterative LLM critique loops: preflight, diffs, prompts, validation, logs and provider calls."""

__version__ = "0.1.0"