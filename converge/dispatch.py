"""Lookup of critique providers by name."""

from __future__ import annotations

import json

from .claude import ClaudeProvider
from .codex import CodexProvider
from .provider import Provider

_NAMES = ("codex", "claude")


def get(name: str = "") -> Provider:
    """Provider for ``name``; an empty name means codex.

    Raises :class:`ValueError` for an unknown name.
    """
    if name in ("", "codex"):
        return CodexProvider()
    if name == "claude":
        return ClaudeProvider()
    raise ValueError(f"unknown provider {json.dumps(name)} (supported: codex, claude)")


def names() -> list[str]:
    """Registered provider names."""
    return list(_NAMES)