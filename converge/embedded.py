"""Critique schema and prompt templates shipped with the package.

``$CONVERGE_SCHEMA`` and ``$CONVERGE_PROMPTS_DIR`` override the bundled
copies for local iteration.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

_ASSETS = Path(__file__).resolve().parent / "assets"
_PROMPTS = _ASSETS / "prompts"
_SCHEMA = _ASSETS / "schemas" / "critique.schema.json"
_SUFFIX = ".tmpl"


class UnknownModeError(LookupError):
    """No bundled template exists for the requested mode."""


def schema_bytes() -> bytes:
    """The critique JSON Schema, read from ``$CONVERGE_SCHEMA`` when set."""
    override = os.environ.get("CONVERGE_SCHEMA", "")
    if override:
        return Path(override).read_bytes()
    return _SCHEMA.read_bytes()


def template_bytes(mode: str) -> bytes:
    """The prompt template for ``mode`` (plan, implement, verify or review).

    A set ``$CONVERGE_PROMPTS_DIR`` replaces the bundled directory.
    """
    name = mode + _SUFFIX
    directory = os.environ.get("CONVERGE_PROMPTS_DIR", "")
    if directory:
        return (Path(directory) / name).read_bytes()
    if "/" in mode or "\\" in mode:
        raise UnknownModeError(f"unknown mode {json.dumps(mode)}: invalid name")
    try:
        return (_PROMPTS / name).read_bytes()
    except OSError as exc:
        raise UnknownModeError(f"unknown mode {json.dumps(mode)}: {exc.strerror or exc}") from exc


def list_embedded_templates() -> list[str]:
    """Modes that have a bundled template, in sorted order."""
    try:
        names = sorted(entry.name for entry in _PROMPTS.iterdir())
    except OSError:
        return []
    return [name[: -len(_SUFFIX)] for name in names if name.endswith(_SUFFIX)]