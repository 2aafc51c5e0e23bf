"""Placeholder interpolation for prompt templates.

``{{NAME}}`` tokens are replaced by supplied values, and
``{{IF_RESUME}}...{{ENDIF_RESUME}}`` blocks are kept only when ``RESUME``
is ``1``, ``true`` or ``yes``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

_RESUME_BLOCK = re.compile(r"\{\{IF_RESUME\}\}(.*?)\{\{ENDIF_RESUME\}\}", re.DOTALL)
_PLACEHOLDER = re.compile(r"\{\{([A-Z_][A-Z0-9_]*)\}\}")
_TRUTHY = {"1", "true", "yes"}


class TemplateArgError(ValueError):
    """A ``KEY=value`` argument could not be parsed or its file read."""


@dataclass(frozen=True)
class Value:
    """One template value."""

    key: str
    val: str


def parse(pairs: Iterable[str]) -> list[Value]:
    """Parse ``KEY=value`` strings; ``KEY=@path`` reads the value from a file."""
    values = []
    for pair in pairs:
        key, sep, val = pair.partition("=")
        if not sep:
            raise TemplateArgError(f"bad arg (no =): {pair}")
        if val.startswith("@"):
            file_path = val[1:]
            try:
                val = Path(file_path).read_bytes().decode("utf-8", errors="replace")
            except OSError as exc:
                raise TemplateArgError(f"cannot read {file_path}: {exc}") from exc
        values.append(Value(key, val))
    return values


def render(text: str, values: Iterable[Value]) -> tuple[str, list[str]]:
    """Fill placeholders in ``text``.

    Returns the rendered text and the sorted names of placeholders that were
    referenced but not supplied (they render as empty strings).
    """
    mapping: dict[str, str] = {}
    resume = False
    for value in values:
        mapping[value.key] = value.val
        if value.key == "RESUME" and value.val.lower().strip() in _TRUTHY:
            resume = True

    text = _RESUME_BLOCK.sub(lambda m: m.group(1) if resume else "", text)

    missing: set[str] = set()

    def fill(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in mapping:
            return mapping[name]
        missing.add(name)
        return ""

    return _PLACEHOLDER.sub(fill, text), sorted(missing)