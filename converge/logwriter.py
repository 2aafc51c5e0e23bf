"""Writers for CONVERGE LOG sections and REVIEW.md files."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

HEADER = """
## CONVERGE LOG

| Round | Author | Verdict | Issues raised | Issues conceded |
|-------|--------|---------|---------------|-----------------|
"""

_MARKER = b"## CONVERGE LOG"


def _append(path: str | os.PathLike[str], text: str) -> None:
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(text)


def init_log(path: str | os.PathLike[str]) -> None:
    """Ensure the log header exists, then start a dated ``### Run`` subsection."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    try:
        body = target.read_bytes()
    except OSError:
        body = b""
    if _MARKER not in body:
        _append(target, HEADER)
    _append(target, f"\n### Run {datetime.now():%Y-%m-%d %H:%M}\n\n")


def row(
    path: str | os.PathLike[str],
    round_no: int,
    author: str,
    verdict: str,
    issues: str = "",
    conceded: str = "",
) -> None:
    """Append one table row; empty issue fields render as ``(none)``."""
    _append(path, f"| {round_no} | {author} | {verdict} | {issues or '(none)'} | {conceded or '(none)'} |\n")


def smoke(path: str | os.PathLike[str], result: str) -> None:
    """Append a ``Smoke check: <result>`` line."""
    _append(path, f"Smoke check: {result}\n")


def note(path: str | os.PathLike[str], text: str) -> None:
    """Append free-form text followed by a newline."""
    _append(path, text + "\n")