"""Locating the plan file that a plan review works on."""

from __future__ import annotations

import os
import stat
import subprocess
from typing import Iterator


class PlanNotFoundError(FileNotFoundError):
    """No plan file could be found."""


def _repo_slug() -> str:
    try:
        proc = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return ""
    if proc.returncode != 0:
        return ""
    top = proc.stdout.decode("utf-8", errors="replace").strip()
    return os.path.basename(top).lower()


def _walk(root: str) -> Iterator[tuple[str, int]]:
    """Yield ``(path, mtime_ns)`` for non-directories below ``root`` in lexical order."""
    try:
        info = os.lstat(root)
    except OSError:
        return
    if not stat.S_ISDIR(info.st_mode):
        yield root, info.st_mtime_ns
        return
    try:
        names = sorted(os.listdir(root))
    except OSError:
        return
    for name in names:
        yield from _walk(os.path.join(root, name))


def _newest(candidates: list[tuple[str, int]]) -> str:
    if not candidates:
        return ""
    return max(candidates, key=lambda c: c[1])[0]


def resolve(explicit: str = "") -> str:
    """Pick the plan file.

    Precedence: the explicit path (which must exist), ``$CONVERGE_ACTIVE_PLAN``,
    the newest ``*.md`` under ``$CLAUDE_PLANS_DIR`` (default
    ``~/.claude/plans``) whose path contains the repository name, then the
    newest ``*.md`` there regardless of name.
    """
    if explicit:
        if os.path.exists(explicit):
            return os.path.abspath(explicit)
        raise PlanNotFoundError(f"explicit path not found: {explicit}")

    active = os.environ.get("CONVERGE_ACTIVE_PLAN", "")
    if active and os.path.exists(active):
        return os.path.abspath(active)

    plans_dir = os.environ.get("CLAUDE_PLANS_DIR", "")
    if not plans_dir:
        plans_dir = os.path.join(os.path.expanduser("~"), ".claude", "plans")
    if not os.path.exists(plans_dir):
        raise PlanNotFoundError(f"no plans dir at {plans_dir}")

    slug = _repo_slug()
    every = [c for c in _walk(plans_dir) if c[0].endswith(".md")]
    matched = [c for c in every if slug and slug in c[0].lower()]

    chosen = _newest(matched) or _newest(every)
    if chosen:
        return chosen
    raise PlanNotFoundError(f"no .md files in {plans_dir}")