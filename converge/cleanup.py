"""Removal of per-round scratch files left in the temp directory."""

from __future__ import annotations

import glob
import os

PATTERNS = (
    "converge-claude-r*.json",
    "converge-codex-r*.json",
    "converge-prompt-*.txt",
    "converge-thread-*.txt",
)


def _remove(path: str) -> bool:
    try:
        os.remove(path)
        return True
    except OSError:
        pass
    try:
        os.rmdir(path)
        return True
    except OSError:
        return False


def run(directory: str | os.PathLike[str] = "/tmp") -> int:
    """Delete per-round payload files in ``directory`` and return how many went.

    Log files and REVIEW.md deliverables are never touched.
    """
    base = glob.escape(os.fspath(directory))
    return sum(
        _remove(match)
        for pattern in PATTERNS
        for match in sorted(glob.glob(os.path.join(base, pattern)))
    )