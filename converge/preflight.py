"""Pre-run checks: codex CLI, codex authentication, git and gh."""

from __future__ import annotations

import os
import shutil
import subprocess
import sys
from typing import TextIO

MODES = ("", "plan", "implement", "verify", "review")
_GIT_MODES = ("implement", "verify", "review")


class PreflightError(RuntimeError):
    """The pre-run check failed or was given an unknown mode."""

    def __init__(self, message: str, failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


def _succeeds(*command: str) -> bool:
    try:
        proc = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return False
    return proc.returncode == 0


def _codex_authenticated() -> bool:
    if os.environ.get("OPENAI_API_KEY"):
        return True
    home = os.environ.get("CODEX_HOME") or os.path.join(os.path.expanduser("~"), ".codex")
    return os.path.exists(os.path.join(home, "auth.json"))


def run(mode: str = "", out: TextIO | None = None) -> None:
    """Check the environment and write a PASS/FAIL summary to ``out``.

    Warnings are printed but never fail the check. Raises
    :class:`PreflightError` on failure or for an unknown mode.
    """
    if mode not in MODES:
        raise PreflightError(f"unknown mode: {mode}")
    out = out if out is not None else sys.stdout

    fails: list[str] = []
    warns: list[str] = []

    if shutil.which("codex") is None:
        fails.append("codex CLI not on PATH (install: npm install -g @openai/codex)")
    elif not _succeeds("codex", "--version"):
        fails.append("codex --version failed; binary may be broken")

    if not _codex_authenticated():
        fails.append("codex not authenticated (run `codex login` or set OPENAI_API_KEY)")

    if mode in _GIT_MODES and not _succeeds("git", "rev-parse", "--show-toplevel"):
        fails.append(f"not inside a git repository (mode={mode} requires one)")
    if mode == "review" and shutil.which("gh") is None:
        warns.append(
            "gh CLI not on PATH — PR-number form will not work; "
            "base-branch detection falls back to origin/HEAD"
        )

    if fails:
        print("preflight: FAIL", file=out)
        for failure in fails:
            print("  -", failure, file=out)
        for warning in warns:
            print("  ~", warning, file=out)
        raise PreflightError(f"preflight failed ({len(fails)} issue(s))", fails)

    print(f"preflight: PASS (mode={mode or 'unspecified'})", file=out)
    for warning in warns:
        print("  ~", warning, file=out)