"""Base-branch detection and diff retrieval through git and gh."""

from __future__ import annotations

import os
import subprocess

DEFAULT_MAX_BYTES = 51200
_ORIGIN_PREFIX = "refs/remotes/origin/"


class GitOpsError(RuntimeError):
    """A git or gh operation could not produce a result."""


def _output(*command: str) -> str | None:
    """Run ``command`` and return its trimmed stdout, or None on failure."""
    try:
        proc = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError:
        return None
    if proc.returncode != 0:
        return None
    return proc.stdout.decode("utf-8", errors="replace").strip()


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


def detect_base_branch(pr: str = "") -> str:
    """Find the base branch for a review.

    Tries ``gh pr view`` (when ``pr`` is given), the repository's default
    branch, ``origin/HEAD``, then ``origin/main`` and ``origin/master``.
    """
    if pr:
        out = _output("gh", "pr", "view", pr, "--json", "baseRefName", "-q", ".baseRefName")
        if out:
            return out
    out = _output("gh", "repo", "view", "--json", "defaultBranchRef", "-q", ".defaultBranchRef.name")
    if out:
        return out
    out = _output("git", "symbolic-ref", "refs/remotes/origin/HEAD")
    if out:
        return out.removeprefix(_ORIGIN_PREFIX)
    if _succeeds("git", "rev-parse", "--verify", "origin/main"):
        return "main"
    if _succeeds("git", "rev-parse", "--verify", "origin/master"):
        return "master"
    raise GitOpsError("could not determine base branch")


def truncate_diff(data: bytes, max_bytes: int) -> bytes:
    """Cut ``data`` to ``max_bytes`` and append a marker line when it was longer."""
    if len(data) <= max_bytes:
        return data
    marker = f"\n[diff truncated at {max_bytes} bytes; full size {len(data)} bytes]\n"
    return data[:max_bytes] + marker.encode("utf-8")


def _resolve_max_bytes(max_bytes: int) -> int:
    if max_bytes > 0:
        return max_bytes
    env = os.environ.get("CONVERGE_DIFF_MAX_BYTES", "")
    if env:
        try:
            max_bytes = int(env)
        except ValueError:
            pass
    return max_bytes if max_bytes > 0 else DEFAULT_MAX_BYTES


def _capture(command: list[str], label: str) -> bytes:
    try:
        proc = subprocess.run(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        raise GitOpsError(f"{label} failed: {exc}") from exc
    if proc.returncode != 0:
        raise GitOpsError(f"{label} failed: exit status {proc.returncode}")
    return proc.stdout


def get_diff(base: str, pr: str = "", max_bytes: int = 0) -> str:
    """Return ``base...HEAD`` (or ``gh pr diff <pr>``), truncated to ``max_bytes``.

    A ``max_bytes`` of zero or less uses ``$CONVERGE_DIFF_MAX_BYTES`` or 51200.
    """
    limit = _resolve_max_bytes(max_bytes)
    if pr:
        data = _capture(["gh", "pr", "diff", pr], f"gh pr diff {pr}")
    else:
        if not base:
            raise GitOpsError("base branch is required when pr is empty")
        data = _capture(["git", "diff", f"{base}...HEAD"], f"git diff {base}...HEAD")
    return truncate_diff(data, limit).decode("utf-8", errors="replace")