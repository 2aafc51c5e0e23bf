"""Project-appropriate build or test smoke check printing PASS or FAIL."""

from __future__ import annotations

import enum
import json
import os
import subprocess
import sys
from typing import TextIO

TAIL_LINES = 40


class Mode(str, enum.Enum):
    """Kind of smoke check."""

    BUILD = "build"
    TEST = "test"


class SmokeError(RuntimeError):
    """No smoke command could be chosen, or the check failed."""


class SmokeFailed(SmokeError):
    """The smoke command ran and exited unsuccessfully."""

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__("smoke check failed")
        self.command = command
        self.exit_code = exit_code


def _npm_script(mode: Mode) -> str:
    try:
        with open("package.json", "rb") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        return ""
    if not isinstance(data, dict):
        return ""
    scripts = data.get("scripts") or {}
    if not isinstance(scripts, dict) or not all(isinstance(v, str) for v in scripts.values()):
        return ""
    if mode is Mode.BUILD:
        return "npm run build" if "build" in scripts else ""
    return "npm test" if "test" in scripts else ""


def command_for(mode: Mode | str) -> str:
    """Choose the shell command for ``mode`` from the project in the current directory."""
    mode = Mode(mode)
    build = mode is Mode.BUILD
    override = os.environ.get("CONVERGE_SMOKE_BUILD" if build else "CONVERGE_SMOKE_TEST", "")
    if override:
        return override
    if os.path.exists("go.mod"):
        return "go build ./..." if build else "go test ./..."
    if os.path.exists("Cargo.toml"):
        return "cargo check" if build else "cargo test"
    if os.path.exists("package.json"):
        script = _npm_script(mode)
        if script:
            return script
        if build and os.path.exists("tsconfig.json"):
            return "npx tsc --noEmit"
        raise SmokeError(f"package.json present but no `{mode.value}` script")
    if os.path.exists("pyproject.toml") or os.path.exists("setup.py"):
        return "python -m compileall -q ." if build else "pytest -q"
    raise SmokeError(
        "no recognized project type (go.mod, Cargo.toml, package.json, pyproject.toml)"
    )


def tail(data: bytes, count: int) -> bytes:
    """Last ``count`` newline-separated pieces of ``data``, ending in a newline."""
    lines = data.split(b"\n")
    if len(lines) > count:
        lines = lines[len(lines) - count :]
    out = b"\n".join(lines)
    if data and not data.endswith(b"\n"):
        out += b"\n"
    return out


def run(mode: Mode | str, stdout: TextIO | None = None, stderr: TextIO | None = None) -> None:
    """Run the smoke check, printing PASS/FAIL to ``stdout`` and the failing tail to ``stderr``.

    Raises :class:`SmokeFailed` when the command fails and :class:`SmokeError`
    when no command applies.
    """
    stdout = stdout if stdout is not None else sys.stdout
    stderr = stderr if stderr is not None else sys.stderr
    command = command_for(mode)

    try:
        proc = subprocess.run(
            ["bash", "-c", command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            check=False,
        )
        code, output = proc.returncode, proc.stdout
    except OSError:
        code, output = -1, b""

    if code == 0:
        print(f"PASS (cmd: {command})", file=stdout)
        return
    if code < 0:
        code = -1
    print(f"FAIL (cmd: {command}, exit: {code})", file=stdout)
    print("--- last lines ---", file=stderr)
    stderr.write(tail(output, TAIL_LINES).decode("utf-8", errors="replace"))
    raise SmokeFailed(command, code)