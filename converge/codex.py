"""Codex command-line provider.

Runs ``codex exec`` (optionally ``resume <thread>``), turns its JSONL event
stream into readable progress lines on stderr, captures the thread id from
``thread.started`` and writes the final assistant message to stdout.
"""

from __future__ import annotations

import dataclasses
import io
import json
import os
import re
import shutil
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass
from typing import Any, Iterable

from .provider import ExitCode, Options, Provider, ProviderError, trim

DEFAULT_EFFORT = "xhigh"
DEFAULT_TIMEOUT = 300.0
DEFAULT_HEARTBEAT_S = 5
_MAX_LINE = 4 * 1024 * 1024
_STDERR_TAIL = 500
_AUTH_MARKERS = ("not authenticated", "401", "unauthor")
_INT = re.compile(r"[+-]?[0-9]+")


def _atoi(text: str) -> int | None:
    if _INT.fullmatch(text):
        return int(text)
    return None


def _format_seconds(seconds: float) -> str:
    if float(seconds).is_integer():
        return str(int(seconds))
    return f"{seconds:.9f}".rstrip("0").rstrip(".")


def _format_duration(seconds: float) -> str:
    """Render a duration the way the status lines show it, e.g. ``5m0s``."""
    if seconds == 0:
        return "0s"
    if seconds < 0:
        return "-" + _format_duration(-seconds)
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    hours = int(seconds // 3600)
    minutes = int((seconds - hours * 3600) // 60)
    rest = _format_seconds(seconds - hours * 3600 - minutes * 60)
    if hours:
        return f"{hours}h{minutes}m{rest}s"
    if minutes:
        return f"{minutes}m{rest}s"
    return f"{rest}s"


def _exit_description(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.strsignal(-returncode)
        except ValueError:
            name = None
        return f"signal: {(name or str(-returncode)).lower()}"
    return f"exit status {returncode}"


@dataclass(frozen=True)
class _Event:
    type: str = ""
    thread_id: str = ""
    text: str = ""
    item_type: str = ""
    item_text: str = ""
    item_summary: str = ""
    item_tool: str = ""
    item_name: str = ""
    item_arguments: str = ""
    item_command: str = ""


_TOP_FIELDS = {"type": "type", "thread_id": "thread_id", "text": "text"}
_ITEM_FIELDS = {
    "type": "item_type",
    "text": "item_text",
    "summary": "item_summary",
    "tool": "item_tool",
    "name": "item_name",
    "arguments": "item_arguments",
    "command": "item_command",
}


def _collect(source: dict[str, Any], fields: dict[str, str], into: dict[str, str]) -> bool:
    for key, attr in fields.items():
        value = source.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            return False
        into[attr] = value
    return True


def _parse_event(line: str) -> _Event | None:
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if data is None:
        return _Event()
    if not isinstance(data, dict):
        return None
    item = data.get("item")
    if item is None:
        item = {}
    elif not isinstance(item, dict):
        return None
    values: dict[str, str] = {}
    if not _collect(data, _TOP_FIELDS, values) or not _collect(item, _ITEM_FIELDS, values):
        return None
    return _Event(**values)


def is_auth_error(stderr: str) -> bool:
    """Whether codex's stderr output signals an authentication failure."""
    low = stderr.lower()
    return any(marker in low for marker in _AUTH_MARKERS)


def stream_filter(lines: Iterable[str], opts: Options) -> tuple[str, str]:
    """Consume codex JSONL output, logging progress to ``opts.stderr``.

    Returns ``(final_message, thread_id)``; either may be empty.
    """
    err = opts.stderr if opts.stderr is not None else sys.stderr
    start = time.monotonic()
    last_log = start

    def log(message: str) -> None:
        if opts.quiet:
            return
        err.write(f"[codex {int(time.monotonic() - start)}s] {message}\n")
        err.flush()

    mode = "resume" if opts.resume_id else "fresh"
    log(f"starting ({mode}, effort={opts.effort}, timeout={_format_duration(opts.timeout)})")

    final = ""
    thread_id = ""
    for raw in lines:
        if len(raw) > _MAX_LINE:
            break
        line = raw.strip()
        if not line:
            if not opts.quiet and time.monotonic() - last_log >= opts.heartbeat_s:
                log("…still running")
                last_log = time.monotonic()
            continue
        ev = _parse_event(line)
        if ev is None:
            continue

        if ev.type == "thread.started":
            if ev.thread_id and not thread_id:
                thread_id = ev.thread_id
            log(f"thread {thread_id[:8]} started")
        elif ev.type == "turn.started":
            log("turn started")
        elif ev.item_type == "reasoning" or ev.type.endswith("reasoning"):
            text = ev.item_text or ev.text or ev.item_summary
            if text:
                log(f"reasoning: {trim(text, 80)}")
        elif ev.type in ("tool_call", "item.started") and ev.item_type in (
            "tool_call",
            "command_execution",
        ):
            name = ev.item_tool or ev.item_name or "tool"
            arguments = ev.item_arguments or ev.item_command
            log(f"tool: {name} {trim(arguments, 60)}")
        elif ev.type in ("agent_message", "assistant_message", "message"):
            if ev.text:
                final = ev.text
                log(f"message: {trim(final, 80)}")
        elif ev.type == "item.completed" and ev.item_type in ("agent_message", "assistant_message"):
            if ev.item_text:
                final = ev.item_text
                log(f"message: {trim(final, 80)}")
        elif ev.type in ("turn.completed", "thread.completed"):
            log("turn complete")
        last_log = time.monotonic()

    if final:
        log(f"done (final message: {len(final.encode('utf-8'))} chars)")
    else:
        log("ERROR: no final assistant message")
    return final, thread_id


def _with_defaults(opts: Options) -> Options:
    timeout = opts.timeout
    if timeout == 0:
        timeout = DEFAULT_TIMEOUT
        parsed = _atoi(os.environ.get("CONVERGE_CODEX_TIMEOUT", ""))
        if parsed is not None:
            timeout = float(parsed)
    heartbeat = opts.heartbeat_s
    if heartbeat == 0:
        heartbeat = DEFAULT_HEARTBEAT_S
        parsed = _atoi(os.environ.get("CONVERGE_HEARTBEAT_S", ""))
        if parsed is not None and parsed > 0:
            heartbeat = parsed
    quiet = opts.quiet or os.environ.get("CONVERGE_QUIET", "") not in ("", "0")
    return dataclasses.replace(
        opts,
        effort=opts.effort or DEFAULT_EFFORT,
        timeout=timeout,
        heartbeat_s=heartbeat,
        quiet=quiet,
        stderr=opts.stderr if opts.stderr is not None else sys.stderr,
        stdout=opts.stdout if opts.stdout is not None else sys.stdout,
        thread_out=opts.thread_out or f"/tmp/converge-thread-{os.getpid()}.txt",
    )


class CodexProvider(Provider):
    """Critique transport backed by the codex CLI."""

    name = "codex"

    def build_args(self, opts: Options, prompt: str) -> list[str]:
        """Command-line arguments for ``codex`` (program name excluded)."""
        args = ["exec"]
        if opts.resume_id:
            args += ["resume", opts.resume_id]
        args += ["--skip-git-repo-check", prompt]
        # The sandbox flag is only accepted by a fresh exec; resume inherits it.
        if not opts.resume_id:
            args += ["-s", "read-only"]
        effort = opts.effort or DEFAULT_EFFORT
        args += [
            "-c",
            f'model_reasoning_effort="{effort}"',
            "--enable",
            "web_search_cached",
            "--json",
        ]
        return args

    def run(self, opts: Options) -> None:
        """Run one critique call; raises :class:`ProviderError` on failure."""
        if not opts.prompt_file:
            raise ProviderError(ExitCode.BAD_ARGS, "prompt file is required")
        if not os.path.exists(opts.prompt_file):
            raise ProviderError(ExitCode.BAD_ARGS, f"prompt file not found: {opts.prompt_file}")
        if shutil.which("codex") is None:
            raise ProviderError(
                ExitCode.BAD_ARGS, "codex CLI not on PATH (npm install -g @openai/codex)"
            )
        opts = _with_defaults(opts)

        try:
            with open(opts.prompt_file, "rb") as handle:
                prompt = handle.read().decode("utf-8", errors="surrogateescape")
        except OSError as exc:
            raise ProviderError(ExitCode.BAD_ARGS, f"cannot read prompt: {exc}") from exc

        try:
            proc = subprocess.Popen(
                ["codex", *self.build_args(opts, prompt)],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ProviderError(ExitCode.BAD_ARGS, f"start codex: {exc}") from exc

        timed_out = threading.Event()

        def expire() -> None:
            timed_out.set()
            try:
                proc.kill()
            except OSError:
                pass

        timer = threading.Timer(max(opts.timeout, 0.0), expire)
        timer.daemon = True
        timer.start()

        err_chunks: list[bytes] = []

        def read_stderr() -> None:
            assert proc.stderr is not None
            err_chunks.append(proc.stderr.read())

        err_reader = threading.Thread(target=read_stderr, daemon=True)
        err_reader.start()

        assert proc.stdout is not None
        stream = io.TextIOWrapper(proc.stdout, encoding="utf-8", errors="replace", newline="")
        try:
            final, thread_id = stream_filter(stream, opts)
            for _ in stream:
                pass
        finally:
            stream.close()
            returncode = proc.wait()
            timer.cancel()
            err_reader.join()
            if proc.stderr is not None:
                proc.stderr.close()

        err_bytes = b"".join(err_chunks)
        err_text = err_bytes.decode("utf-8", errors="replace")

        if timed_out.is_set():
            raise ProviderError(
                ExitCode.TIMEOUT, f"codex timed out after {_format_duration(opts.timeout)}"
            )
        if is_auth_error(err_text):
            raise ProviderError(ExitCode.AUTH_ERROR, "codex auth error — run `codex login`")
        if not final:
            message = "no final assistant message in JSONL stream"
            if err_bytes:
                tail = err_bytes[:_STDERR_TAIL].decode("utf-8", errors="replace")
                message += f" (stderr: {tail})"
            raise ProviderError(ExitCode.NO_FINAL_MSG, message)
        if returncode != 0:
            print("[codex] note: exited non-zero:", _exit_description(returncode), file=opts.stderr)

        if not opts.resume_id and thread_id:
            try:
                os.makedirs(os.path.dirname(opts.thread_out) or ".", exist_ok=True)
                with open(opts.thread_out, "w", encoding="utf-8") as handle:
                    handle.write(thread_id)
            except OSError:
                pass

        assert opts.stdout is not None
        opts.stdout.write(final)
        opts.stdout.flush()