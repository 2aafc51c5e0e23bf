"""Claude Code command-line provider.

Runs ``claude -p <prompt> --output-format stream-json``, turns the JSONL
event stream into readable progress lines on stderr, captures the session id
so later rounds can resume, and writes the final assistant message to stdout.
"""

from __future__ import annotations

import dataclasses
import io
import json
import os
import shutil
import subprocess
import sys
import threading
import time
import uuid
from typing import Any, Iterable, Mapping

from .codex import _atoi, _exit_description, _format_duration
from .provider import ExitCode, Options, Provider, ProviderError, trim

DEFAULT_MODEL = "opus"
DEFAULT_EFFORT = "xhigh"
DEFAULT_TIMEOUT = 300.0
DEFAULT_HEARTBEAT_S = 5
_MAX_LINE = 8 * 1024 * 1024
_STDERR_TAIL = 500
_AUTH_MARKERS = ("not authenticated", "401", "unauthor", "invalid api key", "authentication")
_RESULT_AUTH_MARKERS = ("auth", "401", "credential")
_STRING_FIELDS = ("type", "subtype", "session_id", "result")


def _parse_event(line: str) -> dict[str, Any] | None:
    """Decode one stream-json line, or None when it does not fit the event shape."""
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        return None
    for key in _STRING_FIELDS:
        value = data.get(key)
        if value is not None and not isinstance(value, str):
            return None
    is_error = data.get("is_error")
    if is_error is not None and not isinstance(is_error, bool):
        return None
    message = data.get("message")
    if message is not None:
        if not isinstance(message, dict):
            return None
        role = message.get("role")
        if role is not None and not isinstance(role, str):
            return None
    return data


def assistant_text(event: Mapping[str, Any]) -> str:
    """First text chunk of an assistant event's ``message.content``.

    The content may be a plain string or a list of typed blocks such as
    ``{"type": "text", "text": "..."}``.
    """
    message = event.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    if isinstance(content, str):
        return content
    if not isinstance(content, list):
        return ""
    blocks: list[tuple[str, str]] = []
    for block in content:
        if block is None:
            continue
        if not isinstance(block, dict):
            return ""
        kind, text = block.get("type"), block.get("text")
        if (kind is not None and not isinstance(kind, str)) or (
            text is not None and not isinstance(text, str)
        ):
            return ""
        blocks.append((kind or "", text or ""))
    return next((text for kind, text in blocks if kind == "text" and text), "")


def is_auth_error(stderr: str) -> bool:
    """Whether claude's stderr output signals an authentication failure."""
    low = stderr.lower()
    return any(marker in low for marker in _AUTH_MARKERS)


def stream_filter(lines: Iterable[str], opts: Options) -> tuple[str, str, bool]:
    """Consume claude stream-json output, logging progress to ``opts.stderr``.

    Returns ``(final_result, session_id, auth_error_seen)``.
    """
    err = opts.stderr if opts.stderr is not None else sys.stderr
    start = time.monotonic()
    last_log = start

    def log(message: str) -> None:
        if opts.quiet:
            return
        err.write(f"[claude {int(time.monotonic() - start)}s] {message}\n")
        err.flush()

    mode = "resume" if opts.resume_id else "fresh"
    log(
        f"starting ({mode}, model={opts.model}, effort={opts.effort}, "
        f"timeout={_format_duration(opts.timeout)})"
    )

    final = ""
    session_id = ""
    auth_error = False
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

        kind = ev.get("type") or ""
        subtype = ev.get("subtype") or ""
        if kind == "system":
            sid = ev.get("session_id") or ""
            if subtype == "init" and sid and not session_id:
                session_id = sid
                log(f"session {session_id[:8]} started")
        elif kind == "assistant":
            text = assistant_text(ev)
            if text:
                log(f"assistant: {trim(text, 80)}")
        elif kind == "result":
            result = ev.get("result") or ""
            if ev.get("is_error"):
                low = f"{result} {subtype}".lower()
                if any(marker in low for marker in _RESULT_AUTH_MARKERS):
                    auth_error = True
                log(f"ERROR: {trim(result, 200)}")
            elif result:
                final = result
                log(f"done (final result: {len(final.encode('utf-8'))} chars)")
        last_log = time.monotonic()

    if not final and not auth_error:
        log("ERROR: no result event in stream")
    return final, session_id, auth_error


def _with_defaults(opts: Options) -> Options:
    timeout = opts.timeout
    if timeout == 0:
        timeout = DEFAULT_TIMEOUT
        parsed = _atoi(os.environ.get("CONVERGE_CLAUDE_TIMEOUT", ""))
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
        timeout=timeout,
        heartbeat_s=heartbeat,
        quiet=quiet,
        stderr=opts.stderr if opts.stderr is not None else sys.stderr,
        stdout=opts.stdout if opts.stdout is not None else sys.stdout,
        thread_out=opts.thread_out or f"/tmp/converge-thread-{os.getpid()}.txt",
    )


class ClaudeProvider(Provider):
    """Critique transport backed by the Claude Code CLI."""

    name = "claude"

    def build_args(
        self, opts: Options, prompt: str, session_id: str, model: str, effort: str
    ) -> list[str]:
        """Command-line arguments for ``claude`` (program name excluded)."""
        args = ["-p"]
        if opts.resume_id:
            args += ["--resume", opts.resume_id]
        else:
            args += ["--session-id", session_id]
        args += [
            "--output-format",
            "stream-json",
            "--verbose",  # stream-json output requires it
            "--model",
            model,
            "--effort",
            effort,
            prompt,
        ]
        return args

    def run(self, opts: Options) -> None:
        """Run one critique call; raises :class:`ProviderError` on failure."""
        if not opts.prompt_file:
            raise ProviderError(ExitCode.BAD_ARGS, "prompt file is required")
        if not os.path.exists(opts.prompt_file):
            raise ProviderError(ExitCode.BAD_ARGS, f"prompt file not found: {opts.prompt_file}")
        if shutil.which("claude") is None:
            raise ProviderError(
                ExitCode.BAD_ARGS, "claude CLI not on PATH (install Claude Code first)"
            )
        opts = _with_defaults(opts)
        model = opts.model or os.environ.get("CONVERGE_CLAUDE_MODEL", "") or DEFAULT_MODEL
        effort = opts.effort or DEFAULT_EFFORT

        try:
            with open(opts.prompt_file, "rb") as handle:
                prompt = handle.read().decode("utf-8", errors="surrogateescape")
        except OSError as exc:
            raise ProviderError(ExitCode.BAD_ARGS, f"cannot read prompt: {exc}") from exc

        session_id = opts.resume_id or str(uuid.uuid4())
        args = self.build_args(opts, prompt, session_id, model, effort)

        try:
            proc = subprocess.Popen(
                ["claude", *args],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            raise ProviderError(ExitCode.BAD_ARGS, f"start claude: {exc}") from exc

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
            final, captured_id, saw_auth_error = stream_filter(stream, opts)
            for _ in stream:
                pass
        finally:
            stream.close()
            returncode = proc.wait()
            timer.cancel()
            err_reader.join()
            if proc.stderr is not None:
                proc.stderr.close()

        if captured_id:
            session_id = captured_id
        err_bytes = b"".join(err_chunks)
        err_text = err_bytes.decode("utf-8", errors="replace")

        if timed_out.is_set():
            raise ProviderError(
                ExitCode.TIMEOUT, f"claude timed out after {_format_duration(opts.timeout)}"
            )
        if saw_auth_error or is_auth_error(err_text):
            raise ProviderError(
                ExitCode.AUTH_ERROR,
                "claude auth error — run `claude auth` or set ANTHROPIC_API_KEY",
            )
        if not final:
            message = "no final assistant message in stream-json output"
            if err_bytes:
                tail = err_bytes[:_STDERR_TAIL].decode("utf-8", errors="replace")
                message += f" (stderr: {tail})"
            raise ProviderError(ExitCode.NO_FINAL_MSG, message)
        if returncode != 0:
            print("[claude] note: exited non-zero:", _exit_description(returncode), file=opts.stderr)

        if not opts.resume_id and session_id:
            try:
                os.makedirs(os.path.dirname(opts.thread_out) or ".", exist_ok=True)
                with open(opts.thread_out, "w", encoding="utf-8") as handle:
                    handle.write(session_id)
            except OSError:
                pass

        assert opts.stdout is not None
        opts.stdout.write(final)
        opts.stdout.flush()