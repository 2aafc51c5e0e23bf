"""Command-line entry point wiring every subcommand into one program."""

from __future__ import annotations

import re
import sys
from typing import Sequence, TextIO

from . import (
    cleanup,
    dispatch,
    embedded,
    gitops,
    logwriter,
    plan,
    preflight,
    schema,
    smoke,
    status,
    tmpl,
)
from .provider import Options, ProviderError

_INT = re.compile(r"[+-]?[0-9]+")

USAGE = """usage: converge <subcommand> [args]

Pre-run check / setup
  preflight <mode>                       Verify codex, auth, git, deps

Plan / branch / diff resolution
  resolve-plan [path]                    Find plan file
  detect-base-branch [pr#]               Detect git base branch
  get-diff <base> [pr#]                  Print truncated base...HEAD or PR diff

Smoke check / cleanup
  smoke-check {build|test}               Run project-appropriate smoke check
  cleanup                                Remove /tmp/converge-* per-round files

Log / status writers
  log {init|row|smoke|note} <file> ...   CONVERGE LOG / REVIEW.md writer
  status {start|round|thread|verdict|end|path|show} <session-id> [...]

Prompt + schema
  render-prompt <mode-or-path> KEY=… ...
                                         Render embedded mode template ("plan",
                                         "implement", "verify", "review") or
                                         a literal file path. Each KEY is a
                                         literal value or "@/path/to/file".
                                         IF_RESUME blocks toggle on RESUME=1.
  validate-critique <json>               Schema-validate critique payload
                                         (set CONVERGE_REQUIRE_EVIDENCE=1 for
                                         implement/verify/review)

LLM transport (codex or claude)
  llm-critique --provider {codex|claude} [--resume <id>] [--model <m>]
               <prompt-file> [effort]    Run the chosen LLM, stream events to
                                         stderr, write final message to stdout.
                                         Captures session/thread id on round 1.
  codex-critique [--resume <thread-id>] [--model <m>] <prompt-file> [effort]
                                         Alias for llm-critique --provider codex.
                                         Backward-compatible with pre-refactor
                                         callers.
  claude-critique [--resume <session-id>] [--model <m>] <prompt-file> [effort]
                                         Alias for llm-critique --provider claude.

Inspection
  list-modes                             List embedded prompt template modes
  list-providers                         List available LLM providers
  help                                   This message

Env vars: CONVERGE_CODEX_TIMEOUT, CONVERGE_CLAUDE_TIMEOUT, CONVERGE_CLAUDE_MODEL,
CONVERGE_QUIET, CONVERGE_HEARTBEAT_S, CONVERGE_THREAD_OUT, CONVERGE_DIFF_MAX_BYTES,
CONVERGE_REQUIRE_EVIDENCE, CONVERGE_SCHEMA, CONVERGE_PROMPTS_DIR,
CONVERGE_STATUS_DIR, CONVERGE_ACTIVE_PLAN, CONVERGE_SMOKE_BUILD,
CONVERGE_SMOKE_TEST, CLAUDE_PLANS_DIR, CODEX_HOME.
"""


def usage(stream: TextIO | None = None) -> None:
    """Write the help text to ``stream`` (stdout by default)."""
    (stream if stream is not None else sys.stdout).write(USAGE)


def _err(*parts: object) -> None:
    print(*parts, file=sys.stderr)


def _parse_int(text: str) -> int | None:
    return int(text) if _INT.fullmatch(text) else None


def _first(args: Sequence[str]) -> str:
    return args[0] if args else ""


def _preflight(args: Sequence[str]) -> int:
    try:
        preflight.run(_first(args), sys.stdout)
    except preflight.PreflightError:
        return 1
    return 0


def _resolve_plan(args: Sequence[str]) -> int:
    try:
        found = plan.resolve(_first(args))
    except OSError as exc:
        _err("resolve-plan:", exc)
        return 1
    print(found)
    return 0


def _detect_base(args: Sequence[str]) -> int:
    try:
        branch = gitops.detect_base_branch(_first(args))
    except gitops.GitOpsError as exc:
        _err("detect-base-branch:", exc)
        return 1
    print(branch)
    return 0


def _get_diff(args: Sequence[str]) -> int:
    if not args:
        _err("usage: get-diff <base> [pr#]")
        return 2
    pr = args[1] if len(args) > 1 else ""
    try:
        diff = gitops.get_diff(args[0], pr, 0)
    except gitops.GitOpsError as exc:
        _err("get-diff:", exc)
        return 1
    sys.stdout.write(diff)
    return 0


def _smoke(args: Sequence[str]) -> int:
    if not args:
        _err("usage: smoke-check build|test")
        return 2
    try:
        mode = smoke.Mode(args[0])
    except ValueError:
        _err("smoke-check: mode must be build|test")
        return 2
    try:
        smoke.run(mode, sys.stdout, sys.stderr)
    except smoke.SmokeFailed:
        return 1
    except smoke.SmokeError as exc:
        _err("smoke-check:", exc)
        return 2
    return 0


def _log(args: Sequence[str]) -> int:
    if len(args) < 2:
        _err("usage: log init|row|smoke|note <file> ...")
        return 2
    sub, file, rest = args[0], args[1], list(args[2:])
    try:
        if sub == "init":
            logwriter.init_log(file)
        elif sub == "row":
            if len(rest) < 4:
                _err("usage: log row <file> <round> <author> <verdict> <issues> <conceded>")
                return 2
            round_no = _parse_int(rest[0])
            if round_no is None:
                _err("log row: round must be int")
                return 2
            conceded = rest[4] if len(rest) > 4 else ""
            logwriter.row(file, round_no, rest[1], rest[2], rest[3], conceded)
        elif sub == "smoke":
            if not rest:
                _err("usage: log smoke <file> <result>")
                return 2
            logwriter.smoke(file, rest[0])
        elif sub == "note":
            if not rest:
                _err("usage: log note <file> <text>")
                return 2
            logwriter.note(file, " ".join(rest))
        else:
            _err("log: unknown subcommand", sub)
            return 2
    except OSError as exc:
        _err(f"log {sub}:", exc)
        return 1
    return 0


def _cleanup(args: Sequence[str]) -> int:
    try:
        removed = cleanup.run()
    except OSError as exc:
        _err("cleanup:", exc)
        return 1
    _err(f"cleanup: removed {removed} file(s)")
    return 0


def _render(args: Sequence[str]) -> int:
    if not args:
        _err("usage: render-prompt <mode-or-path> KEY=val ...")
        return 2
    target = args[0]
    try:
        with open(target, "rb") as handle:
            raw = handle.read()
    except FileNotFoundError:
        try:
            raw = embedded.template_bytes(target)
        except (embedded.UnknownModeError, OSError) as exc:
            _err("render-prompt:", exc)
            return 2
    except OSError as exc:
        _err("render-prompt:", exc)
        return 1
    try:
        values = tmpl.parse(args[1:])
    except tmpl.TemplateArgError as exc:
        _err("render-prompt:", exc)
        return 2
    out, missing = tmpl.render(raw.decode("utf-8", errors="replace"), values)
    if missing:
        _err("render-prompt: warning: unfilled placeholders:", "[" + " ".join(missing) + "]")
    sys.stdout.write(out)
    return 0


def _validate(args: Sequence[str]) -> int:
    if not args:
        _err("usage: validate-critique <json>")
        return 2
    try:
        with open(args[0], "rb") as handle:
            payload = handle.read()
        sch = embedded.schema_bytes()
    except OSError as exc:
        _err("validate-critique:", exc)
        return 1
    import os

    require = os.environ.get("CONVERGE_REQUIRE_EVIDENCE") == "1"
    try:
        errors = schema.validate(payload, sch, require)
    except schema.SchemaInputError as exc:
        _err("validate-critique:", exc)
        return 1
    for message in errors:
        _err(message)
    return 1 if errors else 0


def _status(args: Sequence[str]) -> int:
    if len(args) < 2:
        _err("usage: status start|round|thread|verdict|end|path|show <session-id> [...]")
        return 2
    sub, sid, rest = args[0], args[1], list(args[2:])
    try:
        if sub == "start":
            if len(rest) < 2:
                _err("usage: status start <sid> <mode> <max-rounds>")
                return 2
            status.start(sid, rest[0], _parse_int(rest[1]) or 0)
        elif sub == "round":
            if len(rest) < 2:
                _err("usage: status round <sid> <round> <phase>")
                return 2
            status.record_round(sid, _parse_int(rest[0]) or 0, rest[1])
        elif sub == "thread":
            if not rest:
                _err("usage: status thread <sid> <thread-id>")
                return 2
            status.set_thread(sid, rest[0])
        elif sub == "verdict":
            if len(rest) < 3:
                _err("usage: status verdict <sid> <author> <verdict> <issues>")
                return 2
            status.add_verdict(sid, rest[0], rest[1], _parse_int(rest[2]) or 0)
        elif sub == "end":
            if not rest:
                _err("usage: status end <sid> <outcome>")
                return 2
            status.end(sid, rest[0])
        elif sub == "path":
            print(status.path(sid))
        elif sub == "show":
            try:
                data = status.path(sid).read_bytes()
            except OSError:
                _err("status: no snapshot for", sid)
                return 1
            sys.stdout.write(data.decode("utf-8", errors="replace"))
        else:
            _err("status: unknown subcommand", sub)
            return 2
    except (OSError, ValueError) as exc:
        _err("status:", exc)
        return 1
    return 0


def _llm(args: Sequence[str], provider_hint: str) -> int:
    """Run a critique through a provider; an empty hint requires ``--provider``."""
    subcmd = f"{provider_hint}-critique" if provider_hint else "llm-critique"
    short_usage = f"usage: {subcmd} [--resume <id>] [--model <m>] <prompt-file> [effort]"
    opts = Options()
    provider_name = provider_hint
    rest = list(args)

    while rest and rest[0] in ("--provider", "--resume", "--model"):
        flag = rest[0]
        if len(rest) < 2:
            if flag == "--provider":
                _err(
                    f"usage: {subcmd} --provider {{codex|claude}} [--resume <id>] "
                    "[--model <m>] <prompt-file> [effort]"
                )
            else:
                _err(short_usage)
            return 2
        value = rest[1]
        if flag == "--provider":
            provider_name = value
        elif flag == "--resume":
            opts.resume_id = value
        else:
            opts.model = value
        rest = rest[2:]

    if not provider_name:
        _err(
            "llm-critique: --provider is required (codex|claude); "
            "or use codex-critique / claude-critique"
        )
        return 2
    if not rest:
        _err(short_usage)
        return 2
    opts.prompt_file = rest[0]
    if len(rest) > 1:
        opts.effort = rest[1]

    try:
        prov = dispatch.get(provider_name)
    except ValueError as exc:
        _err(f"{subcmd}: {exc}")
        return 2
    try:
        prov.run(opts)
    except ProviderError as exc:
        _err(f"{subcmd}: {exc.message}")
        return int(exc.code)
    except OSError as exc:
        _err(f"{subcmd}: {exc}")
        return 1
    return 0


def _list_providers(args: Sequence[str]) -> int:
    for name in dispatch.names():
        print(name)
    return 0


def _list_modes(args: Sequence[str]) -> int:
    for mode in embedded.list_embedded_templates():
        print(mode)
    return 0


def _help(args: Sequence[str]) -> int:
    usage(sys.stdout)
    return 0


_COMMANDS = {
    "preflight": _preflight,
    "resolve-plan": _resolve_plan,
    "detect-base-branch": _detect_base,
    "get-diff": _get_diff,
    "smoke-check": _smoke,
    "log": _log,
    "cleanup": _cleanup,
    "render-prompt": _render,
    "validate-critique": _validate,
    "status": _status,
    "codex-critique": lambda rest: _llm(rest, "codex"),
    "claude-critique": lambda rest: _llm(rest, "claude"),
    "llm-critique": lambda rest: _llm(rest, ""),
    "list-providers": _list_providers,
    "list-modes": _list_modes,
    "-h": _help,
    "--help": _help,
    "help": _help,
}


def run(args: Sequence[str]) -> int:
    """Dispatch one invocation and return the process exit code."""
    if not args:
        usage(sys.stderr)
        return 2
    command, rest = args[0], list(args[1:])
    handler = _COMMANDS.get(command)
    if handler is None:
        _err(f"unknown subcommand: {command}")
        usage(sys.stderr)
        return 2
    return handler(rest)


def main(argv: Sequence[str] | None = None) -> int:
    """Program entry point."""
    return run(sys.argv[1:] if argv is None else list(argv))


if __name__ == "__main__":
    sys.exit(main())