# converge

A set of command-line helpers for critique loops in which an LLM (the Codex
CLI or the Claude Code CLI) reviews a plan, an implementation or a pull
request round after round. `converge` does not drive the loop itself; it
provides the individual steps that a loop script or agent calls:

- `preflight` checks that the `codex` CLI is installed and authenticated, that
  you are inside a git repository (for `implement`, `verify` and `review`) and
  warns when `gh` is missing (for `review`)
- `resolve-plan`, `detect-base-branch` and `get-diff` find the plan file, the
  base branch and the diff to review
- `render-prompt` fills `{{PLACEHOLDER}}` tokens in a prompt template, and
  `validate-critique` checks a critique payload against a JSON Schema
- `smoke-check` runs the project's build or test command
- `log` writes a `CONVERGE LOG` table, and `status` keeps a per-session JSON
  snapshot
- `llm-critique`, `codex-critique` and `claude-critique` run the chosen LLM
  CLI, stream progress to stderr and print the final message to stdout

## Installation

```
pip install .
```

This installs the `converge` command. It needs no third-party Python
packages; the LLM subcommands need the `codex` or `claude` CLI on `PATH`,
and `detect-base-branch`/`get-diff` use `git` and, when available, `gh`.

## Usage

```
converge help
converge preflight review
converge resolve-plan
converge detect-base-branch 123
converge get-diff main
converge smoke-check test
converge log init REVIEW.md
converge log row REVIEW.md 1 codex REVISE "two issues" ""
converge log smoke REVIEW.md PASS
converge log note REVIEW.md some free text
converge status start my-session review 5
converge status round my-session 1 critique
converge status verdict my-session codex REVISE 2
converge status end my-session converged
converge status show my-session
converge render-prompt prompt.tmpl DIFF=@/tmp/diff.txt RESUME=1
converge validate-critique /tmp/critique.json
converge llm-critique --provider claude --model opus prompt.txt high
converge codex-critique --resume THREAD_ID prompt.txt
converge list-providers
converge cleanup
```

Notes on individual subcommands:

- `resolve-plan [path]` uses the given path (which must exist), then
  `$CONVERGE_ACTIVE_PLAN`, then the newest `*.md` under `$CLAUDE_PLANS_DIR`
  (default `~/.claude/plans`) whose path contains the repository name, then
  the newest `*.md` there.
- `detect-base-branch [pr#]` tries `gh pr view`, the repository's default
  branch, `origin/HEAD`, then `origin/main` and `origin/master`.
- `get-diff <base> [pr#]` prints `git diff <base>...HEAD` (or `gh pr diff`),
  cut to the byte limit with a marker line when truncated.
- `smoke-check {build|test}` picks a command from `go.mod`, `Cargo.toml`,
  `package.json` (its `build`/`test` scripts, or `npx tsc --noEmit` for
  builds with `tsconfig.json`), or `pyproject.toml`/`setup.py`. It exits 0
  on PASS, 1 on FAIL (printing the last 40 lines of output to stderr) and 2
  when no project type is recognised.
- `render-prompt` fills values given as `KEY=value` or `KEY=@file`;
  `{{IF_RESUME}}...{{ENDIF_RESUME}}` blocks are kept only when `RESUME` is
  `1`, `true` or `yes`. Unfilled placeholders render empty and are reported
  on stderr.
- `validate-critique` prints one message per problem to stderr and exits 1
  when the payload is invalid. With `CONVERGE_REQUIRE_EVIDENCE=1` every issue
  must also carry a `file` and `line_start`/`line_end` of at least 1.
- `status path <id>` prints where the snapshot for a session is stored.
- `cleanup` removes `converge-claude-r*.json`, `converge-codex-r*.json`,
  `converge-prompt-*.txt` and `converge-thread-*.txt` from `/tmp`; log and
  `REVIEW.md` files are left alone.

The LLM subcommands take `[--resume <id>] [--model <m>] <prompt-file> [effort]`
(`llm-critique` also needs `--provider codex|claude`). Effort defaults to
`xhigh`; the Claude model defaults to `opus`. On a fresh session the captured
thread or session id is written to `/tmp/converge-thread-<pid>.txt`. They exit
with:

- 2 for bad arguments, an unknown provider or a missing CLI
- 3 for authentication errors
- 4 for timeouts
- 5 when no final message was produced

## Templates and schema

The package does not ship any prompt templates or a critique schema, so
`list-modes` prints nothing. Give `render-prompt` a template file path, or
set `CONVERGE_PROMPTS_DIR` to a directory holding `<mode>.tmpl` files to
render by mode name. `validate-critique` needs `CONVERGE_SCHEMA` set to the
path of a JSON Schema file.

The validator covers a subset of JSON Schema: `type`, `required`,
`properties`, `additionalProperties: false`, `enum`, `minimum`, `maximum`,
`minLength`, `pattern`, `minItems`, `maxItems` and `items`.

## Environment

| Variable | Effect |
|----------|--------|
| `CONVERGE_CODEX_TIMEOUT`, `CONVERGE_CLAUDE_TIMEOUT` | Per-call timeout in seconds (default 300) |
| `CONVERGE_CLAUDE_MODEL` | Claude model when `--model` is not given (default `opus`) |
| `CONVERGE_QUIET` | Any value other than `0` suppresses progress lines |
| `CONVERGE_HEARTBEAT_S` | Seconds between idle heartbeat lines (default 5) |
| `CONVERGE_DIFF_MAX_BYTES` | Diff truncation limit (default 51200) |
| `CONVERGE_REQUIRE_EVIDENCE` | Set to `1` to require file and line evidence on each issue |
| `CONVERGE_SCHEMA` | Critique JSON Schema file for `validate-critique` |
| `CONVERGE_PROMPTS_DIR` | Directory of `<mode>.tmpl` prompt templates |
| `CONVERGE_STATUS_DIR` | Where status snapshots are written (default `/tmp`) |
| `CONVERGE_ACTIVE_PLAN`, `CLAUDE_PLANS_DIR` | Plan file resolution |
| `CONVERGE_SMOKE_BUILD`, `CONVERGE_SMOKE_TEST` | Override smoke-check commands |
| `OPENAI_API_KEY`, `CODEX_HOME` | How `preflight` decides codex is authenticated (`$CODEX_HOME/auth.json`, default `~/.codex`) |

## Use from Python

The modules can also be used directly, for example
`converge.schema.validate(payload, schema, require_evidence)`,
`converge.tmpl.render(text, converge.tmpl.parse(["KEY=value"]))`,
`converge.status.start(session_id, mode, max_rounds)` or
`converge.dispatch.get("claude").run(converge.provider.Options(prompt_file="prompt.txt"))`.
Failures are raised as exceptions such as `ProviderError`, `SmokeFailed`,
`GitOpsError` and `PlanNotFoundError`.

## Development

```
pip install -e ".[test]"
pytest
```