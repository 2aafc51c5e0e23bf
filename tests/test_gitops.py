import pytest

from converge.gitops import (
    DEFAULT_MAX_BYTES,
    GitOpsError,
    detect_base_branch,
    get_diff,
    truncate_diff,
)


def _tool(bindir, name, body):
    script = bindir / name
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(0o755)


@pytest.fixture
def bindir(tmp_path, monkeypatch):
    directory = tmp_path / "bin"
    directory.mkdir()
    monkeypatch.setenv("PATH", str(directory))
    monkeypatch.delenv("CONVERGE_DIFF_MAX_BYTES", raising=False)
    monkeypatch.chdir(tmp_path)
    return directory


def test_truncate_diff_leaves_short_input():
    assert truncate_diff(b"abc", 10) == b"abc"


def test_truncate_diff_appends_marker():
    data = b"x" * 20
    out = truncate_diff(data, 5)
    assert out.startswith(b"xxxxx\n[diff truncated at 5 bytes; full size 20 bytes]")
    assert out.endswith(b"]\n")


def test_truncate_diff_exact_length_untouched():
    assert truncate_diff(b"12345", 5) == b"12345"


def test_default_max_bytes_truncates_at_51200():
    data = b"y" * (DEFAULT_MAX_BYTES + 1)
    out = truncate_diff(data, DEFAULT_MAX_BYTES)
    assert out.endswith(b"\n[diff truncated at 51200 bytes; full size 51201 bytes]\n")


def test_pr_base_branch_from_gh(bindir):
    _tool(bindir, "gh", 'if [ "$1" = pr ]; then echo trunk; exit 0; fi\nexit 1')
    assert detect_base_branch("42") == "trunk"


def test_repo_default_branch_from_gh(bindir):
    _tool(bindir, "gh", 'if [ "$1" = repo ]; then echo develop; exit 0; fi\nexit 1')
    assert detect_base_branch("") == "develop"


def test_origin_head_prefix_stripped(bindir):
    _tool(bindir, "gh", "exit 1")
    _tool(bindir, "git", 'if [ "$1" = symbolic-ref ]; then echo refs/remotes/origin/release; exit 0; fi\nexit 1')
    assert detect_base_branch("") == "release"


def test_falls_back_to_origin_main(bindir):
    _tool(bindir, "git", 'if [ "$1" = rev-parse ] && [ "$3" = origin/main ]; then exit 0; fi\nexit 1')
    assert detect_base_branch("") == "main"


def test_falls_back_to_origin_master(bindir):
    _tool(bindir, "git", 'if [ "$1" = rev-parse ] && [ "$3" = origin/master ]; then exit 0; fi\nexit 1')
    assert detect_base_branch("") == "master"


def test_no_tools_means_no_base(bindir):
    with pytest.raises(GitOpsError, match="could not determine base branch"):
        detect_base_branch("")


def test_get_diff_requires_base(bindir):
    with pytest.raises(GitOpsError, match="base branch is required"):
        get_diff("", "", 0)


def test_get_diff_uses_three_dot_range(bindir):
    _tool(bindir, "git", 'echo "$1 $2"')
    assert get_diff("main", "", 0) == "diff main...HEAD\n"


def test_get_diff_truncates(bindir):
    _tool(bindir, "git", 'echo "$1 $2"')
    out = get_diff("main", "", 4)
    assert out.startswith("diff\n[diff truncated at 4 bytes; full size")


def test_get_diff_env_limit(bindir, monkeypatch):
    _tool(bindir, "git", 'echo "$1 $2"')
    monkeypatch.setenv("CONVERGE_DIFF_MAX_BYTES", "4")
    assert get_diff("main", "", 0).startswith("diff\n[diff truncated at 4 bytes")


def test_get_diff_for_pr(bindir):
    _tool(bindir, "gh", 'echo "$1 $2 $3"')
    assert get_diff("", "7", 0) == "pr diff 7\n"


def test_get_diff_failure(bindir):
    _tool(bindir, "git", "exit 1")
    with pytest.raises(GitOpsError, match="git diff main...HEAD failed"):
        get_diff("main", "", 0)