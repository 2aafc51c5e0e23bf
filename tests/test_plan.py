import os

import pytest

from converge.plan import PlanNotFoundError, resolve


def _tool(bindir, name, body):
    script = bindir / name
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(0o755)


@pytest.fixture
def env(tmp_path, monkeypatch):
    bindir = tmp_path / "bin"
    bindir.mkdir()
    plans = tmp_path / "plans"
    monkeypatch.setenv("PATH", str(bindir))
    monkeypatch.setenv("CLAUDE_PLANS_DIR", str(plans))
    monkeypatch.delenv("CONVERGE_ACTIVE_PLAN", raising=False)
    monkeypatch.chdir(tmp_path)
    return bindir, plans


def _plan(path, mtime):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("# plan\n")
    os.utime(path, (mtime, mtime))
    return path


def test_explicit_path_is_made_absolute(env, tmp_path):
    (tmp_path / "mine.md").write_text("x")
    assert resolve("mine.md") == str(tmp_path / "mine.md")


def test_explicit_missing(env):
    with pytest.raises(PlanNotFoundError, match="explicit path not found: nope.md"):
        resolve("nope.md")


def test_active_plan_env(env, tmp_path, monkeypatch):
    target = tmp_path / "active.md"
    target.write_text("x")
    monkeypatch.setenv("CONVERGE_ACTIVE_PLAN", str(target))
    assert resolve("") == str(target)


def test_missing_active_plan_falls_through(env, monkeypatch, tmp_path):
    _, plans = env
    newest = _plan(plans / "a.md", 1000)
    monkeypatch.setenv("CONVERGE_ACTIVE_PLAN", str(tmp_path / "gone.md"))
    assert resolve("") == str(newest)


def test_missing_plans_dir(env):
    _, plans = env
    with pytest.raises(PlanNotFoundError, match="no plans dir at"):
        resolve("")


def test_no_markdown_files(env):
    _, plans = env
    plans.mkdir()
    (plans / "notes.txt").write_text("x")
    with pytest.raises(PlanNotFoundError, match="no .md files in"):
        resolve("")


def test_newest_overall_without_repo(env):
    _, plans = env
    _plan(plans / "old.md", 1000)
    newest = _plan(plans / "nested" / "new.md", 2000)
    assert resolve("") == str(newest)


def test_repo_match_beats_newer_file(env):
    bindir, plans = env
    _tool(bindir, "git", "echo /work/MyRepo")
    matched = _plan(plans / "myrepo-old.md", 1000)
    _plan(plans / "other.md", 2000)
    assert resolve("") == str(matched)


def test_newest_among_repo_matches(env):
    bindir, plans = env
    _tool(bindir, "git", "echo /work/MyRepo")
    _plan(plans / "myrepo-a.md", 1000)
    newer = _plan(plans / "MyRepo" / "b.md", 1500)
    _plan(plans / "unrelated.md", 3000)
    assert resolve("") == str(newer)


def test_no_repo_match_uses_newest(env):
    bindir, plans = env
    _tool(bindir, "git", "echo /work/elsewhere")
    _plan(plans / "a.md", 1000)
    newest = _plan(plans / "b.md", 2000)
    assert resolve("") == str(newest)