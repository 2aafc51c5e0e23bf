import io
import json

import pytest

from converge.smoke import Mode, SmokeError, SmokeFailed, command_for, run, tail


@pytest.fixture(autouse=True)
def project(tmp_path, monkeypatch):
    monkeypatch.delenv("CONVERGE_SMOKE_BUILD", raising=False)
    monkeypatch.delenv("CONVERGE_SMOKE_TEST", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.mark.parametrize(
    "marker, build, test",
    [
        ("go.mod", "go build ./...", "go test ./..."),
        ("Cargo.toml", "cargo check", "cargo test"),
        ("pyproject.toml", "python -m compileall -q .", "pytest -q"),
        ("setup.py", "python -m compileall -q .", "pytest -q"),
    ],
)
def test_project_markers(project, marker, build, test):
    (project / marker).write_text("")
    assert command_for(Mode.BUILD) == build
    assert command_for("test") == test


def test_go_beats_cargo(project):
    (project / "go.mod").write_text("")
    (project / "Cargo.toml").write_text("")
    assert command_for(Mode.TEST) == "go test ./..."


def test_npm_scripts(project):
    (project / "package.json").write_text(json.dumps({"scripts": {"build": "tsc", "test": "jest"}}))
    assert command_for(Mode.BUILD) == "npm run build"
    assert command_for(Mode.TEST) == "npm test"


def test_tsconfig_fallback(project):
    (project / "package.json").write_text("{}")
    (project / "tsconfig.json").write_text("{}")
    assert command_for(Mode.BUILD) == "npx tsc --noEmit"


def test_package_json_without_script(project):
    (project / "package.json").write_text("{}")
    with pytest.raises(SmokeError, match="package.json present but no `test` script"):
        command_for(Mode.TEST)


def test_unrecognized_project():
    with pytest.raises(SmokeError, match="no recognized project type"):
        command_for(Mode.BUILD)


def test_env_override(monkeypatch):
    monkeypatch.setenv("CONVERGE_SMOKE_TEST", "make check")
    assert command_for(Mode.TEST) == "make check"
    with pytest.raises(SmokeError):
        command_for(Mode.BUILD)


def test_invalid_mode():
    with pytest.raises(ValueError):
        command_for("deploy")


def test_tail_adds_missing_newline():
    assert tail(b"a\nb\nc", 2) == b"b\nc\n"


def test_tail_trailing_newline_counts_as_line():
    assert tail(b"a\nb\nc\n", 2) == b"c\n"


def test_tail_empty():
    assert tail(b"", 40) == b""


def test_tail_keeps_at_most_count_pieces():
    data = b"".join(b"line%d\n" % i for i in range(100))
    out = tail(data, 40)
    assert data.endswith(out)
    assert len(out.split(b"\n")) == 40


def test_run_pass(monkeypatch):
    monkeypatch.setenv("CONVERGE_SMOKE_BUILD", "true")
    out, err = io.StringIO(), io.StringIO()
    run(Mode.BUILD, out, err)
    assert out.getvalue() == "PASS (cmd: true)\n"
    assert err.getvalue() == ""


def test_run_fail(monkeypatch):
    command = "printf 'a\\nb\\n'; exit 3"
    monkeypatch.setenv("CONVERGE_SMOKE_TEST", command)
    out, err = io.StringIO(), io.StringIO()
    with pytest.raises(SmokeFailed) as info:
        run(Mode.TEST, out, err)
    assert str(info.value) == "smoke check failed"
    assert info.value.exit_code == 3
    assert out.getvalue() == f"FAIL (cmd: {command}, exit: 3)\n"
    assert err.getvalue() == "--- last lines ---\na\nb\n"


def test_run_without_project_raises_plain_error():
    with pytest.raises(SmokeError) as info:
        run(Mode.BUILD, io.StringIO(), io.StringIO())
    assert not isinstance(info.value, SmokeFailed)