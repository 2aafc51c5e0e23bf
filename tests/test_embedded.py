import pytest

from converge.embedded import (
    UnknownModeError,
    list_embedded_templates,
    schema_bytes,
    template_bytes,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("CONVERGE_SCHEMA", raising=False)
    monkeypatch.delenv("CONVERGE_PROMPTS_DIR", raising=False)


def test_schema_override(tmp_path, monkeypatch):
    schema_file = tmp_path / "s.json"
    schema_file.write_bytes(b'{"type": "object"}')
    monkeypatch.setenv("CONVERGE_SCHEMA", str(schema_file))
    assert schema_bytes() == b'{"type": "object"}'


def test_schema_override_missing_file(tmp_path, monkeypatch):
    monkeypatch.setenv("CONVERGE_SCHEMA", str(tmp_path / "absent.json"))
    with pytest.raises(FileNotFoundError):
        schema_bytes()


def test_prompts_dir_override(tmp_path, monkeypatch):
    (tmp_path / "plan.tmpl").write_bytes(b"Review {{PLAN}}")
    monkeypatch.setenv("CONVERGE_PROMPTS_DIR", str(tmp_path))
    assert template_bytes("plan") == b"Review {{PLAN}}"


def test_prompts_dir_override_missing(tmp_path, monkeypatch):
    monkeypatch.setenv("CONVERGE_PROMPTS_DIR", str(tmp_path))
    with pytest.raises(FileNotFoundError):
        template_bytes("verify")


def test_unknown_mode():
    with pytest.raises(UnknownModeError, match='unknown mode "no-such-mode"'):
        template_bytes("no-such-mode")


def test_path_like_mode_rejected():
    with pytest.raises(UnknownModeError):
        template_bytes("../schemas/critique")


def test_listed_modes_are_sorted_names():
    modes = list_embedded_templates()
    assert modes == sorted(modes)
    assert not any(m.endswith(".tmpl") or "/" in m for m in modes)