import pytest

from converge.claude import ClaudeProvider
from converge.codex import CodexProvider
from converge.dispatch import get, names


def test_names():
    assert names() == ["codex", "claude"]


def test_empty_name_defaults_to_codex():
    provider = get("")
    assert isinstance(provider, CodexProvider)
    assert provider.name == "codex"


def test_claude_lookup():
    provider = get("claude")
    assert isinstance(provider, ClaudeProvider)
    assert provider.name == "claude"


@pytest.mark.parametrize("name", names())
def test_every_listed_name_resolves_to_itself(name):
    assert get(name).name == name


def test_unknown_provider():
    with pytest.raises(ValueError, match="unknown provider") as info:
        get("gemini")
    assert "supported: codex, claude" in str(info.value)


def test_names_returns_fresh_list():
    listed = names()
    listed.append("other")
    assert names() == ["codex", "claude"]