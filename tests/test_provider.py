import pytest

from converge.provider import ExitCode, Options, Provider, ProviderError, trim


def test_trim_collapses_whitespace():
    assert trim("a  b\n\t c", 80) == "a b c"


def test_trim_short_text_unchanged():
    assert trim("hello", 5) == "hello"


def test_trim_cuts_with_ellipsis():
    result = trim("abcdefghij", 4)
    assert result == "abc…"


@pytest.mark.parametrize("limit", [2, 5, 10, 30])
def test_trim_length_invariant(limit):
    text = "word " * 50
    result = trim(text, limit)
    assert len(result) == limit
    assert result.endswith("…")


def test_provider_error_carries_code_and_message():
    error = ProviderError(ExitCode.TIMEOUT, "took too long")
    assert int(error.code) == 4
    assert error.message == "took too long"
    assert str(error) == "took too long"


def test_provider_error_code_maps_to_int():
    error = ProviderError(ExitCode.BAD_ARGS, "prompt file is required")
    assert int(error.code) == 2
    assert error.code == ExitCode.BAD_ARGS


def test_abstract_provider_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Provider()


def test_concrete_provider_receives_options():
    class Echo(Provider):
        name = "echo"

        def run(self, opts):
            opts.stdout.append(opts.prompt_file)

    sink = []
    Echo().run(Options(prompt_file="p.txt", stdout=sink))
    assert sink == ["p.txt"]


def test_options_defaults_mean_provider_default():
    opts = Options(prompt_file="x")
    assert (opts.timeout, opts.heartbeat_s, opts.resume_id, opts.quiet) == (0.0, 0, "", False)