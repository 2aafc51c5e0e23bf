"""Transport contract shared by every LLM critique provider."""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass
from typing import TextIO


class ExitCode(enum.IntEnum):
    """Process exit codes a provider failure maps to."""

    BAD_ARGS = 2
    AUTH_ERROR = 3
    TIMEOUT = 4
    NO_FINAL_MSG = 5


class ProviderError(Exception):
    """A provider failure carrying the exit code the command should return."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass
class Options:
    """Settings for a single critique call.

    A zero ``timeout`` or ``heartbeat_s`` and empty strings mean
    "use the provider's default".
    """

    prompt_file: str = ""
    effort: str = ""
    resume_id: str = ""
    timeout: float = 0.0
    quiet: bool = False
    heartbeat_s: int = 0
    thread_out: str = ""
    model: str = ""
    stderr: TextIO | None = None
    stdout: TextIO | None = None


class Provider(abc.ABC):
    """An LLM command-line transport."""

    name: str = ""

    @abc.abstractmethod
    def run(self, opts: Options) -> None:
        """Run one critique call, writing the final message to ``opts.stdout``.

        Raises :class:`ProviderError` on failure.
        """


def trim(text: str, limit: int) -> str:
    """Collapse whitespace and cut ``text`` to ``limit`` characters with an ellipsis."""
    collapsed = " ".join(text.split())
    if len(collapsed) <= limit:
        return collapsed
    return collapsed[: limit - 1] + "…"