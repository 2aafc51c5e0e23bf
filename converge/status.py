"""Per-session JSON snapshot describing what the converge loop is doing.

Snapshots live at ``${CONVERGE_STATUS_DIR:-/tmp}/converge-status-<id>.json``.
"""

from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_ESCAPES = (
    ("<", "\\u003c"),
    (">", "\\u003e"),
    ("&", "\\u0026"),
    ("\u2028", "\\u2028"),
    ("\u2029", "\\u2029"),
)


def _now() -> int:
    return int(time.time())


@dataclass
class Verdict:
    """One author's verdict in a round."""

    ts: int
    round: int
    author: str
    verdict: str
    issues: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.ts,
            "round": self.round,
            "author": self.author,
            "verdict": self.verdict,
            "issues": self.issues,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Verdict:
        return cls(
            ts=int(data.get("ts", 0)),
            round=int(data.get("round", 0)),
            author=str(data.get("author", "")),
            verdict=str(data.get("verdict", "")),
            issues=int(data.get("issues", 0)),
        )


@dataclass
class Event:
    """A phase transition."""

    ts: int
    round: int
    phase: str

    def to_dict(self) -> dict[str, Any]:
        return {"ts": self.ts, "round": self.round, "phase": self.phase}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            ts=int(data.get("ts", 0)),
            round=int(data.get("round", 0)),
            phase=str(data.get("phase", "")),
        )


@dataclass
class Snapshot:
    """On-disk state of one converge session."""

    session_id: str = ""
    mode: str = ""
    max_rounds: int = 0
    started: int = 0
    updated: int = 0
    ended: int = 0
    current_round: int = 0
    phase: str = ""
    thread_id: str = ""
    verdicts: list[Verdict] = field(default_factory=list)
    outcome: str = ""
    events: list[Event] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the file layout; ``ended``, ``thread_id`` and ``outcome`` are omitted when empty."""
        data: dict[str, Any] = {
            "session_id": self.session_id,
            "mode": self.mode,
            "max_rounds": self.max_rounds,
            "started": self.started,
            "updated": self.updated,
        }
        if self.ended:
            data["ended"] = self.ended
        data["current_round"] = self.current_round
        data["phase"] = self.phase
        if self.thread_id:
            data["thread_id"] = self.thread_id
        data["verdicts"] = [v.to_dict() for v in self.verdicts]
        if self.outcome:
            data["outcome"] = self.outcome
        data["events"] = [e.to_dict() for e in self.events]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        """Build a snapshot from decoded JSON, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ValueError("status snapshot must be a JSON object")
        return cls(
            session_id=str(data.get("session_id", "")),
            mode=str(data.get("mode", "")),
            max_rounds=int(data.get("max_rounds", 0)),
            started=int(data.get("started", 0)),
            updated=int(data.get("updated", 0)),
            ended=int(data.get("ended", 0)),
            current_round=int(data.get("current_round", 0)),
            phase=str(data.get("phase", "")),
            thread_id=str(data.get("thread_id", "")),
            verdicts=[Verdict.from_dict(v) for v in data.get("verdicts") or []],
            outcome=str(data.get("outcome", "")),
            events=[Event.from_dict(e) for e in data.get("events") or []],
        )


def path(session_id: str) -> Path:
    """Snapshot file location for ``session_id``."""
    directory = os.environ.get("CONVERGE_STATUS_DIR") or "/tmp"
    return Path(directory) / f"converge-status-{session_id}.json"


def load(session_id: str) -> Snapshot:
    """Read the snapshot, or return an empty one if none exists yet."""
    try:
        raw = path(session_id).read_bytes()
    except FileNotFoundError:
        return Snapshot(session_id=session_id)
    return Snapshot.from_dict(json.loads(raw))


def _encode(data: dict[str, Any]) -> str:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    for char, escape in _ESCAPES:
        text = text.replace(char, escape)
    return text


def save(snapshot: Snapshot) -> None:
    """Stamp ``updated`` and write the snapshot to disk."""
    snapshot.updated = _now()
    target = path(snapshot.session_id)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(_encode(snapshot.to_dict()), encoding="utf-8")


def start(session_id: str, mode: str, max_rounds: int) -> None:
    """Begin (or restart) a session."""
    snapshot = load(session_id)
    snapshot.session_id = session_id
    snapshot.mode = mode
    snapshot.max_rounds = max_rounds
    snapshot.started = _now()
    snapshot.current_round = 0
    snapshot.phase = "starting"
    snapshot.outcome = ""
    save(snapshot)


def record_round(session_id: str, round_no: int, phase: str) -> None:
    """Record a phase transition for ``round_no``."""
    snapshot = load(session_id)
    snapshot.current_round = round_no
    snapshot.phase = phase
    snapshot.events.append(Event(ts=_now(), round=round_no, phase=phase))
    save(snapshot)


def set_thread(session_id: str, thread_id: str) -> None:
    """Record the provider thread id used for resuming."""
    snapshot = load(session_id)
    snapshot.thread_id = thread_id
    save(snapshot)


def add_verdict(session_id: str, author: str, verdict: str, issues: int) -> None:
    """Record one author's verdict against the current round."""
    snapshot = load(session_id)
    snapshot.verdicts.append(
        Verdict(ts=_now(), round=snapshot.current_round, author=author, verdict=verdict, issues=issues)
    )
    save(snapshot)


def end(session_id: str, outcome: str) -> None:
    """Mark the session finished with ``outcome``."""
    snapshot = load(session_id)
    snapshot.phase = "done"
    snapshot.outcome = outcome
    snapshot.ended = _now()
    save(snapshot)