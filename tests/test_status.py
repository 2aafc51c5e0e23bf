import json

import pytest

from converge import status
from converge.status import Event, Snapshot, Verdict


@pytest.fixture
def status_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("CONVERGE_STATUS_DIR", str(tmp_path))
    return tmp_path


def test_path_uses_env_dir(status_dir):
    assert status.path("abc") == status_dir / "converge-status-abc.json"


def test_path_defaults_to_tmp(monkeypatch):
    monkeypatch.delenv("CONVERGE_STATUS_DIR", raising=False)
    assert str(status.path("s1")).startswith("/tmp/")


def test_load_missing_returns_empty(status_dir):
    snap = status.load("fresh")
    assert snap == Snapshot(session_id="fresh")


def test_start_writes_snapshot(status_dir):
    status.start("s1", "plan", 5)
    snap = status.load("s1")
    assert (snap.mode, snap.max_rounds, snap.phase, snap.current_round) == ("plan", 5, "starting", 0)
    assert snap.started > 0
    assert snap.updated >= snap.started


def test_start_omits_empty_optional_keys(status_dir):
    status.start("s1", "review", 3)
    data = json.loads(status.path("s1").read_text())
    assert "ended" not in data
    assert "thread_id" not in data
    assert "outcome" not in data
    assert data["verdicts"] == []
    assert data["events"] == []


def test_rounds_verdicts_and_end(status_dir):
    status.start("s2", "implement", 4)
    status.record_round("s2", 1, "critique")
    status.add_verdict("s2", "codex", "REVISE", 3)
    status.record_round("s2", 2, "revise")
    status.add_verdict("s2", "claude", "APPROVE", 0)
    status.set_thread("s2", "thread-1")
    status.end("s2", "converged")

    snap = status.load("s2")
    assert [(e.round, e.phase) for e in snap.events] == [(1, "critique"), (2, "revise")]
    assert [(v.round, v.author, v.verdict, v.issues) for v in snap.verdicts] == [
        (1, "codex", "REVISE", 3),
        (2, "claude", "APPROVE", 0),
    ]
    assert snap.thread_id == "thread-1"
    assert snap.phase == "done"
    assert snap.outcome == "converged"
    assert snap.ended >= snap.started


def test_restart_keeps_history_but_resets_progress(status_dir):
    status.start("s3", "plan", 2)
    status.record_round("s3", 1, "critique")
    status.end("s3", "max-rounds")
    status.start("s3", "plan", 6)
    snap = status.load("s3")
    assert snap.phase == "starting"
    assert snap.outcome == ""
    assert snap.current_round == 0
    assert snap.max_rounds == 6
    assert len(snap.events) == 1


def test_round_trip_through_dict():
    snap = Snapshot(
        session_id="x",
        mode="verify",
        max_rounds=3,
        started=10,
        updated=11,
        ended=12,
        current_round=2,
        phase="done",
        thread_id="t",
        verdicts=[Verdict(ts=10, round=1, author="a", verdict="v", issues=2)],
        outcome="ok",
        events=[Event(ts=10, round=1, phase="p")],
    )
    assert Snapshot.from_dict(snap.to_dict()) == snap
    assert Snapshot.from_dict(json.loads(json.dumps(snap.to_dict()))) == snap


def test_special_characters_survive_save(status_dir):
    status.start("s4", "<a&b>", 1)
    raw = status.path("s4").read_text()
    assert "<" not in raw
    assert status.load("s4").mode == "<a&b>"


def test_from_dict_rejects_non_object():
    with pytest.raises(ValueError):
        Snapshot.from_dict([1, 2])


def test_load_corrupt_file_raises(status_dir):
    status.path("bad").write_text("{not json")
    with pytest.raises(ValueError):
        status.load("bad")