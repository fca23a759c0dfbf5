from __future__ import annotations

import json
from pathlib import Path

import pytest

from campus_explorer.store import SCHEMA_VERSION, JsonStateStore


def test_round_trip_through_snapshot(state_path: Path) -> None:
    store = JsonStateStore(state_path)
    store.set("points", 250)
    store.set("path", {"points": [[16.435, 80.5104]], "total_distance_m": 0.0})
    store.flush()

    payload = json.loads(state_path.read_text(encoding="utf-8"))
    assert payload["version"] == SCHEMA_VERSION
    assert payload["data"]["points"] == 250

    reopened = JsonStateStore(state_path)
    assert reopened.get("points") == 250
    assert reopened.get("path")["points"] == [[16.435, 80.5104]]
    assert reopened.keys() == ["path", "points"]


def test_journal_is_replayed_without_flush(state_path: Path) -> None:
    store = JsonStateStore(state_path)
    store.set("points", 100)
    store.set("streak", {"current": 2})
    store.delete("streak")

    reopened = JsonStateStore(state_path)
    assert reopened.get("points") == 100
    assert reopened.get("streak") is None


def test_flush_clears_journal(state_path: Path) -> None:
    store = JsonStateStore(state_path)
    store.set("points", 1)
    journal = state_path.with_name(f"{state_path.stem}.journal.jsonl")
    assert journal.exists()
    store.flush()
    assert not journal.exists()


def test_broken_journal_tail_is_ignored(state_path: Path) -> None:
    store = JsonStateStore(state_path)
    store.set("points", 7)
    journal = state_path.with_name(f"{state_path.stem}.journal.jsonl")
    with journal.open("a", encoding="utf-8") as f:
        f.write('{"ver": 1, "k": "poi')

    assert JsonStateStore(state_path).get("points") == 7


def test_corrupt_snapshot_is_backed_up(state_path: Path) -> None:
    state_path.write_text("{not json", encoding="utf-8")

    store = JsonStateStore(state_path)
    assert store.get("points") is None
    backup = state_path.with_suffix(state_path.suffix + ".broken")
    assert backup.read_text(encoding="utf-8") == "{not json"

    store.set("points", 5)
    store.flush()
    assert JsonStateStore(state_path).get("points") == 5


def test_version_mismatch_starts_empty(state_path: Path) -> None:
    state_path.write_text(json.dumps({"version": 99, "data": {"points": 5}}), encoding="utf-8")

    store = JsonStateStore(state_path)
    assert store.get("points") is None
    assert state_path.with_suffix(state_path.suffix + ".broken").exists()


def test_unrecognized_layout_starts_empty(state_path: Path) -> None:
    state_path.write_text(json.dumps([1, 2, 3]), encoding="utf-8")
    assert JsonStateStore(state_path).keys() == []


def test_invalid_utf8_snapshot_is_backed_up(state_path: Path) -> None:
    raw = b'{"version": 1, "data": {"points": \xff\xfe}}'
    state_path.write_bytes(raw)

    store = JsonStateStore(state_path)
    assert store.get("points") is None
    assert state_path.with_suffix(state_path.suffix + ".broken").read_bytes() == raw


def test_invalid_utf8_journal_line_is_skipped(state_path: Path) -> None:
    journal = state_path.with_name(f"{state_path.stem}.journal.jsonl")
    journal.write_bytes(
        b'{"ver": 1, "k": "points", "v": 3}\n'
        b"\xff\xfe\n"
        b'{"ver": 1, "k": "steps", "v": {"count": 10}}\n'
    )

    store = JsonStateStore(state_path)
    assert store.get("points") == 3
    assert store.get("steps") == {"count": 10}


def test_unwritable_location_keeps_values_in_memory(tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory", encoding="utf-8")
    store = JsonStateStore(blocker / "state.json")

    store.set("points", 1)
    assert store.get("points") == 1
    with pytest.raises(OSError):
        store.flush()
    assert store.get("points") == 1
