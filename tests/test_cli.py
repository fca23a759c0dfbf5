from __future__ import annotations

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from zoneinfo import ZoneInfo

from campus_explorer.cli import main
from campus_explorer.csv_io import load_track_points, write_track_csv
from campus_explorer.models import TrackPoint


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str, str]:
    code = main(list(argv))
    out, err = capsys.readouterr()
    return code, out, err


def _write_walk(path: Path) -> None:
    start = datetime(2025, 3, 12, 8, 0, tzinfo=ZoneInfo("Asia/Kolkata"))
    points = [
        TrackPoint(
            geo_time_ms=int((start + timedelta(seconds=10 * i)).timestamp() * 1000),
            latitude=16.4348 + i * 0.0001,
            longitude=80.5095,
            altitude_m=25.0,
            speed_mps=1.2,
            horizontal_accuracy_m=5.0,
            location_type=1,
        )
        for i in range(12)
    ]
    write_track_csv(points, path)


def test_start_and_status_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    code, out, _ = _run(capsys, "start", "--state", state)
    assert code == 0
    assert "连续打卡：1 天" in out

    code, out, _ = _run(capsys, "status", "--state", state, "--json")
    assert code == 0
    stats = json.loads(out)
    assert stats["current_streak"] == 1
    assert stats["active_challenges"] == 5
    assert stats["total_pois"] == 10


def test_replay_csv(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    csv_path = tmp_path / "Path.csv"
    _write_walk(csv_path)

    code, out, _ = _run(capsys, "replay", "--state", state, "--csv", str(csv_path))
    assert code == 0
    assert "回放 12 个定位点" in out

    code, out, _ = _run(capsys, "status", "--state", state, "--json")
    stats = json.loads(out)
    assert stats["path_points"] == 12
    assert stats["visited_pois"] >= 1
    assert stats["exploration_percent"] > 0


def test_replay_time_range(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    csv_path = tmp_path / "Path.csv"
    _write_walk(csv_path)

    code, out, _ = _run(
        capsys, "replay", "--state", state, "--csv", str(csv_path), "--range-end", "2025-03-12 08:00:30"
    )
    assert code == 0
    assert "回放 4 个定位点" in out


def test_load_track_points_skips_bad_rows(tmp_path: Path) -> None:
    csv_path = tmp_path / "Path.csv"
    _write_walk(csv_path)
    with csv_path.open("a", encoding="utf-8") as f:
        f.write("not-a-time,16.4,80.5,0,0,0,0\n")

    points, summary = load_track_points(csv_path)
    assert len(points) == 12
    assert summary.rows_skipped == 1


def test_poi_add_list_remove(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    code, out, _ = _run(capsys, "poi-add", "--state", state, "--name", "Chai Stall", "--lat", "16.4357", "--lon", "80.5101")
    assert code == 0
    poi_id = out.strip().rsplit("id=", 1)[1].rstrip("）")

    code, out, _ = _run(capsys, "poi-list", "--state", state)
    assert "Chai Stall" in out
    assert out.count("\n") == 11

    code, _, _ = _run(capsys, "poi-remove", "--state", state, "--id", poi_id)
    assert code == 0
    _, out, _ = _run(capsys, "poi-list", "--state", state)
    assert "Chai Stall" not in out


def test_invalid_input_exits_with_2(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    code, _, err = _run(capsys, "poi-remove", "--state", state, "--id", "nope")
    assert code == 2
    assert err.startswith("错误：")

    code, _, err = _run(capsys, "friend-add", "--state", state, "12")
    assert code == 2

    code, _, _ = _run(capsys, "goals", "--state", state, "--daily-steps", "0")
    assert code == 2


def test_steps_and_achievements(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    code, out, _ = _run(capsys, "steps", "--state", state, "--count", "1500")
    assert code == 0
    assert "First Steps" in out

    _, out, _ = _run(capsys, "achievements", "--state", state, "--unlocked")
    assert out.strip().splitlines() == ["🏆 First Steps: 1500/1000（steps）"]

    _, out, _ = _run(capsys, "feed", "--state", state, "--limit", "1")
    assert "Achievement Unlocked!" in out


def test_lowered_goal_fires_milestone(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    _run(capsys, "steps", "--state", state, "--count", "200")

    code, out, _ = _run(capsys, "goals", "--state", state, "--daily-steps", "100")
    assert code == 0
    assert "每日：100 步" in out
    assert "达成目标：daily_steps" in out


def test_notification_switches(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    state = str(tmp_path / "state.json")
    code, out, _ = _run(capsys, "notifications", "--state", state, "--friends", "off")
    assert code == 0
    assert "friends=off" in out

    _, out, _ = _run(capsys, "notifications", "--state", state)
    assert "friends=off" in out
    assert "enabled=on" in out
