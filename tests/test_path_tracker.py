from __future__ import annotations

import pytest

from campus_explorer.geo import distance_m
from campus_explorer.models import Coordinate
from campus_explorer.path_tracker import PATH_KEY, PathTracker
from campus_explorer.store import JsonStateStore

P1 = Coordinate(16.4350, 80.5104)
P2 = Coordinate(16.4351, 80.5105)


def test_first_fix_is_accepted_without_distance(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    assert tracker.ingest(P1)
    assert tracker.point_count == 1
    assert tracker.total_distance_m == 0.0
    assert tracker.last_point == P1


def test_two_fixes_add_haversine_distance(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    tracker.ingest(P1)
    tracker.ingest(P2)
    assert tracker.point_count == 2
    assert tracker.total_distance_m == pytest.approx(distance_m(P1, P2))


def test_duplicate_and_near_fixes_are_dropped(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    tracker.ingest(P1)
    assert not tracker.ingest(P1)
    # ~1.1 m north of P1
    assert not tracker.ingest(Coordinate(16.43501, 80.5104))
    assert tracker.point_count == 1
    assert tracker.total_distance_m == 0.0


def test_consecutive_points_keep_minimum_separation(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    fixes = [Coordinate(16.4350 + i * 0.00001, 80.5104) for i in range(40)]
    accepted = tracker.ingest_many(fixes)

    pts = tracker.points
    assert accepted == len(pts)
    assert all(distance_m(a, b) >= 3.0 for a, b in zip(pts, pts[1:]))


def test_distance_never_decreases(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    last = 0.0
    for i in range(20):
        tracker.ingest(Coordinate(16.4350 + (i % 3) * 0.0001, 80.5104 + i * 0.00002))
        assert tracker.total_distance_m >= last
        last = tracker.total_distance_m


def test_invalid_fix_is_rejected(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    assert not tracker.ingest(Coordinate(float("nan"), 80.5))
    assert not tracker.ingest(Coordinate(95.0, 80.5))
    assert tracker.point_count == 0


def test_reset_clears_path(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    tracker.ingest_many([P1, P2])
    tracker.reset()
    assert tracker.point_count == 0
    assert tracker.total_distance_m == 0.0
    assert tracker.last_point is None


def test_reload_derives_distance_from_points(store: JsonStateStore) -> None:
    tracker = PathTracker(store)
    tracker.ingest_many([P1, P2])

    store.set(PATH_KEY, {"points": [P1.to_list(), P2.to_list()], "total_distance_m": 999.0})
    reloaded = PathTracker(store)
    assert reloaded.points == (P1, P2)
    assert reloaded.total_distance_m == pytest.approx(distance_m(P1, P2))


def test_unreadable_path_falls_back_to_empty(store: JsonStateStore) -> None:
    store.set(PATH_KEY, {"points": "oops"})
    tracker = PathTracker(store)
    assert tracker.point_count == 0
