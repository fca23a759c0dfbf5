"""Travelled path and distance accounting."""

from __future__ import annotations

import logging
from typing import Final, Iterable, Sequence

from campus_explorer.geo import distance_m, is_valid_coordinate, path_length_m
from campus_explorer.models import Coordinate
from campus_explorer.store import JsonStateStore

logger = logging.getLogger(__name__)

PATH_KEY: Final[str] = "path"


class PathTracker:
    """Owns the accepted path and its distance accumulator.

    A fix closer than ``min_separation_m`` to the last accepted point is
    dropped entirely: it is neither appended nor credited with distance. The
    accumulator therefore always equals the polyline length of the path, which
    is what :meth:`load` relies on when it derives distance from the stored
    points.
    """

    def __init__(
        self,
        store: JsonStateStore,
        min_separation_m: float = 3.0,
        autosave: bool = True,
    ) -> None:
        self._store = store
        self._min_separation_m = min_separation_m
        self._autosave = autosave
        self._points: list[Coordinate] = []
        self._total_distance_m = 0.0
        self.load()

    @property
    def points(self) -> Sequence[Coordinate]:
        return tuple(self._points)

    @property
    def point_count(self) -> int:
        return len(self._points)

    @property
    def total_distance_m(self) -> float:
        return self._total_distance_m

    @property
    def last_point(self) -> Coordinate | None:
        return self._points[-1] if self._points else None

    def ingest(self, fix: Coordinate) -> bool:
        """Append ``fix`` unless it is invalid or too close to the last point.

        Returns:
            True if the fix was accepted.
        """

        if not is_valid_coordinate(fix):
            logger.warning("忽略无效坐标：%s", fix)
            return False

        if self._points:
            step_m = distance_m(self._points[-1], fix)
            if step_m < self._min_separation_m:
                return False
            self._total_distance_m += step_m
        self._points.append(fix)

        if self._autosave:
            self.save()
        return True

    def ingest_many(self, fixes: Iterable[Coordinate]) -> int:
        """Ingest fixes in order; returns how many were accepted."""

        accepted = 0
        for fix in fixes:
            if self.ingest(fix):
                accepted += 1
        return accepted

    def reset(self) -> None:
        self._points = []
        self._total_distance_m = 0.0
        if self._autosave:
            self.save()

    def snapshot(self) -> dict[str, object]:
        return {
            "points": [p.to_list() for p in self._points],
            "total_distance_m": self._total_distance_m,
        }

    def save(self) -> None:
        self._store.set(PATH_KEY, self.snapshot())

    def load(self) -> None:
        """Load path from the store; falls back to an empty path."""

        raw = self._store.get(PATH_KEY)
        if raw is None:
            return
        try:
            points = [Coordinate.from_list(v) for v in raw["points"]]
            bad = [p for p in points if not is_valid_coordinate(p)]
            if bad:
                raise ValueError(f"invalid coordinates in stored path: {bad[:3]}")
        except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
            logger.warning("路径数据无法解析，已重置：%s", exc)
            self._points = []
            self._total_distance_m = 0.0
            return

        self._points = points
        self._total_distance_m = path_length_m(points)
        stored = raw.get("total_distance_m")
        if isinstance(stored, (int, float)) and abs(stored - self._total_distance_m) > 0.01:
            logger.warning(
                "路径距离与存储值不一致（%.2f != %.2f），以路径为准", stored, self._total_distance_m
            )
