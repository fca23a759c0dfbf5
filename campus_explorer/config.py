"""Tunable constants for tracking, exploration and rewards."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from campus_explorer.models import DEFAULT_TZ


@dataclass(frozen=True, slots=True)
class ExplorerConfig:
    """Configuration shared by all services.

    Attributes:
        tz_name: IANA timezone that defines calendar days (streaks, challenge expiry).
        campus_area_m2: Assumed campus area used as the coverage denominator.
        grid_scale: Degree multiplier applied before bucketing (10_000 ~ 11 m latitude).
        heat_cell_size_m: Cell size of the heat-map grid.
        fog_cell_size_m: Cell size of the fog-of-war grid.
        explored_radius_m: Radius of each revealed fog region.
        visit_radius_m: Distance within which a fix counts as a POI visit.
        min_separation_m: Minimum distance between consecutive path points.
        feed_limit: Max number of activity feed entries kept.
        unlock_bonus_points: Points awarded per unlocked achievement.
        spots_per_path_points: Path points per "unique spot" estimate.
        week_start: First weekday of a challenge week (0 = Monday).
    """

    tz_name: str = DEFAULT_TZ
    campus_area_m2: float = 1_000_000.0
    grid_scale: int = 10_000
    heat_cell_size_m: float = 20.0
    fog_cell_size_m: float = 20.0
    explored_radius_m: float = 50.0
    visit_radius_m: float = 30.0
    min_separation_m: float = 3.0
    feed_limit: int = 50
    unlock_bonus_points: int = 100
    spots_per_path_points: int = 10
    week_start: int = 0

    def __post_init__(self) -> None:
        if self.campus_area_m2 <= 0:
            raise ValueError(f"campus_area_m2 必须为正数：{self.campus_area_m2!r}")
        if self.heat_cell_size_m <= 0 or self.fog_cell_size_m <= 0:
            raise ValueError("网格尺寸必须为正数")
        if self.feed_limit < 1:
            raise ValueError(f"feed_limit 至少为 1：{self.feed_limit!r}")
        if self.spots_per_path_points < 1:
            raise ValueError(f"spots_per_path_points 至少为 1：{self.spots_per_path_points!r}")
        if not 0 <= self.week_start <= 6:
            raise ValueError(f"week_start 取值 0-6：{self.week_start!r}")

    def with_overrides(self, **overrides: Any) -> ExplorerConfig:
        """Return a copy with the non-None overrides applied (CLI flags)."""

        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
