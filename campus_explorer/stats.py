"""Summary statistics for the status command and the dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from campus_explorer.session import ExplorerSession

# Rough walking estimates.
CALORIES_PER_STEP: Final[float] = 0.04
STEPS_PER_ACTIVE_MINUTE: Final[int] = 100


@dataclass(frozen=True, slots=True)
class ExplorerStats:
    """Flat snapshot of the user's progress."""

    steps: int
    steps_source: str
    distance_m: float
    path_points: int
    exploration_percent: float
    explored_regions: int
    heat_cells: int
    visited_pois: int
    total_pois: int
    total_points: int
    unlocked_achievements: int
    total_achievements: int
    completed_challenges: int
    active_challenges: int
    current_streak: int
    longest_streak: int
    friends: int
    calories: int
    active_minutes: int
    daily_steps_progress: float
    daily_distance_progress: float


def summarize(session: ExplorerSession) -> ExplorerStats:
    """Collect stats from every service of ``session``."""

    progression = session.progression
    exploration = session.exploration
    steps = session.steps.count
    return ExplorerStats(
        steps=steps,
        steps_source=session.steps.source,
        distance_m=session.path.total_distance_m,
        path_points=session.path.point_count,
        exploration_percent=exploration.exploration_percentage,
        explored_regions=len(exploration.explored_regions),
        heat_cells=len(exploration.heat_points),
        visited_pois=exploration.visited_poi_count,
        total_pois=len(exploration.points_of_interest),
        total_points=progression.total_points,
        unlocked_achievements=progression.unlocked_achievements_count,
        total_achievements=len(progression.achievements),
        completed_challenges=progression.completed_challenges_count,
        active_challenges=len(progression.active_challenges()),
        current_streak=progression.streak.current,
        longest_streak=progression.streak.longest,
        friends=session.friends.friend_count,
        calories=estimate_calories(steps),
        active_minutes=estimate_active_minutes(steps),
        daily_steps_progress=min(steps / progression.goals.daily_steps, 1.0),
        daily_distance_progress=min(session.path.total_distance_m / progression.goals.daily_distance_m, 1.0),
    )


def estimate_calories(steps: int) -> int:
    return int(steps * CALORIES_PER_STEP)


def estimate_active_minutes(steps: int) -> int:
    return steps // STEPS_PER_ACTIVE_MINUTE


def format_distance(meters: float) -> str:
    """``"850 m"`` below one kilometer, ``"1.2 km"`` above."""

    if meters >= 1000:
        return f"{meters / 1000:.1f} km"
    return f"{meters:.0f} m"


def format_percent(ratio: float) -> str:
    return f"{ratio * 100:.0f}%"
