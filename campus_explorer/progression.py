"""Achievement, challenge, streak and activity-feed state machine.

State transitions:
    - Achievement: ``locked -> unlocked`` (terminal).
    - Challenge: ``active -> completed`` or ``active -> expired`` (both terminal).

Progress is recomputed from live telemetry on every :meth:`ProgressionEngine.update_progress`
call; unlocks and completions fire only on the edge (flag not yet set and
requirement now met), so replaying the same telemetry any number of times
awards points once.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Final, Sequence, TypeVar

from campus_explorer.catalog import default_achievements
from campus_explorer.challenges import ChallengeScheduler
from campus_explorer.config import ExplorerConfig
from campus_explorer.errors import InvalidInputError
from campus_explorer.models import (
    Achievement,
    AchievementCategory,
    ActivityFeedItem,
    ActivityType,
    Challenge,
    ChallengeMetric,
    Goal,
    StreakData,
)
from campus_explorer.notifications import NotificationKind, Notifier
from campus_explorer.store import JsonStateStore
from campus_explorer.timeutils import Clock, days_between, local_date, tzinfo_from_name

logger = logging.getLogger(__name__)

ACHIEVEMENTS_KEY: Final[str] = "achievements"
CHALLENGES_KEY: Final[str] = "challenges"
STREAK_KEY: Final[str] = "streak"
GOALS_KEY: Final[str] = "goals"
POINTS_KEY: Final[str] = "points"
FEED_KEY: Final[str] = "feed"
GOAL_MILESTONES_KEY: Final[str] = "goal_milestones"

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Telemetry:
    """Aggregated movement values fed into the engine."""

    steps: int
    distance_m: float
    path_point_count: int
    friend_count: int

    def spots(self, per_path_points: int) -> int:
        """Approximate number of unique spots visited."""

        return self.path_point_count // per_path_points


@dataclass(slots=True)
class ProgressUpdate:
    """Transitions produced by one :meth:`ProgressionEngine.update_progress` call."""

    unlocked: list[Achievement] = field(default_factory=list)
    completed: list[Challenge] = field(default_factory=list)
    milestones: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.unlocked or self.completed or self.milestones)


def achievement_progress(
    category: AchievementCategory,
    telemetry: Telemetry,
    *,
    current_streak: int,
    completed_challenges: int,
    spots_per_path_points: int,
) -> int:
    """Metric that drives an achievement category."""

    if category is AchievementCategory.STEPS:
        return telemetry.steps
    if category is AchievementCategory.DISTANCE:
        return int(telemetry.distance_m)
    if category is AchievementCategory.STREAK:
        return current_streak
    if category is AchievementCategory.FRIENDS:
        return telemetry.friend_count
    if category is AchievementCategory.EXPLORATION:
        return telemetry.spots(spots_per_path_points)
    if category is AchievementCategory.CHALLENGES:
        return completed_challenges
    raise ValueError(f"未知成就类别：{category!r}")


def challenge_progress(metric: ChallengeMetric, telemetry: Telemetry, *, spots_per_path_points: int) -> int:
    """Metric that drives a challenge."""

    if metric is ChallengeMetric.STEPS:
        return telemetry.steps
    if metric is ChallengeMetric.DISTANCE:
        return int(telemetry.distance_m)
    if metric is ChallengeMetric.SPOTS:
        return telemetry.spots(spots_per_path_points)
    raise ValueError(f"未知挑战指标：{metric!r}")


class ProgressionEngine:
    """Owns achievements, challenges, streak, goals, points and the feed."""

    def __init__(
        self,
        store: JsonStateStore,
        config: ExplorerConfig,
        clock: Clock,
        notifier: Notifier | None = None,
        scheduler: ChallengeScheduler | None = None,
        autosave: bool = True,
    ) -> None:
        self._store = store
        self._cfg = config
        self._clock = clock
        self._tz = tzinfo_from_name(config.tz_name)
        self._notifier = notifier or Notifier()
        self._scheduler = scheduler or ChallengeScheduler(self._tz, week_start=config.week_start)
        self._autosave = autosave

        self.achievements: list[Achievement] = default_achievements()
        self.challenges: list[Challenge] = []
        self.streak = StreakData()
        self.goals = Goal()
        self.total_points = 0
        self.activity_feed: list[ActivityFeedItem] = []
        self.today_steps = 0
        self.today_distance_m = 0.0
        # goal name -> last calendar day it was reached
        self._goal_milestones: dict[str, date] = {}

        self.load()

    # ---- progress -------------------------------------------------------

    def update_progress(
        self,
        steps: int,
        distance_m: float,
        path_point_count: int,
        friend_count: int,
    ) -> ProgressUpdate:
        """Recompute progress from telemetry and fire any new transitions."""

        telemetry = Telemetry(
            steps=max(0, int(steps)),
            distance_m=max(0.0, float(distance_m)),
            path_point_count=max(0, int(path_point_count)),
            friend_count=max(0, int(friend_count)),
        )
        self.today_steps = telemetry.steps
        self.today_distance_m = telemetry.distance_m

        update = ProgressUpdate()
        self._update_challenges(telemetry, update)
        self._update_achievements(telemetry, update)
        self._check_goal_milestones(telemetry, update)

        if self._autosave:
            self.save()
        return update

    def _update_challenges(self, telemetry: Telemetry, update: ProgressUpdate) -> None:
        now = self._clock()
        for challenge in self.challenges:
            if challenge.is_completed or challenge.is_expired(now):
                continue
            challenge.progress = challenge_progress(
                challenge.metric, telemetry, spots_per_path_points=self._cfg.spots_per_path_points
            )
            if challenge.progress < challenge.requirement:
                continue

            challenge.is_completed = True
            self.total_points += challenge.reward_points
            update.completed.append(challenge)
            logger.info("挑战完成：%s（+%s 分）", challenge.title, challenge.reward_points)
            self.add_activity(
                ActivityType.CHALLENGE,
                "Challenge Completed!",
                f"Completed '{challenge.title}' challenge!",
                _save=False,
            )
            self._notifier.send(
                NotificationKind.CHALLENGE,
                challenge.title,
                f"Challenge completed! +{challenge.reward_points} points",
            )

    def _update_achievements(self, telemetry: Telemetry, update: ProgressUpdate) -> None:
        completed = self.completed_challenges_count
        for achievement in self.achievements:
            achievement.progress = achievement_progress(
                achievement.category,
                telemetry,
                current_streak=self.streak.current,
                completed_challenges=completed,
                spots_per_path_points=self._cfg.spots_per_path_points,
            )
            if achievement.is_unlocked or achievement.progress < achievement.requirement:
                continue

            achievement.is_unlocked = True
            achievement.unlocked_at = self._clock()
            self.total_points += self._cfg.unlock_bonus_points
            update.unlocked.append(achievement)
            logger.info("解锁成就：%s（+%s 分）", achievement.title, self._cfg.unlock_bonus_points)
            self.add_activity(
                ActivityType.ACHIEVEMENT,
                "Achievement Unlocked!",
                f"Unlocked '{achievement.title}' badge!",
                _save=False,
            )
            self._notifier.send(NotificationKind.ACHIEVEMENT, achievement.title, achievement.description)

    def _check_goal_milestones(self, telemetry: Telemetry, update: ProgressUpdate) -> None:
        today = local_date(self._clock(), self._tz)
        reached = (
            ("daily_steps", "steps", telemetry.steps >= self.goals.daily_steps),
            ("daily_distance", "distance", telemetry.distance_m >= self.goals.daily_distance_m),
        )
        for goal_name, label, ok in reached:
            if not ok or self._goal_milestones.get(goal_name) == today:
                continue
            self._goal_milestones[goal_name] = today
            update.milestones.append(goal_name)
            self.add_activity(
                ActivityType.MILESTONE,
                "Goal Completed!",
                f"Reached your daily {label} goal!",
                _save=False,
            )
            self._notifier.send(
                NotificationKind.MILESTONE, "Goal Completed!", f"You've reached your {label} goal for today!"
            )

    # ---- streak ---------------------------------------------------------

    def check_streak(self) -> int:
        """Apply the daily continuity rule for today.

        Meant to run once per app/session start. Calling it again on the same
        calendar day changes nothing.

        Returns:
            The current streak.
        """

        today = local_date(self._clock(), self._tz)
        streak = self.streak
        last = streak.last_active_date

        if last is None:
            streak.current = 1
            streak.longest = max(streak.longest, 1)
            streak.history = [today]
            logger.info("开始连续打卡")
        else:
            diff = days_between(last, today)
            if diff == 1:
                streak.current += 1
                if streak.current > streak.longest:
                    streak.longest = streak.current
                streak.history.append(today)
                logger.info("连续打卡 %s 天", streak.current)
                self.add_activity(
                    ActivityType.STREAK,
                    "Streak Extended!",
                    f"🔥 {streak.current} day streak!",
                    _save=False,
                )
                self._notifier.send(NotificationKind.STREAK, "Streak Extended!", f"{streak.current} day streak!")
            elif diff > 1:
                previous = streak.current
                streak.current = 1
                streak.history = [today]
                logger.info("连续打卡中断（之前 %s 天）", previous)
                if previous > 1:
                    self._notifier.send(
                        NotificationKind.STREAK_LOST,
                        "Streak Lost",
                        f"Your {previous}-day streak ended. Start a new one today!",
                    )
            elif diff < 0:
                # Clock moved backwards: keep the stored day.
                logger.warning("系统日期早于上次活跃日期：%s < %s", today, last)
                return streak.current
            else:
                return streak.current

        streak.last_active_date = today
        if self._autosave:
            self.save()
        return streak.current

    # ---- challenges -----------------------------------------------------

    def generate_daily_challenges(self) -> list[Challenge]:
        """Purge expired challenges and create missing daily/weekly ones."""

        self.challenges = self._scheduler.generate(self.challenges, self._clock())
        if self._autosave:
            self.save()
        return self.challenges

    def active_challenges(self) -> list[Challenge]:
        now = self._clock()
        return [c for c in self.challenges if not c.is_completed and not c.is_expired(now)]

    # ---- feed -----------------------------------------------------------

    def add_activity(
        self,
        type: ActivityType,
        title: str,
        description: str,
        user_id: str = "me",
        username: str = "You",
        _save: bool = True,
    ) -> ActivityFeedItem:
        """Insert at the head of the feed and drop entries beyond the limit."""

        item = ActivityFeedItem(
            id=str(uuid.uuid4()),
            user_id=user_id,
            username=username,
            type=type,
            title=title,
            description=description,
            timestamp=self._clock(),
        )
        self.activity_feed.insert(0, item)
        del self.activity_feed[self._cfg.feed_limit :]
        if _save and self._autosave:
            self.save()
        return item

    # ---- goals ----------------------------------------------------------

    def update_goals(
        self,
        daily_steps: int | None = None,
        daily_distance_m: float | None = None,
        weekly_steps: int | None = None,
        weekly_distance_m: float | None = None,
    ) -> Goal:
        """Change any subset of the goals.

        Raises:
            InvalidInputError: If a provided value is not positive.
        """

        values = {
            "daily_steps": daily_steps,
            "daily_distance_m": daily_distance_m,
            "weekly_steps": weekly_steps,
            "weekly_distance_m": weekly_distance_m,
        }
        for name, value in values.items():
            if value is not None and value <= 0:
                raise InvalidInputError(f"目标必须为正数：{name}={value!r}")

        if daily_steps is not None:
            self.goals.daily_steps = int(daily_steps)
        if daily_distance_m is not None:
            self.goals.daily_distance_m = float(daily_distance_m)
        if weekly_steps is not None:
            self.goals.weekly_steps = int(weekly_steps)
        if weekly_distance_m is not None:
            self.goals.weekly_distance_m = float(weekly_distance_m)
        if self._autosave:
            self.save()
        return self.goals

    @property
    def daily_steps_progress(self) -> float:
        return min(self.today_steps / self.goals.daily_steps, 1.0)

    @property
    def daily_distance_progress(self) -> float:
        return min(self.today_distance_m / self.goals.daily_distance_m, 1.0)

    # ---- statistics -----------------------------------------------------

    @property
    def unlocked_achievements_count(self) -> int:
        return sum(1 for a in self.achievements if a.is_unlocked)

    @property
    def completed_challenges_count(self) -> int:
        return sum(1 for c in self.challenges if c.is_completed)

    def get_achievement(self, achievement_id: str) -> Achievement | None:
        for a in self.achievements:
            if a.id == achievement_id:
                return a
        return None

    # ---- persistence ----------------------------------------------------

    def save(self) -> None:
        self._store.set(ACHIEVEMENTS_KEY, [a.to_dict() for a in self.achievements])
        self._store.set(CHALLENGES_KEY, [c.to_dict() for c in self.challenges])
        self._store.set(STREAK_KEY, self.streak.to_dict())
        self._store.set(GOALS_KEY, self.goals.to_dict())
        self._store.set(POINTS_KEY, self.total_points)
        self._store.set(FEED_KEY, [f.to_dict() for f in self.activity_feed])
        self._store.set(GOAL_MILESTONES_KEY, {k: v.isoformat() for k, v in self._goal_milestones.items()})

    def load(self) -> None:
        """Best-effort load; every namespace falls back to its default on error."""

        stored = _load(self._store, ACHIEVEMENTS_KEY, lambda raw: [Achievement.from_dict(d) for d in raw])
        if stored:
            self.achievements = _merge_with_catalog(stored, default_achievements())

        self.challenges = _load(self._store, CHALLENGES_KEY, lambda raw: [Challenge.from_dict(d) for d in raw]) or []
        self.streak = _load(self._store, STREAK_KEY, StreakData.from_dict) or StreakData()
        self.goals = _load(self._store, GOALS_KEY, Goal.from_dict) or Goal()
        self.total_points = _load(self._store, POINTS_KEY, int) or 0
        feed = _load(self._store, FEED_KEY, lambda raw: [ActivityFeedItem.from_dict(d) for d in raw]) or []
        self.activity_feed = feed[: self._cfg.feed_limit]
        self._goal_milestones = (
            _load(
                self._store,
                GOAL_MILESTONES_KEY,
                lambda raw: {str(k): date.fromisoformat(v) for k, v in raw.items()},
            )
            or {}
        )


def _load(store: JsonStateStore, key: str, decode: Callable[[Any], T]) -> T | None:
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return decode(raw)
    except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
        logger.warning("%s 数据无法解析，使用默认值：%s", key, exc)
        return None


def _merge_with_catalog(stored: Sequence[Achievement], catalog: Sequence[Achievement]) -> list[Achievement]:
    """Keep stored state; append catalog entries the snapshot does not know yet."""

    merged = list(stored)
    known = {a.id for a in stored}
    merged.extend(a for a in catalog if a.id not in known)
    return merged
