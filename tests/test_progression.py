from __future__ import annotations

from datetime import timedelta

import pytest

from campus_explorer.config import ExplorerConfig
from campus_explorer.errors import InvalidInputError
from campus_explorer.models import (
    AchievementCategory,
    ActivityType,
    Challenge,
    ChallengeKind,
    ChallengeMetric,
    infer_challenge_metric,
)
from campus_explorer.notifications import NotificationKind, Notifier
from campus_explorer.progression import (
    ACHIEVEMENTS_KEY,
    POINTS_KEY,
    ProgressionEngine,
    Telemetry,
    achievement_progress,
    challenge_progress,
)
from campus_explorer.store import JsonStateStore

from conftest import FakeClock


class RecordingSink:
    def __init__(self) -> None:
        self.sent: list[tuple[NotificationKind, str, str]] = []

    def notify(self, kind: NotificationKind, title: str, body: str) -> None:
        self.sent.append((kind, title, body))


class FailingSink:
    def notify(self, kind: NotificationKind, title: str, body: str) -> None:
        raise RuntimeError("device offline")


def _engine(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock, sink: object | None = None) -> ProgressionEngine:
    return ProgressionEngine(store, config, clock, notifier=Notifier(sink))


def test_achievement_unlocks_when_requirement_met(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)

    update = engine.update_progress(500, 0.0, 0, 0)
    first_steps = engine.get_achievement("steps_1k")
    assert first_steps is not None
    assert not first_steps.is_unlocked
    assert first_steps.progress == 500
    assert not update.changed

    update = engine.update_progress(1500, 0.0, 0, 0)
    assert [a.id for a in update.unlocked] == ["steps_1k"]
    assert first_steps.is_unlocked
    assert first_steps.unlocked_at == clock.now
    assert engine.total_points == 100
    assert engine.activity_feed[0].title == "Achievement Unlocked!"
    assert engine.activity_feed[0].description == "Unlocked 'First Steps' badge!"


def test_achievement_unlocks_at_most_once(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    for _ in range(5):
        engine.update_progress(1500, 0.0, 0, 0)

    assert engine.total_points == 100
    assert engine.unlocked_achievements_count == 1
    unlock_entries = [f for f in engine.activity_feed if f.type is ActivityType.ACHIEVEMENT]
    assert len(unlock_entries) == 1


def test_unlocked_achievement_stays_unlocked(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.update_progress(1500, 0.0, 0, 0)
    engine.update_progress(0, 0.0, 0, 0)

    achievement = engine.get_achievement("steps_1k")
    assert achievement is not None
    assert achievement.is_unlocked
    assert achievement.progress == 0
    assert engine.total_points == 100


def test_challenge_completion_counts_toward_achievements(
    store: JsonStateStore, config: ExplorerConfig, clock: FakeClock
) -> None:
    engine = _engine(store, config, clock)
    engine.generate_daily_challenges()

    update = engine.update_progress(5000, 0.0, 0, 0)
    assert [c.title for c in update.completed] == ["Daily Walker"]
    assert {a.id for a in update.unlocked} == {"steps_1k", "steps_5k", "challenge_1"}
    assert engine.total_points == 50 + 3 * 100

    engine.update_progress(5000, 0.0, 0, 0)
    assert engine.total_points == 350
    assert engine.completed_challenges_count == 1


def test_expired_challenge_does_not_progress(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.generate_daily_challenges()
    walker = next(c for c in engine.challenges if c.title == "Daily Walker")

    clock.advance(days=1)
    engine.update_progress(6000, 0.0, 0, 0)
    assert walker.progress == 0
    assert not walker.is_completed
    assert walker not in engine.active_challenges()


def test_distance_and_spots_challenges(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.generate_daily_challenges()

    update = engine.update_progress(0, 2500.0, 60, 0)
    assert {c.title for c in update.completed} == {"Distance Goal", "Explorer"}
    spots = next(c for c in engine.challenges if c.title == "Explorer")
    assert spots.progress == 6


def test_progress_extraction() -> None:
    t = Telemetry(steps=1200, distance_m=3456.7, path_point_count=95, friend_count=2)
    kw = {"current_streak": 4, "completed_challenges": 3, "spots_per_path_points": 10}
    assert achievement_progress(AchievementCategory.STEPS, t, **kw) == 1200
    assert achievement_progress(AchievementCategory.DISTANCE, t, **kw) == 3456
    assert achievement_progress(AchievementCategory.STREAK, t, **kw) == 4
    assert achievement_progress(AchievementCategory.FRIENDS, t, **kw) == 2
    assert achievement_progress(AchievementCategory.EXPLORATION, t, **kw) == 9
    assert achievement_progress(AchievementCategory.CHALLENGES, t, **kw) == 3
    assert challenge_progress(ChallengeMetric.SPOTS, t, spots_per_path_points=10) == 9


def test_first_streak_check(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    assert engine.check_streak() == 1
    assert engine.streak.longest == 1
    assert engine.streak.last_active_date == clock.now.date()
    assert engine.streak.history == [clock.now.date()]


def test_streak_same_day_is_noop(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.check_streak()
    clock.advance(hours=5)
    assert engine.check_streak() == 1
    assert engine.streak.history == [clock.now.date()]
    assert engine.activity_feed == []


def test_streak_extends_after_yesterday(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    sink = RecordingSink()
    engine = _engine(store, config, clock, sink)
    today = clock.now.date()
    engine.streak.current = 4
    engine.streak.longest = 4
    engine.streak.last_active_date = today - timedelta(days=1)

    assert engine.check_streak() == 5
    assert engine.streak.longest == 5
    assert engine.streak.last_active_date == today
    assert engine.activity_feed[0].type is ActivityType.STREAK
    assert engine.activity_feed[0].description == "🔥 5 day streak!"
    assert sink.sent[0][0] is NotificationKind.STREAK


def test_streak_longest_is_kept(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.streak.current = 2
    engine.streak.longest = 10
    engine.streak.last_active_date = clock.now.date() - timedelta(days=1)
    assert engine.check_streak() == 3
    assert engine.streak.longest == 10


def test_streak_resets_after_gap(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    sink = RecordingSink()
    engine = _engine(store, config, clock, sink)
    today = clock.now.date()
    engine.streak.current = 6
    engine.streak.longest = 6
    engine.streak.last_active_date = today - timedelta(days=3)

    assert engine.check_streak() == 1
    assert engine.streak.longest == 6
    assert engine.streak.history == [today]
    assert [s[0] for s in sink.sent] == [NotificationKind.STREAK_LOST]


def test_streak_uses_local_calendar_day(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.check_streak()
    clock.now = clock.now.replace(hour=23, minute=30)
    assert engine.check_streak() == 1
    # 00:30 local is the next day while UTC is still on the previous one
    clock.advance(hours=1)
    assert engine.check_streak() == 2


def test_streak_with_clock_moved_back(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.check_streak()
    clock.advance(days=-2)
    assert engine.check_streak() == 1
    assert engine.streak.last_active_date == (clock.now + timedelta(days=2)).date()


def test_feed_is_capped_newest_first(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    for i in range(60):
        engine.add_activity(ActivityType.SOCIAL, f"n{i}", "")

    assert len(engine.activity_feed) == 50
    assert engine.activity_feed[0].title == "n59"
    assert engine.activity_feed[-1].title == "n10"


def test_goal_milestone_once_per_day(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.update_goals(daily_steps=100)

    assert engine.update_progress(200, 0.0, 0, 0).milestones == ["daily_steps"]
    assert engine.update_progress(250, 0.0, 0, 0).milestones == []
    assert engine.daily_steps_progress == 1.0

    clock.advance(days=1)
    assert engine.update_progress(200, 0.0, 0, 0).milestones == ["daily_steps"]


def test_update_goals_rejects_non_positive(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    with pytest.raises(InvalidInputError):
        engine.update_goals(daily_steps=0)
    with pytest.raises(InvalidInputError):
        engine.update_goals(weekly_distance_m=-1.0)
    assert engine.goals.daily_steps == 10_000


def test_notification_preferences_and_failures(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    sink = RecordingSink()
    notifier = Notifier(sink)
    notifier.settings.achievements = False
    engine = ProgressionEngine(store, config, clock, notifier=notifier)
    engine.update_progress(1500, 0.0, 0, 0)
    assert sink.sent == []
    assert engine.total_points == 100

    failing = Notifier(FailingSink())
    assert failing.send(NotificationKind.ACHIEVEMENT, "x", "y") is False


def test_failing_sink_does_not_block_unlock(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock, FailingSink())
    update = engine.update_progress(1500, 0.0, 0, 0)
    assert [a.id for a in update.unlocked] == ["steps_1k"]


def test_state_survives_reload(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.check_streak()
    engine.generate_daily_challenges()
    engine.update_progress(5000, 0.0, 0, 0)
    store.flush()

    reloaded = _engine(JsonStateStore(store.path), config, clock)
    assert reloaded.total_points == engine.total_points
    assert reloaded.unlocked_achievements_count == engine.unlocked_achievements_count
    assert len(reloaded.challenges) == 5
    assert reloaded.streak.current == 1
    assert [f.title for f in reloaded.activity_feed] == [f.title for f in engine.activity_feed]

    # Reloaded state must not award the same transitions again.
    assert not reloaded.update_progress(5000, 0.0, 0, 0).changed


def test_unreadable_namespaces_fall_back(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    store.set(ACHIEVEMENTS_KEY, "garbage")
    store.set(POINTS_KEY, "x")
    engine = _engine(store, config, clock)
    assert len(engine.achievements) == 22
    assert engine.total_points == 0


def test_catalog_additions_are_merged(store: JsonStateStore, config: ExplorerConfig, clock: FakeClock) -> None:
    engine = _engine(store, config, clock)
    engine.update_progress(1500, 0.0, 0, 0)
    store.set(ACHIEVEMENTS_KEY, [a.to_dict() for a in engine.achievements[:3]])

    reloaded = _engine(store, config, clock)
    assert len(reloaded.achievements) == 22
    steps_1k = reloaded.get_achievement("steps_1k")
    assert steps_1k is not None and steps_1k.is_unlocked


def test_legacy_challenge_metric_is_inferred(clock: FakeClock) -> None:
    expires = (clock.now + timedelta(hours=3)).isoformat()
    legacy = {
        "id": "c1",
        "title": "Distance Goal",
        "description": "Walk 2 km today",
        "requirement": 2000,
        "kind": "daily",
        "reward_points": 50,
        "expires_at": expires,
    }
    assert Challenge.from_dict(legacy).metric is ChallengeMetric.DISTANCE

    assert infer_challenge_metric("Walk 5,000 steps today", ChallengeKind.DAILY) is ChallengeMetric.STEPS
    assert infer_challenge_metric("Walk 20 km this week", ChallengeKind.WEEKLY) is ChallengeMetric.DISTANCE
    assert infer_challenge_metric("Visit 5 new spots today", ChallengeKind.DAILY) is ChallengeMetric.SPOTS
    with pytest.raises(ValueError):
        infer_challenge_metric("Be nice", ChallengeKind.DAILY)
