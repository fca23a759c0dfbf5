"""Single-writer facade wiring all services together.

Platform callbacks (location fixes, step counts, button presses) may arrive on
any thread. :class:`ExplorerSession` serialises them behind one re-entrant
lock, runs each event to completion and persists once per event.
"""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Final, Iterable

from campus_explorer.config import ExplorerConfig
from campus_explorer.errors import InvalidInputError
from campus_explorer.exploration import ExplorationTracker
from campus_explorer.friends import FriendRegistry, default_username
from campus_explorer.models import ActivityType, Coordinate, Goal, POICategory, PointOfInterest
from campus_explorer.notifications import NotificationKind, NotificationSettings, Notifier, NotificationSink
from campus_explorer.path_tracker import PathTracker
from campus_explorer.progression import ProgressionEngine, ProgressUpdate, Telemetry
from campus_explorer.steps import DEFAULT_SOURCE, StepCounter
from campus_explorer.store import JsonStateStore
from campus_explorer.timeutils import Clock, system_clock

logger = logging.getLogger(__name__)

NOTIFICATION_SETTINGS_KEY: Final[str] = "notification_settings"


@dataclass(slots=True)
class FixResult:
    """Outcome of one location fix."""

    accepted: bool
    visited: list[PointOfInterest] = field(default_factory=list)
    update: ProgressUpdate = field(default_factory=ProgressUpdate)


@dataclass(slots=True)
class ReplaySummary:
    """Totals of a batch of fixes fed through :meth:`ExplorerSession.replay`."""

    fixes: int = 0
    accepted: int = 0
    poi_visits: int = 0
    update: ProgressUpdate = field(default_factory=ProgressUpdate)


class ExplorerSession:
    """Owns one instance of every service and routes events between them.

    Args:
        store: State store shared by all services (each uses its own keys).
        config: Tunables; defaults to :class:`ExplorerConfig`.
        clock: Returns "now"; defaults to the wall clock in ``config.tz_name``.
        sink: Notification sink; defaults to logging.
        rng: Random source for the friend code.
    """

    def __init__(
        self,
        store: JsonStateStore,
        config: ExplorerConfig | None = None,
        clock: Clock | None = None,
        sink: NotificationSink | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config or ExplorerConfig()
        self.store = store
        self.clock = clock or system_clock(self.config.tz_name)
        self._lock = threading.RLock()

        self.notifier = Notifier(sink, self._load_notification_settings())
        self.path = PathTracker(store, min_separation_m=self.config.min_separation_m, autosave=False)
        self.steps = StepCounter(store, autosave=False)
        self.exploration = ExplorationTracker(store, self.config, self.clock, autosave=False)
        self.friends = FriendRegistry(store, rng=rng, autosave=False)
        self.progression = ProgressionEngine(store, self.config, self.clock, notifier=self.notifier, autosave=False)

    # ---- lifecycle ------------------------------------------------------

    def start(self) -> ProgressUpdate:
        """App/session start: streak check, challenge refresh, progress refresh."""

        with self._lock:
            streak = self.progression.check_streak()
            self.progression.generate_daily_challenges()
            update = self._refresh()
            self._persist()
            logger.info("会话开始：连续 %s 天，进行中挑战 %s 个", streak, len(self.progression.active_challenges()))
            return update

    def telemetry(self) -> Telemetry:
        return Telemetry(
            steps=self.steps.count,
            distance_m=self.path.total_distance_m,
            path_point_count=self.path.point_count,
            friend_count=self.friends.friend_count,
        )

    def refresh_progress(self) -> ProgressUpdate:
        with self._lock:
            update = self._refresh()
            self._persist()
            return update

    # ---- movement -------------------------------------------------------

    def record_fix(self, coordinate: Coordinate) -> FixResult:
        """Feed one location fix to path, exploration and progression."""

        with self._lock:
            result = self._apply_fix(coordinate)
            self._persist()
            return result

    def replay(self, fixes: Iterable[Coordinate]) -> ReplaySummary:
        """Feed many fixes as one event (single persist at the end)."""

        summary = ReplaySummary()
        with self._lock:
            for fix in fixes:
                result = self._apply_fix(fix)
                summary.fixes += 1
                summary.accepted += int(result.accepted)
                summary.poi_visits += len(result.visited)
                summary.update.unlocked.extend(result.update.unlocked)
                summary.update.completed.extend(result.update.completed)
                summary.update.milestones.extend(result.update.milestones)
            self._persist()
        return summary

    def record_steps(self, count: int, source: str = DEFAULT_SOURCE) -> ProgressUpdate:
        with self._lock:
            self.steps.update(count, source)
            update = self._refresh()
            self._persist()
            return update

    def reset_path(self) -> None:
        """Clear the path, distance and step count."""

        with self._lock:
            self.path.reset()
            self.steps.reset()
            self._persist()

    def reset_exploration(self) -> None:
        with self._lock:
            self.exploration.reset_exploration()
            self._persist()

    # ---- POIs -----------------------------------------------------------

    def add_custom_poi(
        self,
        name: str,
        coordinate: Coordinate,
        category: POICategory = POICategory.CUSTOM,
        notes: str = "",
    ) -> PointOfInterest:
        with self._lock:
            poi = self.exploration.add_custom_poi(name, coordinate, category=category, notes=notes)
            self._persist()
            return poi

    def remove_poi(self, poi_id: str) -> PointOfInterest:
        with self._lock:
            poi = self.exploration.remove_poi(poi_id)
            self._persist()
            return poi

    # ---- social ---------------------------------------------------------

    def connect_friend(self, friend_code: str) -> ProgressUpdate:
        with self._lock:
            code = self.friends.connect(friend_code)
            name = default_username(code)
            self.progression.add_activity(ActivityType.SOCIAL, "New Friend", f"Connected with {name}")
            self.notifier.send(NotificationKind.SOCIAL, "New Friend", f"You are now connected with {name}")
            update = self._refresh()
            self._persist()
            return update

    def remove_friend(self, friend_code: str) -> bool:
        with self._lock:
            removed = self.friends.remove(friend_code)
            if removed:
                self._refresh()
                self._persist()
            return removed

    # ---- settings -------------------------------------------------------

    def update_goals(self, **goals: float | int | None) -> Goal:
        with self._lock:
            result = self.progression.update_goals(**goals)
            self._persist()
            return result

    def update_notification_settings(self, **flags: bool | None) -> NotificationSettings:
        """Change any subset of the notification switches.

        Raises:
            InvalidInputError: If a flag name is not a notification setting.
        """

        with self._lock:
            settings = self.notifier.settings
            known = settings.to_dict()
            unknown = sorted(name for name in flags if name not in known)
            if unknown:
                raise InvalidInputError(f"未知通知设置：{', '.join(unknown)}（可选：{', '.join(known)}）")
            for name, value in flags.items():
                if value is not None:
                    setattr(settings, name, bool(value))
            self._persist()
            return settings

    # ---- internals ------------------------------------------------------

    def _apply_fix(self, coordinate: Coordinate) -> FixResult:
        accepted = self.path.ingest(coordinate)
        visited = self.exploration.track_location(coordinate)
        update = self._refresh()
        return FixResult(accepted=accepted, visited=visited, update=update)

    def _refresh(self) -> ProgressUpdate:
        t = self.telemetry()
        return self.progression.update_progress(t.steps, t.distance_m, t.path_point_count, t.friend_count)

    def _persist(self) -> None:
        """Write every service snapshot, then compact the store once.

        The event has already been applied in memory, so a disk failure is
        logged and the next event retries the flush.
        """

        self.path.save()
        self.steps.save()
        self.exploration.save()
        self.friends.save()
        self.progression.save()
        self.store.set(NOTIFICATION_SETTINGS_KEY, self.notifier.settings.to_dict())
        try:
            self.store.flush()
        except OSError as exc:
            logger.warning("状态保存失败，稍后重试：%s（%s）", self.store.path, exc)

    def _load_notification_settings(self) -> NotificationSettings:
        raw = self.store.get(NOTIFICATION_SETTINGS_KEY)
        if raw is None:
            return NotificationSettings()
        try:
            return NotificationSettings.from_dict(raw)
        except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
            logger.warning("通知设置无法解析，使用默认值：%s", exc)
            return NotificationSettings()
