"""Notification sink interface and preference gating.

Delivery is outside this package. The engine only calls :class:`Notifier`,
which applies the user's preferences and never lets a sink failure escape.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"
    STREAK = "streak"
    STREAK_LOST = "streak_lost"
    MILESTONE = "milestone"
    SOCIAL = "social"


class NotificationSink(Protocol):
    def notify(self, kind: NotificationKind, title: str, body: str) -> None: ...


@dataclass(slots=True)
class NotificationSettings:
    """Per-category switches; ``enabled`` is the master switch."""

    enabled: bool = True
    achievements: bool = True
    challenges: bool = True
    reminders: bool = True
    friends: bool = True

    def allows(self, kind: NotificationKind) -> bool:
        if not self.enabled:
            return False
        if kind is NotificationKind.ACHIEVEMENT:
            return self.achievements
        if kind in (NotificationKind.CHALLENGE, NotificationKind.MILESTONE):
            return self.challenges
        if kind in (NotificationKind.STREAK, NotificationKind.STREAK_LOST):
            return self.reminders
        return self.friends

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "achievements": self.achievements,
            "challenges": self.challenges,
            "reminders": self.reminders,
            "friends": self.friends,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationSettings:
        return cls(**{k: bool(data[k]) for k in ("enabled", "achievements", "challenges", "reminders", "friends") if k in data})


class LoggingNotificationSink:
    """Writes notifications to the log instead of a device."""

    def notify(self, kind: NotificationKind, title: str, body: str) -> None:
        logger.info("[通知:%s] %s - %s", kind.value, title, body)


class Notifier:
    """Gate + fire-and-forget wrapper around a sink."""

    def __init__(self, sink: NotificationSink | None = None, settings: NotificationSettings | None = None) -> None:
        self._sink = sink or LoggingNotificationSink()
        self.settings = settings or NotificationSettings()

    def send(self, kind: NotificationKind, title: str, body: str) -> bool:
        """Deliver if allowed. Returns whether the sink accepted it."""

        if not self.settings.allows(kind):
            return False
        try:
            self._sink.notify(kind, title, body)
        except Exception:
            logger.warning("通知发送失败：%s", title, exc_info=True)
            return False
        return True
