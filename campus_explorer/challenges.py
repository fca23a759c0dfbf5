"""Daily and weekly challenge generation."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Iterable, Sequence

from campus_explorer.catalog import DAILY_CHALLENGES, WEEKLY_CHALLENGES, ChallengeTemplate
from campus_explorer.models import Challenge, ChallengeKind
from campus_explorer.timeutils import end_of_week, start_of_next_day

logger = logging.getLogger(__name__)


class ChallengeScheduler:
    """Refreshes the set of time-boxed challenges.

    Daily instances expire at the next local midnight, weekly instances at the
    start of the following week. A kind is covered while any challenge of that
    kind has not expired yet, completed or not, so calling :meth:`generate`
    repeatedly within a day/week adds nothing, even if the calendar timezone
    changed between calls.
    """

    def __init__(
        self,
        tz: tzinfo,
        week_start: int = 0,
        daily_templates: Sequence[ChallengeTemplate] = DAILY_CHALLENGES,
        weekly_templates: Sequence[ChallengeTemplate] = WEEKLY_CHALLENGES,
    ) -> None:
        self._tz = tz
        self._week_start = week_start
        self._daily = tuple(daily_templates)
        self._weekly = tuple(weekly_templates)

    def generate(self, challenges: Iterable[Challenge], now: datetime) -> list[Challenge]:
        """Return the refreshed challenge list.

        Expired challenges that were not completed are dropped; completed ones
        are kept for history.
        """

        existing = list(challenges)
        kept = [c for c in existing if c.is_completed or not c.is_expired(now)]
        if len(kept) < len(existing):
            logger.info("已清理过期挑战 %s 个", len(existing) - len(kept))

        day_end = start_of_next_day(now, self._tz)
        if not _has_unexpired(kept, ChallengeKind.DAILY, now):
            kept.extend(t.instantiate(day_end) for t in self._daily)
            logger.info("生成每日挑战 %s 个，截止 %s", len(self._daily), day_end.isoformat())

        week_end = end_of_week(now, self._tz, self._week_start)
        if not _has_unexpired(kept, ChallengeKind.WEEKLY, now):
            kept.extend(t.instantiate(week_end) for t in self._weekly)
            logger.info("生成每周挑战 %s 个，截止 %s", len(self._weekly), week_end.isoformat())

        return kept


def _has_unexpired(challenges: Iterable[Challenge], kind: ChallengeKind, now: datetime) -> bool:
    return any(c.kind is kind and not c.is_expired(now) for c in challenges)
