"""Step count reported by the platform step source."""

from __future__ import annotations

import logging
from typing import Final

from campus_explorer.errors import InvalidInputError
from campus_explorer.store import JsonStateStore

logger = logging.getLogger(__name__)

STEPS_KEY: Final[str] = "steps"
DEFAULT_SOURCE: Final[str] = "Device"


class StepCounter:
    """Latest cumulative step count and where it came from.

    The step source reports a running total (e.g. pedometer since tracking
    started), so :meth:`update` replaces the count instead of adding to it.
    """

    def __init__(self, store: JsonStateStore, autosave: bool = True) -> None:
        self._store = store
        self._autosave = autosave
        self.count = 0
        self.source = DEFAULT_SOURCE
        self.load()

    def update(self, count: int, source: str = DEFAULT_SOURCE) -> int:
        """Replace the step count.

        Raises:
            InvalidInputError: If ``count`` is negative.
        """

        if count < 0:
            raise InvalidInputError(f"步数不能为负数：{count}")
        self.count = int(count)
        self.source = source.strip() or DEFAULT_SOURCE
        if self._autosave:
            self.save()
        return self.count

    def reset(self) -> None:
        self.count = 0
        self.source = DEFAULT_SOURCE
        if self._autosave:
            self.save()

    def save(self) -> None:
        self._store.set(STEPS_KEY, {"count": self.count, "source": self.source})

    def load(self) -> None:
        raw = self._store.get(STEPS_KEY)
        if raw is None:
            return
        try:
            self.count = max(0, int(raw["count"]))
            self.source = str(raw.get("source") or DEFAULT_SOURCE)
        except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
            logger.warning("步数数据无法解析，已重置：%s", exc)
            self.count = 0
            self.source = DEFAULT_SOURCE
