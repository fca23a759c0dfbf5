"""POI visit detection."""

from __future__ import annotations

import logging
from typing import Iterable

from campus_explorer.geo import is_inside_circle
from campus_explorer.models import Coordinate, PointOfInterest
from campus_explorer.timeutils import Clock

logger = logging.getLogger(__name__)


class POIVisitDetector:
    """Marks POIs within ``visit_radius_m`` of a fix as visited.

    Every qualifying fix increments ``visit_count``, including repeated fixes
    while standing still inside the radius: dwell time accumulates. There is no
    transition back to "not visited".
    """

    def __init__(self, clock: Clock, visit_radius_m: float = 30.0) -> None:
        self._clock = clock
        self.visit_radius_m = visit_radius_m

    def check_visits(self, coordinate: Coordinate, pois: Iterable[PointOfInterest]) -> list[PointOfInterest]:
        """Update visit state of every POI in range.

        Returns:
            The POIs visited by this fix (in registry order).
        """

        now = self._clock()
        hits: list[PointOfInterest] = []
        for poi in pois:
            if not is_inside_circle(
                coordinate.latitude,
                coordinate.longitude,
                poi.coordinate.latitude,
                poi.coordinate.longitude,
                self.visit_radius_m,
            ):
                continue
            if not poi.is_visited:
                poi.is_visited = True
                logger.info("首次到访：%s", poi.name)
            poi.visit_count += 1
            poi.last_visited = now
            hits.append(poi)
        return hits
