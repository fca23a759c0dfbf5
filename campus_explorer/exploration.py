"""Heat map, fog of war and the POI registry."""

from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Callable, Final, Sequence, TypeVar

from campus_explorer.catalog import default_pois
from campus_explorer.config import ExplorerConfig
from campus_explorer.errors import InvalidInputError
from campus_explorer.geo import cell_key, is_inside_circle, is_valid_coordinate
from campus_explorer.models import (
    CellKey,
    Coordinate,
    ExploredRegion,
    HeatMapPoint,
    POICategory,
    PointOfInterest,
)
from campus_explorer.store import JsonStateStore
from campus_explorer.timeutils import Clock
from campus_explorer.visits import POIVisitDetector

logger = logging.getLogger(__name__)

HEAT_POINTS_KEY: Final[str] = "heat_points"
EXPLORED_REGIONS_KEY: Final[str] = "explored_regions"
POIS_KEY: Final[str] = "pois"
VISITED_CELLS_KEY: Final[str] = "visited_cells"
EXPLORED_AREA_KEY: Final[str] = "explored_area"

T = TypeVar("T")


class ExplorationTracker:
    """Owns heat-map cells, explored regions and points of interest.

    Two grids are involved and they may use different cell sizes: the heat grid
    (``heat_cell_size_m``) counts visit intensity per cell, the fog grid
    (``fog_cell_size_m``) decides when a new explored region is created.

    Explored area grows by ``π·r²`` per new fog cell. Overlapping circles are
    counted twice, so :attr:`exploration_percentage` is an upper-bound
    heuristic rather than a true union area.
    """

    def __init__(
        self,
        store: JsonStateStore,
        config: ExplorerConfig,
        clock: Clock,
        detector: POIVisitDetector | None = None,
        autosave: bool = True,
    ) -> None:
        self._store = store
        self._cfg = config
        self._clock = clock
        self._detector = detector or POIVisitDetector(clock, visit_radius_m=config.visit_radius_m)
        self._autosave = autosave

        self._heat: dict[CellKey, HeatMapPoint] = {}
        self._regions: list[ExploredRegion] = []
        self._visited_cells: set[CellKey] = set()
        self._total_area_m2 = 0.0
        self._pois: list[PointOfInterest] = []

        self.load()
        if not self._pois:
            self._pois = default_pois()
            if self._autosave:
                self.save()

    @property
    def heat_points(self) -> Sequence[HeatMapPoint]:
        return tuple(self._heat.values())

    @property
    def explored_regions(self) -> Sequence[ExploredRegion]:
        return tuple(self._regions)

    @property
    def points_of_interest(self) -> Sequence[PointOfInterest]:
        return tuple(self._pois)

    @property
    def total_explored_area_m2(self) -> float:
        return self._total_area_m2

    @property
    def explored_cell_count(self) -> int:
        return len(self._visited_cells)

    @property
    def exploration_percentage(self) -> float:
        """Coverage in percent, capped at 100."""

        return min(100.0, 100.0 * self._total_area_m2 / self._cfg.campus_area_m2)

    @property
    def visited_poi_count(self) -> int:
        return sum(1 for p in self._pois if p.is_visited)

    def heat_cell_key(self, coordinate: Coordinate) -> CellKey:
        return cell_key(coordinate, self._cfg.heat_cell_size_m, self._cfg.grid_scale)

    def fog_cell_key(self, coordinate: Coordinate) -> CellKey:
        return cell_key(coordinate, self._cfg.fog_cell_size_m, self._cfg.grid_scale)

    def track_location(self, coordinate: Coordinate) -> list[PointOfInterest]:
        """Record one fix: heat intensity, fog reveal, POI visits.

        Returns:
            POIs visited by this fix. Invalid coordinates are ignored.
        """

        if not is_valid_coordinate(coordinate):
            logger.warning("忽略无效坐标：%s", coordinate)
            return []

        self._add_heat_point(coordinate)
        self._add_explored_region(coordinate)
        visited = self._detector.check_visits(coordinate, self._pois)

        if self._autosave:
            self.save()
        return visited

    def is_explored(self, coordinate: Coordinate) -> bool:
        """True if ``coordinate`` lies within any explored region (linear scan)."""

        for region in self._regions:
            if is_inside_circle(
                coordinate.latitude,
                coordinate.longitude,
                region.center.latitude,
                region.center.longitude,
                region.radius_m,
            ):
                return True
        return False

    def get_poi(self, poi_id: str) -> PointOfInterest | None:
        for poi in self._pois:
            if poi.id == poi_id:
                return poi
        return None

    def add_custom_poi(
        self,
        name: str,
        coordinate: Coordinate,
        category: POICategory = POICategory.CUSTOM,
        notes: str = "",
    ) -> PointOfInterest:
        """Register a user-defined POI.

        Raises:
            InvalidInputError: If the name is blank or the coordinate is invalid.
        """

        clean = name.strip()
        if not clean:
            raise InvalidInputError("地点名称不能为空")
        if not is_valid_coordinate(coordinate):
            raise InvalidInputError(f"无效坐标：{coordinate.latitude}, {coordinate.longitude}")

        poi = PointOfInterest(
            id=str(uuid.uuid4()),
            name=clean,
            category=category,
            coordinate=coordinate,
            notes=notes,
        )
        self._pois.append(poi)
        if self._autosave:
            self.save()
        return poi

    def remove_poi(self, poi_id: str) -> PointOfInterest:
        """Delete a custom POI.

        Raises:
            InvalidInputError: If no POI has this id or it is not a custom POI.
        """

        poi = self.get_poi(poi_id)
        if poi is None:
            raise InvalidInputError(f"找不到地点：{poi_id!r}")
        if not poi.is_custom:
            raise InvalidInputError(f"只能删除自定义地点：{poi.name!r}（{poi.category.label}）")

        self._pois = [p for p in self._pois if p.id != poi_id]
        if self._autosave:
            self.save()
        return poi

    def reset_exploration(self) -> None:
        """Clear heat map, explored regions and area; un-visit every POI."""

        self._heat = {}
        self._regions = []
        self._visited_cells = set()
        self._total_area_m2 = 0.0
        for poi in self._pois:
            poi.is_visited = False
            poi.visit_count = 0
            poi.last_visited = None
        if self._autosave:
            self.save()

    def _add_heat_point(self, coordinate: Coordinate) -> None:
        key = self.heat_cell_key(coordinate)
        existing = self._heat.get(key)
        if existing is not None:
            existing.intensity += 1
            return
        self._heat[key] = HeatMapPoint(cell=key, coordinate=coordinate, first_seen=self._clock())

    def _add_explored_region(self, coordinate: Coordinate) -> None:
        key = self.fog_cell_key(coordinate)
        if key in self._visited_cells:
            return
        self._visited_cells.add(key)
        region = ExploredRegion(center=coordinate, radius_m=self._cfg.explored_radius_m, explored_at=self._clock())
        self._regions.append(region)
        self._total_area_m2 += region.area_m2

    def save(self) -> None:
        self._store.set(HEAT_POINTS_KEY, [p.to_dict() for p in self._heat.values()])
        self._store.set(EXPLORED_REGIONS_KEY, [r.to_dict() for r in self._regions])
        self._store.set(POIS_KEY, [p.to_dict() for p in self._pois])
        self._store.set(VISITED_CELLS_KEY, sorted(k.as_str() for k in self._visited_cells))
        self._store.set(EXPLORED_AREA_KEY, self._total_area_m2)

    def load(self) -> None:
        """Load every namespace independently; bad ones fall back to empty."""

        heat = _load_list(self._store, HEAT_POINTS_KEY, HeatMapPoint.from_dict)
        self._heat = {p.cell: p for p in heat}
        self._regions = _load_list(self._store, EXPLORED_REGIONS_KEY, ExploredRegion.from_dict)
        self._pois = _load_list(self._store, POIS_KEY, PointOfInterest.from_dict)

        cells = _load_list(self._store, VISITED_CELLS_KEY, CellKey.parse)
        self._visited_cells = set(cells)
        # Regions are the source of truth for area; cells must cover every region.
        self._visited_cells.update(self.fog_cell_key(r.center) for r in self._regions)
        self._total_area_m2 = math.fsum(r.area_m2 for r in self._regions)


def _load_list(store: JsonStateStore, key: str, decode: Callable[[Any], T]) -> list[T]:
    raw = store.get(key)
    if raw is None:
        return []
    try:
        return [decode(item) for item in raw]
    except (KeyError, ValueError, TypeError, AttributeError, OverflowError) as exc:
        logger.warning("%s 数据无法解析，使用默认值：%s", key, exc)
        return []
