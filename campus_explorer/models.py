"""Data models for coordinates, exploration state and progression entities.

Value types (coordinates, cell keys, track points) are frozen. Entities that
carry mutable state (POIs, achievements, challenges, streaks) are plain
slotted dataclasses owned by exactly one service.

Every persisted entity has ``to_dict``/``from_dict`` so snapshots stay plain
JSON. ``from_dict`` raises ``KeyError``/``ValueError``/``TypeError`` on bad
input; callers decide how to fall back.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Final

from campus_explorer.timeutils import format_dt, parse_iso_dt

DEFAULT_TZ: Final[str] = "Asia/Kolkata"


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS84 latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def to_list(self) -> list[float]:
        return [self.latitude, self.longitude]

    @classmethod
    def from_list(cls, value: Any) -> Coordinate:
        lat, lon = value
        return cls(latitude=float(lat), longitude=float(lon))


@dataclass(frozen=True, slots=True, order=True)
class CellKey:
    """Grid cell identity (see :func:`campus_explorer.geo.cell_key`)."""

    lat_index: int
    lon_index: int

    def as_str(self) -> str:
        return f"{self.lat_index},{self.lon_index}"

    @classmethod
    def parse(cls, text: str) -> CellKey:
        lat_s, lon_s = text.split(",", 1)
        return cls(lat_index=int(lat_s), lon_index=int(lon_s))


@dataclass(frozen=True, slots=True)
class TrackPoint:
    """A single location sample from a recorded track export.

    Attributes:
        geo_time_ms: Unix epoch milliseconds.
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        altitude_m: Altitude in meters. May be 0.0 depending on device/app.
        speed_mps: Speed in meters/second. Some rows may use -1.0 as sentinel.
        horizontal_accuracy_m: Horizontal accuracy in meters. Some rows use -1.0.
        location_type: App-specific integer describing the positioning source.
    """

    geo_time_ms: int
    latitude: float
    longitude: float
    altitude_m: float
    speed_mps: float
    horizontal_accuracy_m: float
    location_type: int

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass(slots=True)
class HeatMapPoint:
    """Visit intensity of one heat-grid cell.

    ``coordinate`` and ``first_seen`` describe the first fix that landed in the
    cell; ``intensity`` counts every fix since.
    """

    cell: CellKey
    coordinate: Coordinate
    first_seen: datetime
    intensity: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "cell": self.cell.as_str(),
            "coordinate": self.coordinate.to_list(),
            "first_seen": format_dt(self.first_seen),
            "intensity": self.intensity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HeatMapPoint:
        return cls(
            cell=CellKey.parse(data["cell"]),
            coordinate=Coordinate.from_list(data["coordinate"]),
            first_seen=parse_iso_dt(data["first_seen"]),
            intensity=int(data.get("intensity", 1)),
        )


@dataclass(frozen=True, slots=True)
class ExploredRegion:
    """A revealed fog-of-war circle. The radius never changes after creation."""

    center: Coordinate
    radius_m: float
    explored_at: datetime

    @property
    def area_m2(self) -> float:
        return math.pi * self.radius_m * self.radius_m

    def to_dict(self) -> dict[str, Any]:
        return {
            "center": self.center.to_list(),
            "radius_m": self.radius_m,
            "explored_at": format_dt(self.explored_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExploredRegion:
        return cls(
            center=Coordinate.from_list(data["center"]),
            radius_m=float(data["radius_m"]),
            explored_at=parse_iso_dt(data["explored_at"]),
        )


class POICategory(str, Enum):
    ACADEMIC = "academic"
    DINING = "dining"
    SPORTS = "sports"
    LIBRARY = "library"
    DORM = "dorm"
    MEDICAL = "medical"
    PARKING = "parking"
    LANDMARK = "landmark"
    CUSTOM = "custom"

    @property
    def label(self) -> str:
        return _POI_LABELS[self]


_POI_LABELS: Final[dict[POICategory, str]] = {
    POICategory.ACADEMIC: "Academic",
    POICategory.DINING: "Dining",
    POICategory.SPORTS: "Sports",
    POICategory.LIBRARY: "Library",
    POICategory.DORM: "Dormitory",
    POICategory.MEDICAL: "Medical",
    POICategory.PARKING: "Parking",
    POICategory.LANDMARK: "Landmark",
    POICategory.CUSTOM: "Custom",
}


@dataclass(slots=True)
class PointOfInterest:
    """A named campus location with visit state.

    Visit fields are only mutated by the visit detector (or cleared by a full
    exploration reset).
    """

    id: str
    name: str
    category: POICategory
    coordinate: Coordinate
    is_visited: bool = False
    visit_count: int = 0
    last_visited: datetime | None = None
    notes: str = ""

    @property
    def is_custom(self) -> bool:
        return self.category is POICategory.CUSTOM

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "coordinate": self.coordinate.to_list(),
            "is_visited": self.is_visited,
            "visit_count": self.visit_count,
            "last_visited": format_dt(self.last_visited),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PointOfInterest:
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            category=POICategory(data["category"]),
            coordinate=Coordinate.from_list(data["coordinate"]),
            is_visited=bool(data.get("is_visited", False)),
            visit_count=int(data.get("visit_count", 0)),
            last_visited=parse_iso_dt(data.get("last_visited")),
            notes=str(data.get("notes", "") or ""),
        )


class AchievementCategory(str, Enum):
    STEPS = "steps"
    DISTANCE = "distance"
    STREAK = "streak"
    FRIENDS = "friends"
    EXPLORATION = "exploration"
    CHALLENGES = "challenges"


@dataclass(slots=True)
class Achievement:
    """A badge with a numeric requirement.

    Once ``is_unlocked`` is true it stays true; ``unlocked_at`` is stamped at
    the transition and never rewritten.
    """

    id: str
    title: str
    description: str
    icon: str
    requirement: int
    category: AchievementCategory
    is_unlocked: bool = False
    unlocked_at: datetime | None = None
    progress: int = 0

    @property
    def progress_ratio(self) -> float:
        if self.requirement <= 0:
            return 1.0
        return min(self.progress / self.requirement, 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "requirement": self.requirement,
            "category": self.category.value,
            "is_unlocked": self.is_unlocked,
            "unlocked_at": format_dt(self.unlocked_at),
            "progress": self.progress,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Achievement:
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            icon=str(data.get("icon", "")),
            requirement=int(data["requirement"]),
            category=AchievementCategory(data["category"]),
            is_unlocked=bool(data.get("is_unlocked", False)),
            unlocked_at=parse_iso_dt(data.get("unlocked_at")),
            progress=int(data.get("progress", 0)),
        )


class ChallengeKind(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class ChallengeMetric(str, Enum):
    """Which telemetry value drives a challenge's progress."""

    STEPS = "steps"
    DISTANCE = "distance"
    SPOTS = "spots"


def infer_challenge_metric(description: str, kind: ChallengeKind) -> ChallengeMetric:
    """Recover the tracked metric from a challenge description.

    Only used for snapshots written before challenges carried an explicit
    ``metric``. Weekly challenges fall back to distance when the text does not
    mention steps.
    """

    text = description.lower()
    if "steps" in text:
        return ChallengeMetric.STEPS
    if kind is ChallengeKind.WEEKLY or "km" in text:
        return ChallengeMetric.DISTANCE
    if "spots" in text:
        return ChallengeMetric.SPOTS
    raise ValueError(f"cannot infer challenge metric from {description!r}")


@dataclass(slots=True)
class Challenge:
    """A time-boxed goal. ``Active -> Completed`` or ``Active -> Expired``."""

    id: str
    title: str
    description: str
    icon: str
    requirement: int
    kind: ChallengeKind
    metric: ChallengeMetric
    reward_points: int
    expires_at: datetime
    progress: int = 0
    is_completed: bool = False

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    @property
    def progress_ratio(self) -> float:
        if self.requirement <= 0:
            return 1.0
        return min(self.progress / self.requirement, 1.0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "icon": self.icon,
            "requirement": self.requirement,
            "kind": self.kind.value,
            "metric": self.metric.value,
            "reward_points": self.reward_points,
            "expires_at": format_dt(self.expires_at),
            "progress": self.progress,
            "is_completed": self.is_completed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        kind = ChallengeKind(data["kind"])
        description = str(data.get("description", ""))
        raw_metric = data.get("metric")
        metric = ChallengeMetric(raw_metric) if raw_metric else infer_challenge_metric(description, kind)
        expires_at = parse_iso_dt(data["expires_at"])
        if expires_at is None:
            raise ValueError("challenge without expires_at")
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            description=description,
            icon=str(data.get("icon", "")),
            requirement=int(data["requirement"]),
            kind=kind,
            metric=metric,
            reward_points=int(data.get("reward_points", 0)),
            expires_at=expires_at,
            progress=int(data.get("progress", 0)),
            is_completed=bool(data.get("is_completed", False)),
        )


@dataclass(slots=True)
class StreakData:
    """Consecutive-day activity counter."""

    current: int = 0
    longest: int = 0
    last_active_date: date | None = None
    history: list[date] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "longest": self.longest,
            "last_active_date": self.last_active_date.isoformat() if self.last_active_date else None,
            "history": [d.isoformat() for d in self.history],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreakData:
        last = data.get("last_active_date")
        return cls(
            current=int(data.get("current", 0)),
            longest=int(data.get("longest", 0)),
            last_active_date=date.fromisoformat(last) if last else None,
            history=[date.fromisoformat(d) for d in data.get("history", [])],
        )


@dataclass(slots=True)
class Goal:
    """User-editable daily/weekly targets (distances in meters)."""

    daily_steps: int = 10_000
    daily_distance_m: float = 5_000.0
    weekly_steps: int = 70_000
    weekly_distance_m: float = 35_000.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "daily_steps": self.daily_steps,
            "daily_distance_m": self.daily_distance_m,
            "weekly_steps": self.weekly_steps,
            "weekly_distance_m": self.weekly_distance_m,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Goal:
        return cls(
            daily_steps=int(data["daily_steps"]),
            daily_distance_m=float(data["daily_distance_m"]),
            weekly_steps=int(data["weekly_steps"]),
            weekly_distance_m=float(data["weekly_distance_m"]),
        )


class ActivityType(str, Enum):
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"
    STREAK = "streak"
    MILESTONE = "milestone"
    SOCIAL = "social"


@dataclass(frozen=True, slots=True)
class ActivityFeedItem:
    """One entry of the activity feed (newest first, bounded)."""

    id: str
    user_id: str
    username: str
    type: ActivityType
    title: str
    description: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.username,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "timestamp": format_dt(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivityFeedItem:
        ts = parse_iso_dt(data["timestamp"])
        if ts is None:
            raise ValueError("feed item without timestamp")
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("user_id", "me")),
            username=str(data.get("username", "You")),
            type=ActivityType(data["type"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            timestamp=ts,
        )
