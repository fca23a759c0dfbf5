"""Fixed seed catalogs: achievements, challenge templates and campus POIs."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Final

from campus_explorer.models import (
    Achievement,
    AchievementCategory,
    Challenge,
    ChallengeKind,
    ChallengeMetric,
    Coordinate,
    POICategory,
    PointOfInterest,
)

_A = AchievementCategory

# (id, title, description, icon, requirement, category)
ACHIEVEMENT_DEFS: Final[tuple[tuple[str, str, str, str, int, AchievementCategory], ...]] = (
    ("steps_1k", "First Steps", "Walk 1,000 steps", "figure.walk", 1_000, _A.STEPS),
    ("steps_5k", "Getting Active", "Walk 5,000 steps", "figure.walk", 5_000, _A.STEPS),
    ("steps_10k", "Step Master", "Walk 10,000 steps", "figure.walk.circle", 10_000, _A.STEPS),
    ("steps_50k", "Marathon Walker", "Walk 50,000 steps", "figure.walk.circle.fill", 50_000, _A.STEPS),
    ("steps_100k", "Century Steps", "Walk 100,000 steps", "star.fill", 100_000, _A.STEPS),
    ("dist_1km", "First Kilometer", "Walk 1 km total", "map", 1_000, _A.DISTANCE),
    ("dist_5km", "Explorer", "Walk 5 km total", "map.fill", 5_000, _A.DISTANCE),
    ("dist_10km", "Adventurer", "Walk 10 km total", "globe", 10_000, _A.DISTANCE),
    ("dist_25km", "Pathfinder", "Walk 25 km total", "globe.americas.fill", 25_000, _A.DISTANCE),
    ("dist_50km", "Trail Blazer", "Walk 50 km total", "trophy.fill", 50_000, _A.DISTANCE),
    ("streak_3", "Three Day Streak", "Use app 3 days in a row", "flame", 3, _A.STREAK),
    ("streak_7", "Week Warrior", "Use app 7 days in a row", "flame.fill", 7, _A.STREAK),
    ("streak_30", "Monthly Master", "Use app 30 days in a row", "flame.circle.fill", 30, _A.STREAK),
    ("friends_1", "First Friend", "Connect with 1 friend", "person.2", 1, _A.FRIENDS),
    ("friends_5", "Social Butterfly", "Connect with 5 friends", "person.2.fill", 5, _A.FRIENDS),
    ("friends_10", "Popular Explorer", "Connect with 10 friends", "person.3.fill", 10, _A.FRIENDS),
    ("explore_10", "Curious", "Visit 10 unique spots", "mappin", 10, _A.EXPLORATION),
    ("explore_50", "Discoverer", "Visit 50 unique spots", "mappin.circle", 50, _A.EXPLORATION),
    ("explore_100", "Campus Expert", "Visit 100 unique spots", "mappin.circle.fill", 100, _A.EXPLORATION),
    ("challenge_1", "Challenger", "Complete 1 challenge", "checkmark.seal", 1, _A.CHALLENGES),
    ("challenge_10", "Challenge Pro", "Complete 10 challenges", "checkmark.seal.fill", 10, _A.CHALLENGES),
    ("challenge_50", "Challenge Legend", "Complete 50 challenges", "crown.fill", 50, _A.CHALLENGES),
)


def default_achievements() -> list[Achievement]:
    """Fresh (locked, zero progress) copies of the achievement catalog."""

    return [
        Achievement(id=a_id, title=title, description=desc, icon=icon, requirement=req, category=cat)
        for a_id, title, desc, icon, req, cat in ACHIEVEMENT_DEFS
    ]


@dataclass(frozen=True, slots=True)
class ChallengeTemplate:
    """Blueprint of a recurring challenge; instantiated once per day/week."""

    title: str
    description: str
    icon: str
    requirement: int
    kind: ChallengeKind
    metric: ChallengeMetric
    reward_points: int

    def instantiate(self, expires_at: datetime) -> Challenge:
        return Challenge(
            id=str(uuid.uuid4()),
            title=self.title,
            description=self.description,
            icon=self.icon,
            requirement=self.requirement,
            kind=self.kind,
            metric=self.metric,
            reward_points=self.reward_points,
            expires_at=expires_at,
        )


DAILY_CHALLENGES: Final[tuple[ChallengeTemplate, ...]] = (
    ChallengeTemplate(
        "Daily Walker", "Walk 5,000 steps today", "figure.walk", 5_000,
        ChallengeKind.DAILY, ChallengeMetric.STEPS, 50,
    ),
    ChallengeTemplate(
        "Distance Goal", "Walk 2 km today", "map", 2_000,
        ChallengeKind.DAILY, ChallengeMetric.DISTANCE, 50,
    ),
    ChallengeTemplate(
        "Explorer", "Visit 5 new spots today", "mappin", 5,
        ChallengeKind.DAILY, ChallengeMetric.SPOTS, 30,
    ),
)

WEEKLY_CHALLENGES: Final[tuple[ChallengeTemplate, ...]] = (
    ChallengeTemplate(
        "Weekly Marathon", "Walk 50,000 steps this week", "figure.walk.circle", 50_000,
        ChallengeKind.WEEKLY, ChallengeMetric.STEPS, 200,
    ),
    ChallengeTemplate(
        "Distance Champion", "Walk 20 km this week", "globe", 20_000,
        ChallengeKind.WEEKLY, ChallengeMetric.DISTANCE, 200,
    ),
)

CAMPUS_CENTER: Final[Coordinate] = Coordinate(16.4350, 80.5104)

# (name, category, lat, lon)
DEFAULT_POI_DEFS: Final[tuple[tuple[str, POICategory, float, float], ...]] = (
    ("Main Academic Block", POICategory.ACADEMIC, 16.4355, 80.5110),
    ("Central Library", POICategory.LIBRARY, 16.4348, 80.5095),
    ("Sports Complex", POICategory.SPORTS, 16.4340, 80.5120),
    ("Food Court", POICategory.DINING, 16.4360, 80.5100),
    ("Health Center", POICategory.MEDICAL, 16.4345, 80.5115),
    ("Student Hostel A", POICategory.DORM, 16.4365, 80.5090),
    ("Student Hostel B", POICategory.DORM, 16.4370, 80.5095),
    ("Main Entrance", POICategory.LANDMARK, 16.4330, 80.5100),
    ("Parking Lot A", POICategory.PARKING, 16.4335, 80.5085),
    ("Auditorium", POICategory.LANDMARK, 16.4352, 80.5108),
)


def default_pois() -> list[PointOfInterest]:
    return [
        PointOfInterest(
            id=str(uuid.uuid4()),
            name=name,
            category=category,
            coordinate=Coordinate(lat, lon),
        )
        for name, category, lat, lon in DEFAULT_POI_DEFS
    ]
