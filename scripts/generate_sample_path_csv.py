from __future__ import annotations

import argparse
import math
import random
from datetime import datetime, timedelta
from pathlib import Path

from zoneinfo import ZoneInfo

from campus_explorer.catalog import DEFAULT_POI_DEFS
from campus_explorer.csv_io import write_track_csv
from campus_explorer.models import DEFAULT_TZ, Coordinate, TrackPoint

METERS_PER_DEG_LAT = 111_320.0


def _epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


def _step_towards(cur: Coordinate, target: Coordinate, step_m: float) -> Coordinate:
    """Move ``step_m`` meters from ``cur`` towards ``target`` (flat-earth approximation)."""

    cos_lat = math.cos(math.radians(cur.latitude))
    dy = (target.latitude - cur.latitude) * METERS_PER_DEG_LAT
    dx = (target.longitude - cur.longitude) * METERS_PER_DEG_LAT * cos_lat
    dist = math.hypot(dx, dy)
    if dist <= step_m:
        return target
    ratio = step_m / dist
    return Coordinate(
        cur.latitude + dy * ratio / METERS_PER_DEG_LAT,
        cur.longitude + dx * ratio / (METERS_PER_DEG_LAT * cos_lat),
    )


def generate_walk(
    *,
    rows: int,
    seed: int,
    start_local: datetime,
    stops: list[Coordinate],
) -> list[TrackPoint]:
    """Generate a walk that wanders between campus stops, pausing at each one."""

    rng = random.Random(seed)
    cur_time = start_local
    pos = stops[0]
    target = rng.choice(stops)
    dwell_left = 0

    out: list[TrackPoint] = []
    for _ in range(rows):
        if dwell_left > 0:
            # Standing still: GPS jitter of a few meters
            dwell_left -= 1
            speed = 0.0
        else:
            speed = rng.uniform(1.0, 1.6)
            pos = _step_towards(pos, target, speed * 10.0)
            if pos == target:
                dwell_left = rng.randint(3, 30)
                target = rng.choice(stops)

        jitter_m = rng.uniform(0.0, 4.0)
        angle = rng.uniform(0.0, 2 * math.pi)
        lat = pos.latitude + jitter_m * math.sin(angle) / METERS_PER_DEG_LAT
        lon = pos.longitude + jitter_m * math.cos(angle) / (METERS_PER_DEG_LAT * math.cos(math.radians(pos.latitude)))

        cur_time = cur_time + timedelta(seconds=10)
        out.append(
            TrackPoint(
                geo_time_ms=_epoch_ms(cur_time),
                latitude=lat,
                longitude=lon,
                altitude_m=rng.uniform(20.0, 30.0),
                speed_mps=speed,
                horizontal_accuracy_m=rng.choice([3.0, 5.0, 8.0, 12.0, 20.0, 35.0]),
                location_type=rng.choice([0, 1]),
            )
        )
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a fake campus-walk Path.csv for demo/testing (privacy-safe).")
    p.add_argument("--out", type=str, default="sample_data/Path.csv", help="Output CSV path")
    p.add_argument("--rows", type=int, default=1500, help="Number of rows (one every 10 seconds)")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2025-01-06 08:00:00",
        help=f"Start local time in {DEFAULT_TZ}, e.g. '2025-01-06 08:00:00'",
    )
    args = p.parse_args()

    start_local = datetime.fromisoformat(args.start).replace(tzinfo=ZoneInfo(DEFAULT_TZ))
    stops = [Coordinate(lat, lon) for _, _, lat, lon in DEFAULT_POI_DEFS]

    points = generate_walk(rows=args.rows, seed=args.seed, start_local=start_local, stops=stops)
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    n = write_track_csv(points, out_path)

    print(f"Generated: {out_path} (rows={n}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
