"""CSV input/output for recorded track exports (Path.csv).

Recorded tracks are replayed through :class:`campus_explorer.session.ExplorerSession`
to rebuild exploration and progression state offline.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from campus_explorer.models import Coordinate, TrackPoint

logger = logging.getLogger(__name__)

TRACK_FIELDNAMES: tuple[str, ...] = (
    "geoTime",
    "latitude",
    "longitude",
    "altitude",
    "speed",
    "horizontalAccuracy",
    "locationType",
)


@dataclass(frozen=True, slots=True)
class CsvSummary:
    """Quick summary of CSV parsing."""

    rows_total: int
    rows_parsed: int
    rows_skipped: int
    fieldnames: Sequence[str]


def _parse_int(value: str) -> int:
    return int(value.strip())


def _parse_float(value: str) -> float:
    return float(value.strip())


def _row_to_point(row: dict[str, str]) -> TrackPoint:
    return TrackPoint(
        geo_time_ms=_parse_int(row["geoTime"]),
        latitude=_parse_float(row["latitude"]),
        longitude=_parse_float(row["longitude"]),
        altitude_m=_parse_float(row.get("altitude", "0") or "0"),
        speed_mps=_parse_float(row.get("speed", "0") or "0"),
        horizontal_accuracy_m=_parse_float(row.get("horizontalAccuracy", "-1") or "-1"),
        location_type=_parse_int(row.get("locationType", "0") or "0"),
    )


def load_track_points(csv_path: str | Path) -> tuple[list[TrackPoint], CsvSummary]:
    """Load all points into memory, sorted by time.

    Unparseable rows are skipped and counted in the summary.

    Raises:
        KeyError: If the header lacks geoTime/latitude/longitude.
    """

    p = Path(csv_path)
    rows_total = 0
    parsed: list[TrackPoint] = []
    fieldnames: Sequence[str] = ()

    with p.open("r", encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        fieldnames = reader.fieldnames or ()
        missing = [c for c in ("geoTime", "latitude", "longitude") if c not in fieldnames]
        if missing:
            raise KeyError(f"CSV缺少必要字段：{missing}. 实际字段：{list(fieldnames)}")
        for row in reader:
            rows_total += 1
            try:
                parsed.append(_row_to_point(row))
            except (ValueError, TypeError, AttributeError):
                # 某些行可能损坏/空行，直接跳过
                continue

    parsed.sort(key=lambda pt: pt.geo_time_ms)
    summary = CsvSummary(
        rows_total=rows_total,
        rows_parsed=len(parsed),
        rows_skipped=rows_total - len(parsed),
        fieldnames=fieldnames,
    )
    if summary.rows_skipped > 0:
        logger.warning("CSV中有 %s 行解析失败已跳过", summary.rows_skipped)
    return parsed, summary


def iter_coordinates(points: Iterable[TrackPoint], max_accuracy_m: float | None = None) -> Iterator[Coordinate]:
    """Yield coordinates, optionally dropping fixes with poor horizontal accuracy.

    Rows with a negative accuracy (unknown) are kept.
    """

    for pt in points:
        if max_accuracy_m is not None and pt.horizontal_accuracy_m > max_accuracy_m:
            continue
        yield pt.coordinate


def write_track_csv(points: Iterable[TrackPoint], out_path: str | Path) -> int:
    """Write points in the Path.csv export format; returns rows written."""

    p = Path(out_path)
    n = 0
    with p.open("w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(TRACK_FIELDNAMES))
        w.writeheader()
        for pt in points:
            w.writerow(
                {
                    "geoTime": pt.geo_time_ms,
                    "latitude": f"{pt.latitude:.7f}",
                    "longitude": f"{pt.longitude:.7f}",
                    "altitude": f"{pt.altitude_m:.1f}",
                    "speed": f"{pt.speed_mps:.2f}",
                    "horizontalAccuracy": f"{pt.horizontal_accuracy_m:.1f}",
                    "locationType": pt.location_type,
                }
            )
            n += 1
    return n
