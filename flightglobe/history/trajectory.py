"""
Trajectory reconstruction from stored position history.

Rebuilt on every query: rows for a time window are grouped per aircraft,
put in recorded_at order (the ledger's order is never trusted), and any
aircraft with fewer than two rows is dropped since one point cannot
define a path.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

from flightglobe.config import config
from flightglobe.ledger import LedgerUnavailable, PositionLedger
from flightglobe.models import FlightPosition, Region

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrajectoryPoint:
    lat: float
    lng: float
    timestamp: datetime

    def to_dict(self) -> dict:
        return {
            'lat': self.lat,
            'lng': self.lng,
            'timestamp': int(self.timestamp.timestamp() * 1000),
        }


@dataclass(frozen=True)
class Trajectory:
    """
    Chronological path of one aircraft within one query window.

    Always holds at least two points.
    """
    icao24: str
    callsign: Optional[str]
    points: List[TrajectoryPoint]
    color: str

    @property
    def start(self) -> TrajectoryPoint:
        return self.points[0]

    @property
    def end(self) -> TrajectoryPoint:
        return self.points[-1]

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for arc/path rendering."""
        return {
            'icao24': self.icao24,
            'callsign': self.callsign,
            'points': [p.to_dict() for p in self.points],
            'start_lat': self.start.lat,
            'start_lng': self.start.lng,
            'end_lat': self.end.lat,
            'end_lng': self.end.lng,
            'color': self.color,
        }


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def trajectory_color(icao24: str) -> str:
    """
    Stable HSL color for an aircraft.

    The hue comes from a 32-bit shift-and-subtract string hash, so the
    same ICAO24 gets the same color in every process and redraws never
    change it.
    """
    h = 0
    for ch in icao24:
        h = ord(ch) + (_to_int32(_to_int32(h) << 5) - h)
    hue = abs(h) % 360
    return f'hsl({hue}, 70%, 60%)'


def build_trajectory(icao24: str, rows: List[FlightPosition]) -> Optional[Trajectory]:
    """Sort one aircraft's rows and turn them into a Trajectory (None if < 2 rows)."""
    if len(rows) < 2:
        return None

    ordered = sorted(rows, key=lambda r: r.recorded_at)
    points = [
        TrajectoryPoint(lat=r.lat, lng=r.lng, timestamp=r.recorded_at)
        for r in ordered
    ]

    return Trajectory(
        icao24=icao24,
        callsign=ordered[0].callsign,
        points=points,
        color=trajectory_color(icao24),
    )


def estimate_position(
    trajectory: Trajectory,
    at: Optional[datetime] = None,
    stale_seconds: Optional[int] = None,
) -> Optional[TrajectoryPoint]:
    """
    Best guess of where the aircraft is at time `at`.

    Returns None when the last stored point is more than stale_seconds
    older than `at`; otherwise the last point unchanged. No motion
    prediction is attempted.
    """
    if not trajectory.points:
        return None

    at = at or datetime.now(timezone.utc)
    stale_seconds = config.trajectory.stale_seconds if stale_seconds is None else stale_seconds

    last = trajectory.points[-1]
    age = (at - last.timestamp).total_seconds()
    if age > stale_seconds:
        return None
    return last


class TrajectoryReconstructor:
    """Builds trajectories from the ledger for a region or a single aircraft."""

    def __init__(self, ledger: Optional[PositionLedger]):
        self.ledger = ledger

    def _since(self, hours_back: float) -> datetime:
        return datetime.now(timezone.utc) - timedelta(hours=hours_back)

    def _query(self, since: datetime, **filters) -> List[FlightPosition]:
        if self.ledger is None:
            return []
        try:
            return self.ledger.query_by_window(since=since, **filters)
        except LedgerUnavailable as e:
            logger.error(f'Error fetching positions: {e}')
            return []

    def reconstruct(
        self,
        region: Union[Region, str, None] = None,
        hours_back: Optional[float] = None,
    ) -> List[Trajectory]:
        """All trajectories with >= 2 points in the window, optionally for one region."""
        if hours_back is None:
            hours_back = config.trajectory.default_hours
        region_tag = Region(region).value if region is not None else None

        rows = self._query(self._since(hours_back), region=region_tag)

        grouped: Dict[str, List[FlightPosition]] = defaultdict(list)
        for row in rows:
            grouped[row.icao24].append(row)

        trajectories = []
        for icao24, group in grouped.items():
            trajectory = build_trajectory(icao24, group)
            if trajectory:
                trajectories.append(trajectory)

        logger.debug(
            f'Rebuilt {len(trajectories)} trajectories from {len(rows)} positions '
            f'(region={region_tag}, hours={hours_back})'
        )
        return trajectories

    def reconstruct_one(
        self,
        icao24: str,
        hours_back: Optional[float] = None,
    ) -> Optional[Trajectory]:
        """Trajectory for one aircraft, or None if it has fewer than 2 points."""
        if hours_back is None:
            hours_back = config.trajectory.default_single_hours
        icao24 = icao24.strip().lower()

        rows = self._query(self._since(hours_back), icao24=icao24)
        return build_trajectory(icao24, rows)
