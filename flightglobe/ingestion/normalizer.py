"""
Snapshot normalizer - StateVector to CanonicalPosition.

Resolves the feed's optional fields into the fixed shape the rest of the
system works with. Pure functions only; no I/O.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from flightglobe.geo import meters_to_feet, ms_to_knots
from flightglobe.ingestion.opensky_client import StateVector


@dataclass(frozen=True)
class CanonicalPosition:
    """
    A usable position for one aircraft.

    Units are SI (meters, m/s). Never built without latitude and longitude.
    """
    icao24: str
    callsign: str
    latitude: float
    longitude: float
    altitude: float
    velocity: float
    heading: float
    vertical_rate: float
    origin_country: Optional[str]
    on_ground: bool

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'icao24': self.icao24,
            'callsign': self.callsign,
            'lat': self.latitude,
            'lng': self.longitude,
            'altitude': self.altitude,
            'altitude_ft': int(meters_to_feet(self.altitude)),
            'velocity': self.velocity,
            'speed_kts': int(ms_to_knots(self.velocity)),
            'heading': self.heading,
            'vertical_rate': self.vertical_rate,
            'origin_country': self.origin_country,
            'on_ground': self.on_ground,
        }


def _resolve_altitude(sv: StateVector) -> float:
    # Barometric first: pressure altitude is what aircraft are separated by
    if sv.baro_altitude is not None:
        return float(sv.baro_altitude)
    if sv.geo_altitude is not None:
        return float(sv.geo_altitude)
    return 0.0


def normalize(sv: StateVector) -> Optional[CanonicalPosition]:
    """
    Convert a raw state vector into a CanonicalPosition.

    Returns None when latitude or longitude is missing; such snapshots
    carry no usable position. Callsigns are trimmed and fall back to the
    ICAO24 address so every position has a label.
    """
    if sv.latitude is None or sv.longitude is None:
        return None

    icao24 = sv.icao24.strip().lower()
    callsign = (sv.callsign or '').strip() or icao24
    heading = float(sv.true_track) % 360.0 if sv.true_track is not None else 0.0

    return CanonicalPosition(
        icao24=icao24,
        callsign=callsign,
        latitude=float(sv.latitude),
        longitude=float(sv.longitude),
        altitude=_resolve_altitude(sv),
        velocity=float(sv.velocity) if sv.velocity is not None else 0.0,
        heading=heading,
        vertical_rate=float(sv.vertical_rate) if sv.vertical_rate is not None else 0.0,
        origin_country=sv.origin_country,
        on_ground=bool(sv.on_ground),
    )


def normalize_states(
    states: Iterable[StateVector],
    include_on_ground: bool = True,
) -> List[CanonicalPosition]:
    """Normalize a batch, dropping positionless (and optionally grounded) aircraft."""
    positions = []
    for sv in states:
        position = normalize(sv)
        if position is None:
            continue
        if not include_on_ground and position.on_ground:
            continue
        positions.append(position)
    return positions
