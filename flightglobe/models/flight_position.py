"""
FlightPosition model - deduplicated position history.

Every row is a position the writer judged worth keeping: the first
sighting of an aircraft, or one that moved or aged past the dedup
thresholds since its previous row. Rows are append-only; the retention
sweeper is the only thing that ever deletes them.

Schema optimized for:
- "Latest row for this aircraft" lookups on every write decision
- Time-window scans (optionally per region) for trajectory rebuilds
- Age-based deletes
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, Float, Boolean, Index
from sqlalchemy.orm import Mapped, mapped_column

from flightglobe.models.base import Base, UTCDateTime


class Region(str, Enum):
    """
    Named geographic areas used as feed scope and ledger partition tag.

    Values are the wire identifiers stored in the region column.
    """
    USA = 'usa'
    EUROPE = 'europe'
    EAST_ASIA = 'eastAsia'


class Source(str, Enum):
    """Who wrote a position: the scheduled job or an interactive client."""
    CRON = 'cron'
    CLIENT = 'client'


class FlightPosition(Base):
    """
    One stored observation of an aircraft.

    Ordering within an aircraft's history is defined by recorded_at,
    the wall-clock time of the write rather than the feed's timestamp.
    """

    __tablename__ = 'flight_positions'

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        comment='UUID4 assigned at write time'
    )

    icao24: Mapped[str] = mapped_column(
        String(6),
        nullable=False,
        index=True,
        comment='ICAO24 hex address (lowercase)'
    )

    callsign: Mapped[Optional[str]] = mapped_column(
        String(16),
        nullable=True,
        comment='Display callsign at time of observation'
    )

    # Position (WGS84) - never null, positionless snapshots are dropped upstream
    lat: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Latitude in decimal degrees'
    )

    lng: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        comment='Longitude in decimal degrees'
    )

    altitude: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Altitude in meters (barometric, else geometric)'
    )

    velocity: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Ground speed in m/s'
    )

    heading: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='True track in degrees'
    )

    vertical_rate: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
        comment='Vertical rate in m/s'
    )

    origin_country: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        comment='Country of registration'
    )

    on_ground: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        comment='Aircraft on ground'
    )

    region: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment='Region tag (usa, europe, eastAsia)'
    )

    source: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        comment='Writer tag (cron, client)'
    )

    recorded_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        index=True,
        comment='Wall-clock time of the write (UTC)'
    )

    __table_args__ = (
        # Dedup lookup: newest row for one aircraft
        Index('ix_flight_positions_icao_time', 'icao24', 'recorded_at'),

        # Trajectory window scans scoped to a region
        Index('ix_flight_positions_region_time', 'region', 'recorded_at'),
    )

    def __repr__(self) -> str:
        return f'<FlightPosition {self.icao24} @ {self.recorded_at}>'

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict for API responses."""
        return {
            'id': self.id,
            'icao24': self.icao24,
            'callsign': self.callsign,
            'lat': self.lat,
            'lng': self.lng,
            'altitude': self.altitude,
            'velocity': self.velocity,
            'heading': self.heading,
            'vertical_rate': self.vertical_rate,
            'origin_country': self.origin_country,
            'on_ground': self.on_ground,
            'region': self.region,
            'source': self.source,
            'recorded_at': self.recorded_at.isoformat() if self.recorded_at else None,
        }
