"""
Database models for FlightGlobe.

Schema designed for deduplicated position history:
1. Cheap "latest row per aircraft" lookups for write decisions
2. Efficient time-window queries for trajectory rebuilds
3. Age-based cleanup per retention policy
"""

from flightglobe.models.base import Base, UTCDateTime, create_ledger_engine, create_session_factory, init_db
from flightglobe.models.flight_position import FlightPosition, Region, Source
from flightglobe.models.app_setting import AppSetting

__all__ = [
    'Base',
    'UTCDateTime',
    'create_ledger_engine',
    'create_session_factory',
    'init_db',
    'FlightPosition',
    'Region',
    'Source',
    'AppSetting',
]
