"""
Position history module for FlightGlobe.

Decides which positions get stored, expires old ones, and rebuilds
per-aircraft trajectories from what remains:
- writer: distance/time deduplication and batch persist
- retention: age-based cleanup driven by runtime settings
- trajectory: grouping, ordering and coloring of stored paths
- settings: ledger-backed runtime settings with defaults
"""

from flightglobe.history.settings import Settings, SettingsStore, SETTING_KEYS
from flightglobe.history.writer import DeduplicatingWriter, WriteSummary
from flightglobe.history.retention import RetentionSweeper
from flightglobe.history.trajectory import (
    Trajectory,
    TrajectoryPoint,
    TrajectoryReconstructor,
    estimate_position,
    trajectory_color,
)

__all__ = [
    'Settings',
    'SettingsStore',
    'SETTING_KEYS',
    'DeduplicatingWriter',
    'WriteSummary',
    'RetentionSweeper',
    'Trajectory',
    'TrajectoryPoint',
    'TrajectoryReconstructor',
    'estimate_position',
    'trajectory_color',
]
