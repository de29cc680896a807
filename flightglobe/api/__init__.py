"""
API module for FlightGlobe.

Provides REST endpoints for:
- Live flight positions
- Reconstructed trajectories
- Runtime settings
- The scheduled polling job
- System and OpenSky status
"""

from flightglobe.api.flights import flights_bp
from flightglobe.api.trajectories import trajectories_bp
from flightglobe.api.settings import settings_bp
from flightglobe.api.cron import cron_bp
from flightglobe.api.status import status_bp

__all__ = ['flights_bp', 'trajectories_bp', 'settings_bp', 'cron_bp', 'status_bp']
