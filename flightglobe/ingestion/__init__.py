"""
Data ingestion module for FlightGlobe.

Handles polling the OpenSky API and decoding state vectors into
canonical positions.
"""

from flightglobe.ingestion.opensky_client import (
    OpenSkyClient,
    OpenSkyError,
    OpenSkyRateLimitError,
    StateVector,
    REGIONS,
)
from flightglobe.ingestion.normalizer import CanonicalPosition, normalize, normalize_states

__all__ = [
    'OpenSkyClient',
    'OpenSkyError',
    'OpenSkyRateLimitError',
    'StateVector',
    'REGIONS',
    'CanonicalPosition',
    'normalize',
    'normalize_states',
]
