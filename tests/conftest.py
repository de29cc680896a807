import time
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from flightglobe.ingestion import CanonicalPosition
from flightglobe.ingestion.opensky_client import RateLimitState, StateVector
from flightglobe.ledger import PositionLedger
from flightglobe.models import Region, Source


@pytest.fixture
def ledger(tmp_path):
    ledger = PositionLedger.from_url(f'sqlite:///{tmp_path}/ledger.db')
    yield ledger
    ledger.engine.dispose()


def make_position(icao24='abc123', lat=40.0, lng=-74.0, **overrides) -> CanonicalPosition:
    fields = dict(
        icao24=icao24,
        callsign=icao24.upper(),
        latitude=lat,
        longitude=lng,
        altitude=10000.0,
        velocity=230.0,
        heading=90.0,
        vertical_rate=0.0,
        origin_country='United States',
        on_ground=False,
    )
    fields.update(overrides)
    return CanonicalPosition(**fields)


def store_row(ledger, icao24='abc123', lat=40.0, lng=-74.0, age=timedelta(0),
              region=Region.USA, source=Source.CRON, callsign=None):
    """Insert a row directly, recorded `age` ago."""
    recorded_at = datetime.now(timezone.utc) - age
    ledger.insert_positions([{
        'id': str(uuid.uuid4()),
        'icao24': icao24,
        'callsign': callsign if callsign is not None else icao24.upper(),
        'lat': lat,
        'lng': lng,
        'altitude': 10000.0,
        'velocity': 230.0,
        'heading': 90.0,
        'vertical_rate': 0.0,
        'origin_country': 'United States',
        'on_ground': False,
        'region': region.value,
        'source': source.value,
        'recorded_at': recorded_at,
    }])
    return recorded_at


def state_array(icao24='ABC123', callsign='TEST123 ', lon=-74.0, lat=40.0,
                baro=3657.6, geo=3700.0, on_ground=False):
    return [
        icao24, callsign, 'United States', 1714765198, 1714765200,
        lon, lat, baro, on_ground, 164.6, 90.0, 2.0, None, geo, '7000', False, 0,
    ]


def state_vector(**kwargs) -> StateVector:
    return StateVector.from_array(state_array(**kwargs))


class FakeOpenSkyClient:
    """Stands in for OpenSkyClient; serves canned state vectors per region."""

    def __init__(self, states_by_region=None, errors=None, delay=0.0):
        self.states_by_region = states_by_region or {}
        self.errors = errors or {}
        self.delay = delay
        self.rate_limit = RateLimitState(authenticated=False, remaining=3999)
        self.is_authenticated = False
        self.calls = []

    def get_region_states(self, region):
        key = Region(region) if region is not None else None
        self.calls.append(key)
        if self.delay:
            time.sleep(self.delay)
        if key in self.errors:
            raise self.errors[key]
        return 1714765200, list(self.states_by_region.get(key, []))


@pytest.fixture
def fake_client():
    return FakeOpenSkyClient()
