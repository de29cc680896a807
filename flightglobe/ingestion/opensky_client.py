"""
OpenSky Network API client.

Handles communication with the OpenSky REST API, including:
- OAuth2 client-credentials tokens (optional, raises the daily quota)
- Bounding box queries for the named regions
- Rate-limit bookkeeping from response headers
- Translating transport failures into OpenSkyError / OpenSkyRateLimitError

OpenSky state vector format (array indices):
0: icao24          - ICAO24 hex address
1: callsign        - Callsign (8 chars max)
2: origin_country  - Country of registration
3: time_position   - Unix timestamp of last position update
4: last_contact    - Unix timestamp of last message
5: longitude       - WGS84 longitude
6: latitude        - WGS84 latitude
7: baro_altitude   - Barometric altitude (meters)
8: on_ground       - Boolean
9: velocity        - Ground speed (m/s)
10: true_track     - Track angle (degrees, 0=north)
11: vertical_rate  - Vertical rate (m/s)
12: sensors        - Sensor IDs (array)
13: geo_altitude   - Geometric altitude (meters)
14: squawk         - Transponder code
15: spi            - Special position indicator
16: position_source - 0=ADS-B, 1=ASTERIX, 2=MLAT, 3=FLARM

The arrays are decoded into StateVector here and nowhere else.
"""

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, List, Tuple, Any, Dict, Union

import requests

from flightglobe.config import config
from flightglobe.models import Region

logger = logging.getLogger(__name__)


# Documented daily request quotas
DAILY_LIMITS = {
    'anonymous': 400,
    'authenticated': 4000,
    'active_contributor': 8000,
}


class OpenSkyError(Exception):
    """Any failure fetching or decoding OpenSky data."""


class OpenSkyRateLimitError(OpenSkyError):
    """OpenSky answered 429; retry_after_seconds comes from its headers."""

    def __init__(self, message: str, retry_after_seconds: Optional[int] = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


@dataclass
class BoundingBox:
    """
    Geographic bounding box for API queries.

    OpenSky expects: lamin, lomin, lamax, lomax
    (latitude min, longitude min, latitude max, longitude max)
    """
    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    def to_params(self) -> dict:
        """Convert to OpenSky API query parameters."""
        return {
            'lamin': self.lat_min,
            'lamax': self.lat_max,
            'lomin': self.lon_min,
            'lomax': self.lon_max,
        }


REGIONS: Dict[Region, BoundingBox] = {
    # Continental US
    Region.USA: BoundingBox(
        lat_min=24.396308, lat_max=49.384358,
        lon_min=-125.0, lon_max=-66.93457,
    ),
    Region.EUROPE: BoundingBox(
        lat_min=35.0, lat_max=72.0,
        lon_min=-25.0, lon_max=45.0,
    ),
    Region.EAST_ASIA: BoundingBox(
        lat_min=20.0, lat_max=50.0,
        lon_min=100.0, lon_max=150.0,
    ),
}


@dataclass
class StateVector:
    """
    Parsed state vector from OpenSky API.

    Normalizes the raw array format into a typed dataclass.
    All values may be None if not reported by the aircraft.
    """
    icao24: str
    callsign: Optional[str]
    origin_country: Optional[str]
    time_position: Optional[int]
    last_contact: Optional[int]
    longitude: Optional[float]
    latitude: Optional[float]
    baro_altitude: Optional[float]
    on_ground: bool
    velocity: Optional[float]
    true_track: Optional[float]
    vertical_rate: Optional[float]
    geo_altitude: Optional[float]
    squawk: Optional[str]
    spi: bool
    position_source: Optional[int]

    @classmethod
    def from_array(cls, arr: List[Any]) -> Optional['StateVector']:
        """
        Parse OpenSky state vector array into StateVector object.

        Returns None if the array is malformed or missing required fields.
        Extra trailing fields (e.g. aircraft category) are ignored.
        """
        if not arr or len(arr) < 17:
            return None

        icao24 = arr[0]
        if not icao24 or not isinstance(icao24, str):
            return None

        return cls(
            icao24=icao24,
            callsign=arr[1],
            origin_country=arr[2],
            time_position=arr[3],
            last_contact=arr[4],
            longitude=arr[5],
            latitude=arr[6],
            baro_altitude=arr[7],
            on_ground=bool(arr[8]),
            velocity=arr[9],
            true_track=arr[10],
            vertical_rate=arr[11],
            geo_altitude=arr[13],
            squawk=arr[14],
            spi=bool(arr[15]),
            position_source=arr[16],
        )


@dataclass
class RateLimitState:
    """
    Latest rate-limit information reported by OpenSky.

    One instance per client; updated after every response that carries
    the X-Rate-Limit-* headers.
    """
    authenticated: bool = False
    remaining: Optional[int] = None
    retry_after_seconds: Optional[int] = None
    last_updated: Optional[float] = None

    def update_from_headers(self, headers) -> None:
        remaining = _int_header(headers, 'X-Rate-Limit-Remaining')
        retry_after = _int_header(headers, 'X-Rate-Limit-Retry-After-Seconds')
        if remaining is None and retry_after is None:
            return
        if remaining is not None:
            self.remaining = remaining
        self.retry_after_seconds = retry_after
        self.last_updated = time.time()

    def to_dict(self) -> dict:
        return {
            'remaining': self.remaining,
            'retry_after_seconds': self.retry_after_seconds,
            'last_updated': (
                datetime.fromtimestamp(self.last_updated, tz=timezone.utc).isoformat()
                if self.last_updated else None
            ),
            'authenticated': self.authenticated,
        }


def _int_header(headers, name: str) -> Optional[int]:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class AccessTokenCache:
    """
    OAuth2 client-credentials token holder.

    Lifecycle: fetched on first use, reused until shortly before expiry,
    then refreshed. Scoped to the client that owns it.
    """

    # Refresh this many seconds before the token actually expires
    REFRESH_MARGIN = 30

    def __init__(self, client_id: str, client_secret: str, token_url: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_url = token_url
        self._token: Optional[str] = None
        self._expires_at: float = 0
        self._lock = threading.Lock()

    def get(self, session: requests.Session, timeout: float = 30) -> str:
        with self._lock:
            if self._token and time.time() < self._expires_at - self.REFRESH_MARGIN:
                return self._token

            try:
                response = session.post(
                    self.token_url,
                    data={
                        'grant_type': 'client_credentials',
                        'client_id': self.client_id,
                        'client_secret': self.client_secret,
                    },
                    timeout=timeout,
                )
                response.raise_for_status()
                payload = response.json()
            except (requests.exceptions.RequestException, ValueError) as e:
                raise OpenSkyError(f'OpenSky token request failed: {e}') from e

            token = payload.get('access_token')
            if not token:
                raise OpenSkyError('OpenSky token response missing access_token')

            self._token = token
            self._expires_at = time.time() + int(payload.get('expires_in', 1800))
            logger.debug('Refreshed OpenSky access token')
            return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0


class OpenSkyClient:
    """
    Client for OpenSky Network API.

    Handles:
    - GET requests to /states/all endpoint
    - Optional OAuth2 authentication for higher quotas
    - Bounding box / region filtering
    - Rate limit tracking
    """

    def __init__(
        self,
        base_url: str = 'https://opensky-network.org/api',
        token_cache: Optional[AccessTokenCache] = None,
        rate_limit: Optional[RateLimitState] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        self.base_url = base_url
        self.token_cache = token_cache
        self.timeout = timeout
        self.session = session or requests.Session()
        self.rate_limit = rate_limit or RateLimitState()
        self.rate_limit.authenticated = token_cache is not None

        if token_cache:
            logger.info('OpenSky client initialized with authentication')
        else:
            logger.warning('OpenSky client running without authentication (lower rate limits)')

    @classmethod
    def from_config(cls) -> 'OpenSkyClient':
        """Create client from application configuration."""
        token_cache = None
        if config.opensky.is_authenticated:
            token_cache = AccessTokenCache(
                config.opensky.client_id,
                config.opensky.client_secret,
                config.opensky.token_url,
            )
        return cls(
            base_url=config.opensky.base_url,
            token_cache=token_cache,
            timeout=config.opensky.timeout,
        )

    @property
    def is_authenticated(self) -> bool:
        return self.token_cache is not None

    def _headers(self) -> dict:
        if not self.token_cache:
            return {}
        token = self.token_cache.get(self.session, timeout=self.timeout)
        return {'Authorization': f'Bearer {token}'}

    def get_states(
        self,
        bbox: Optional[BoundingBox] = None,
    ) -> Tuple[int, List[StateVector]]:
        """
        Fetch current state vectors from OpenSky.

        Args:
            bbox: Optional bounding box to filter by geography

        Returns:
            Tuple of (api_timestamp, list of StateVectors)

        Raises:
            OpenSkyRateLimitError when OpenSky answers 429
            OpenSkyError on any other network/API/decoding failure
        """
        url = f'{self.base_url}/states/all'
        params = bbox.to_params() if bbox else {}

        logger.debug(f'Fetching states: {url} params={params}')

        try:
            response = self.session.get(
                url,
                params=params,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            logger.error('OpenSky API timeout')
            raise OpenSkyError('OpenSky API timeout') from e
        except requests.exceptions.RequestException as e:
            logger.error(f'OpenSky request failed: {e}')
            raise OpenSkyError(f'OpenSky request failed: {e}') from e

        self.rate_limit.update_from_headers(response.headers)

        if response.status_code == 429:
            logger.warning('OpenSky rate limit exceeded')
            raise OpenSkyRateLimitError(
                'OpenSky rate limit exceeded',
                retry_after_seconds=self.rate_limit.retry_after_seconds,
            )

        if response.status_code == 401 and self.token_cache:
            # Stale token; next call fetches a fresh one
            self.token_cache.invalidate()

        if response.status_code >= 400:
            logger.error(f'OpenSky API error: {response.status_code}')
            raise OpenSkyError(f'OpenSky API error: {response.status_code}')

        try:
            data = response.json()
        except ValueError as e:
            raise OpenSkyError('OpenSky returned invalid JSON') from e

        api_time = data.get('time') or int(time.time())
        states_raw = data.get('states') or []

        logger.info(f'Received {len(states_raw)} state vectors from OpenSky')

        states = []
        for arr in states_raw:
            sv = StateVector.from_array(arr)
            if sv:
                states.append(sv)

        return api_time, states

    def get_region_states(
        self,
        region: Union[Region, str, None],
    ) -> Tuple[int, List[StateVector]]:
        """
        Fetch states for a named region.

        None (or 'world') queries without a bounding box.
        """
        if region is None or region == 'world':
            return self.get_states()
        return self.get_states(bbox=REGIONS[Region(region)])
