"""
Live flight API endpoints.

Provides endpoints for:
- GET /api/flights - Current positions for a region, straight from OpenSky

When client tracking is enabled, positions served here are also handed
to the writer in the background (source=client). The response never
waits for that write.
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from flightglobe.api.params import parse_flag, parse_region
from flightglobe.ingestion import OpenSkyError, OpenSkyRateLimitError, normalize_states
from flightglobe.models import Region, Source
from flightglobe.services import get_services

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


@flights_bp.route('', methods=['GET'])
def list_flights():
    """
    List aircraft currently reported in a region.

    Query parameters:
    - region: usa|europe|eastAsia|world (default usa)
    - include_ground: boolean, include aircraft on the ground (default false)

    Response includes query timing for latency awareness.
    """
    start_time = time.perf_counter()
    services = get_services()

    try:
        region = parse_region(request.args.get('region', Region.USA.value), allow_world=True)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400
    include_ground = parse_flag(request.args.get('include_ground'), False)

    try:
        api_time, states = services.client.get_region_states(region)
    except OpenSkyRateLimitError as e:
        return jsonify({
            'error': 'OpenSky rate limit exceeded',
            'retry_after_seconds': e.retry_after_seconds,
        }), 429
    except OpenSkyError as e:
        return jsonify({'error': str(e)}), 502

    positions = normalize_states(states, include_on_ground=include_ground)

    # Only regional fetches can be tagged for the ledger
    tracking = False
    if region is not None and positions and services.settings.get().client_tracking:
        services.writer.submit(positions, region, Source.CLIENT)
        tracking = True

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': [p.to_dict() for p in positions],
        'count': len(positions),
        'region': region.value if region else 'world',
        'api_time': api_time,
        'tracking': tracking,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })
