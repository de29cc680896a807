"""
Trajectory API endpoints.

Provides endpoints for:
- GET /api/trajectories - Paths of every aircraft in a time window
- GET /api/trajectories/<icao24> - Path of a single aircraft
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request

from flightglobe.api.params import parse_hours, parse_region
from flightglobe.config import config
from flightglobe.history import estimate_position
from flightglobe.services import get_services

logger = logging.getLogger(__name__)

trajectories_bp = Blueprint('trajectories', __name__, url_prefix='/api/trajectories')


@trajectories_bp.route('', methods=['GET'])
def list_trajectories():
    """
    Rebuild trajectories from stored positions.

    Query parameters:
    - region: usa|europe|eastAsia (default: all regions)
    - hours: window size in hours (default 6, max 168)
    """
    start_time = time.perf_counter()

    try:
        region = parse_region(request.args.get('region'))
        hours = parse_hours(
            request.args.get('hours'),
            default=config.trajectory.default_hours,
            maximum=config.trajectory.max_hours,
        )
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    trajectories = get_services().trajectories.reconstruct(region, hours)

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'trajectories': [t.to_dict() for t in trajectories],
        'count': len(trajectories),
        'total_points': sum(len(t.points) for t in trajectories),
        'region': region.value if region else None,
        'hours': hours,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@trajectories_bp.route('/<icao24>', methods=['GET'])
def get_trajectory(icao24: str):
    """
    Trajectory for one aircraft.

    Query parameters:
    - hours: window size in hours (default 24, max 168)

    Includes the estimated current position (null once the last point
    is stale).
    """
    try:
        hours = parse_hours(
            request.args.get('hours'),
            default=config.trajectory.default_single_hours,
            maximum=config.trajectory.max_hours,
        )
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    trajectory = get_services().trajectories.reconstruct_one(icao24, hours)
    if trajectory is None:
        return jsonify({'error': 'Trajectory not found'}), 404

    estimate = estimate_position(trajectory)

    return jsonify({
        'trajectory': trajectory.to_dict(),
        'estimated_position': estimate.to_dict() if estimate else None,
        'hours': hours,
    })
