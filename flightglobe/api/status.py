"""
Status API endpoints.

Provides endpoints for:
- GET /api/opensky/status - OpenSky credentials and rate-limit state
- GET /api/status - Ledger, ingestion and settings overview
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify

from flightglobe.ingestion.opensky_client import DAILY_LIMITS
from flightglobe.services import get_services

logger = logging.getLogger(__name__)

status_bp = Blueprint('status', __name__, url_prefix='/api')


@status_bp.route('/opensky/status', methods=['GET'])
def opensky_status():
    client = get_services().client

    return jsonify({
        'configured': client.is_authenticated,
        'rate_limit': client.rate_limit.to_dict(),
        'limits': DAILY_LIMITS,
    })


@status_bp.route('/status', methods=['GET'])
def system_status():
    """
    System health overview.

    Without a ledger the service still runs (live flights only), so it
    reports 'degraded' rather than failing.
    """
    services = get_services()

    ledger_ok = services.ledger.ping() if services.ledger is not None else False

    return jsonify({
        'status': 'healthy' if ledger_ok else 'degraded',
        'ledger': {
            'configured': services.ledger is not None,
            'connected': ledger_ok,
        },
        'ingestion': services.pipeline.stats,
        'settings': services.settings.get().to_dict(),
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })
